"""
Membership lookup - which projects and profiles a user may act as.
"""

from __future__ import annotations

from carebase.core.models import ProjectMembership, Reference
from carebase.fhir.repo import Repository


async def get_user_memberships(repo: Repository, user: Reference | None) -> list[ProjectMembership]:
    """
    Get every membership whose user is the given reference.

    A user without memberships gets an empty list. Order is not
    significant; callers match memberships by id.
    """
    if user is None or not user.reference:
        return []

    result = await repo.search_resources(
        "ProjectMembership",
        {"user.reference": user.reference},
        limit=1000,
    )
    return result.unwrap()
