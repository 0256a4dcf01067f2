"""
Login lifecycle.

A Login moves through a small state machine:

    pending --bind_profile--> profile-bound --grant_login--> granted
       |                           |
       +-------revoke_login--------+--> revoked

Binding happens once. Every transition re-reads the login through the
repository and writes it back with update_resource(), so two racing
transitions on the same login cannot both commit: the loser gets a
Conflict outcome and may retry after re-reading.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from carebase.auth.memberships import get_user_memberships
from carebase.core import outcome as outcomes
from carebase.core.models import Login, create_reference
from carebase.core.outcome import Outcome, RepositoryResult, failure
from carebase.fhir.repo import Repository

logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    PENDING = "pending"
    PROFILE_BOUND = "profile-bound"
    GRANTED = "granted"
    REVOKED = "revoked"


def get_login_state(login: Login) -> LoginState:
    """Derive the lifecycle state of a login from its fields."""
    if login.revoked:
        return LoginState.REVOKED
    if login.granted:
        return LoginState.GRANTED
    if login.project or login.profile:
        return LoginState.PROFILE_BOUND
    return LoginState.PENDING


@dataclass(frozen=True)
class ProfileBinding:
    """What the caller of bind_profile gets back: the login id and its code."""

    login: str
    code: str | None

    def to_dict(self) -> dict[str, str | None]:
        return {"login": self.login, "code": self.code}


def _check_bindable(login: Login) -> Outcome | None:
    # Order matters: each failure has its own message.
    if login.revoked:
        return outcomes.invalid_state("Login revoked")
    if login.granted:
        return outcomes.invalid_state("Login granted")
    if login.project or login.profile:
        return outcomes.invalid_state("Login profile set")
    return None


async def bind_profile(repo: Repository, login_id: str, membership_id: str) -> RepositoryResult:
    """
    Bind a pending login to one of its user's memberships.

    Sets the login's project and profile to fresh references to the
    membership's project and profile, and copies the membership's
    access policy.

    Returns:
        RepositoryResult whose value is a ProfileBinding on success.
        Failures: NotFound (login), InvalidState, ProfileNotFound, any
        outcome from resolving the project/profile, Conflict or any
        other outcome from the write.
    """
    outcome, login = await repo.read_resource("Login", login_id)
    if not outcome.ok:
        return failure(outcome)

    rejection = _check_bindable(login)
    if rejection:
        logger.info(f"Rejected profile selection for Login/{login_id}: {rejection.message}")
        return failure(rejection)

    memberships = await get_user_memberships(repo, login.user)
    membership = next((m for m in memberships if m.id == membership_id), None)
    if membership is None:
        return failure(outcomes.profile_not_found())

    # Up-to-date project and profile
    outcome, project = await repo.read_reference(membership.project)
    if not outcome.ok:
        return failure(outcome)

    outcome, profile = await repo.read_reference(membership.profile)
    if not outcome.ok:
        return failure(outcome)

    updated = login.model_copy(update={
        "project": create_reference(project),
        "profile": create_reference(profile),
        "access_policy": membership.access_policy,
    })
    outcome, _ = await repo.update_resource(updated)
    if not outcome.ok:
        return failure(outcome)

    logger.info(f"Bound Login/{login.id} to {profile.resource_type}/{profile.id} in Project/{project.id}")
    return RepositoryResult(outcomes.all_ok(), ProfileBinding(login=login.id, code=login.code))


async def revoke_login(repo: Repository, login_id: str) -> RepositoryResult:
    """Revoke a pending or profile-bound login. Returns the updated login."""
    outcome, login = await repo.read_resource("Login", login_id)
    if not outcome.ok:
        return failure(outcome)

    if login.revoked:
        return failure(outcomes.invalid_state("Login revoked"))
    if login.granted:
        return failure(outcomes.invalid_state("Login granted"))

    result = await repo.update_resource(login.model_copy(update={"revoked": True}))
    if result.ok:
        logger.info(f"Revoked Login/{login_id}")
    return result


async def grant_login(repo: Repository, login_id: str) -> RepositoryResult:
    """
    Mark a profile-bound login as granted. Returns the updated login.

    A login cannot be granted before it is bound to a profile.
    """
    outcome, login = await repo.read_resource("Login", login_id)
    if not outcome.ok:
        return failure(outcome)

    state = get_login_state(login)
    if state == LoginState.REVOKED:
        return failure(outcomes.invalid_state("Login revoked"))
    if state == LoginState.GRANTED:
        return failure(outcomes.invalid_state("Login granted"))
    if state == LoginState.PENDING:
        return failure(outcomes.invalid_state("Login profile not set"))

    result = await repo.update_resource(login.model_copy(update={"granted": True}))
    if result.ok:
        logger.info(f"Granted Login/{login_id}")
    return result
