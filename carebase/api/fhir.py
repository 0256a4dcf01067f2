"""
FHIR REST endpoints.

Thin adapters over the repository: each handler makes one repository
call and translates its outcome. Resource types that drive
authentication cannot be touched through these routes.
"""

from __future__ import annotations

import re
from typing import Any

from fastapi import APIRouter, Body, Depends, Header

from carebase.api.deps import get_user_repo
from carebase.api.outcomes import send_outcome, send_resource
from carebase.core import outcome as outcomes
from carebase.fhir.repo import Repository

router = APIRouter(prefix="/fhir/R4", tags=["fhir"])

# Managed by the auth and admin flows only
PROTECTED_RESOURCE_TYPES = {"Login", "User", "Project", "ProjectMembership", "ClientApplication"}

_ETAG = re.compile(r'^(?:W/)?"?([^"]+)"?$')

# Meta fields the repository stamps on create; clients may not choose them
_SERVER_META = ("project", "author", "versionId", "lastUpdated")


def _check_type(resource_type: str) -> outcomes.Outcome | None:
    if resource_type in PROTECTED_RESOURCE_TYPES:
        return outcomes.forbidden()
    return None


def _strip_server_meta(body: dict[str, Any]) -> dict[str, Any]:
    meta = {k: v for k, v in (body.get("meta") or {}).items() if k not in _SERVER_META}
    return {**body, "meta": meta}


@router.get("/{resource_type}/{id}")
async def read_resource(resource_type: str, id: str, repo: Repository = Depends(get_user_repo)):
    error = _check_type(resource_type)
    if error:
        return send_outcome(error)
    outcome, resource = await repo.read_resource(resource_type, id)
    if not outcome.ok:
        return send_outcome(outcome)
    return send_resource(outcome, resource)


@router.get("/{resource_type}/{id}/_history")
async def read_history(resource_type: str, id: str, repo: Repository = Depends(get_user_repo)):
    error = _check_type(resource_type)
    if error:
        return send_outcome(error)
    outcome, versions = await repo.read_history(resource_type, id)
    if not outcome.ok:
        return send_outcome(outcome)

    entries: list[dict[str, Any]] = []
    for version in versions:
        if version is None:
            entries.append({"request": {"method": "DELETE", "url": f"{resource_type}/{id}"}})
        else:
            entries.append({"resource": version.to_json_dict()})
    return {"resourceType": "Bundle", "type": "history", "entry": entries}


@router.get("/{resource_type}/{id}/_history/{version_id}")
async def read_version(
    resource_type: str,
    id: str,
    version_id: str,
    repo: Repository = Depends(get_user_repo),
):
    error = _check_type(resource_type)
    if error:
        return send_outcome(error)
    outcome, resource = await repo.read_version(resource_type, id, version_id)
    if not outcome.ok:
        return send_outcome(outcome)
    return send_resource(outcome, resource)


@router.post("/{resource_type}")
async def create_resource(
    resource_type: str,
    body: dict[str, Any] = Body(...),
    repo: Repository = Depends(get_user_repo),
):
    error = _check_type(resource_type)
    if error:
        return send_outcome(error)
    if body.get("resourceType") != resource_type:
        return send_outcome(outcomes.bad_request("Incorrect resource type", "resourceType"))

    outcome, resource = await repo.create_resource(_strip_server_meta(body))
    if not outcome.ok:
        return send_outcome(outcome)
    return send_resource(outcome, resource)


@router.put("/{resource_type}/{id}")
async def update_resource(
    resource_type: str,
    id: str,
    body: dict[str, Any] = Body(...),
    if_match: str | None = Header(default=None),
    repo: Repository = Depends(get_user_repo),
):
    error = _check_type(resource_type)
    if error:
        return send_outcome(error)
    if body.get("resourceType") != resource_type:
        return send_outcome(outcomes.bad_request("Incorrect resource type", "resourceType"))
    if body.get("id") != id:
        return send_outcome(outcomes.bad_request("Incorrect ID", "id"))

    # If-Match pins the version the client's copy was based on
    match = _ETAG.match(if_match.strip()) if if_match else None
    if match:
        body = {**body, "meta": {**(body.get("meta") or {}), "versionId": match.group(1)}}

    outcome, resource = await repo.update_resource(body)
    if not outcome.ok:
        return send_outcome(outcome)
    return send_resource(outcome, resource)


@router.delete("/{resource_type}/{id}")
async def delete_resource(resource_type: str, id: str, repo: Repository = Depends(get_user_repo)):
    error = _check_type(resource_type)
    if error:
        return send_outcome(error)
    outcome, _ = await repo.delete_resource(resource_type, id)
    return send_outcome(outcome)
