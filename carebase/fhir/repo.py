"""
Resource repository.

Every resource read and write goes through a Repository. Operations
never raise for expected conditions; they return a RepositoryResult
whose outcome classifies what happened:

    outcome, project = await repo.read_reference(membership.project)
    if not outcome.ok:
        return RepositoryResult(outcome)

Writes are optimistic: update_resource() compares the caller's
meta.versionId with the stored latest version and rejects the write
with a Conflict outcome if it has moved on.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from pydantic import ValidationError

from carebase.core import outcome as outcomes
from carebase.core.models import Reference, Resource, parse_reference
from carebase.core.outcome import RepositoryResult, failure
from carebase.core.registry import RegistryError, ResourceTypeRegistry, get_registry
from carebase.core.utils import generate_id, generate_version_id, utc_now_iso
from carebase.storage.base import ResourceStorage, StoredVersion, VersionConflictError

logger = logging.getLogger(__name__)


def _format_validation_error(error: ValidationError) -> tuple[str, str | None]:
    first = error.errors()[0]
    expression = ".".join(str(p) for p in first.get("loc", ())) or None
    message = first.get("msg", "Invalid resource")
    return (f"{message} ({expression})" if expression else message), expression


class Repository:
    """
    Mediates access to stored resources.

    A repository may be scoped to a project and an author; created
    resources are stamped with both in their meta envelope. The system
    repository has neither.
    """

    def __init__(
        self,
        storage: ResourceStorage,
        project: str | None = None,
        author: Reference | None = None,
        registry: ResourceTypeRegistry | None = None,
    ):
        self.storage = storage
        self.project = project
        self.author = author
        self.registry = registry or get_registry()

    # =========================================================================
    # Writes
    # =========================================================================

    async def create_resource(self, candidate: Resource | dict[str, Any]) -> RepositoryResult:
        """Assign identity and metadata, validate, and store version 1."""
        data = self._to_json(candidate)
        data["id"] = generate_id()

        meta = data.get("meta") or {}
        data["meta"] = self._build_meta(meta, project=meta.get("project") or self.project)

        error, resource = self._validate(data)
        if error:
            return failure(error)

        try:
            await self.storage.append(self._to_version(resource), expected_version=None)
        except VersionConflictError as e:
            logger.warning(f"Create collided with an existing resource: {e}")
            return failure(outcomes.conflict(str(e)))

        logger.debug(f"Created {resource.resource_type}/{resource.id}")
        return RepositoryResult(outcomes.created(), resource)

    async def update_resource(self, resource: Resource | dict[str, Any]) -> RepositoryResult:
        """
        Store a new version of an existing resource.

        The caller's meta.versionId is the version its view was based on.
        If it is absent the write is checked against the version current
        at the time of the call.
        """
        data = self._to_json(resource)
        resource_type = data.get("resourceType")
        id = data.get("id")
        if not id:
            return failure(outcomes.validation_error("Missing id", "id"))
        if not isinstance(resource_type, str) or not self.registry.is_registered(resource_type):
            return failure(outcomes.validation_error(f"Unknown resource type: {resource_type}", "resourceType"))

        current = await self.storage.get(resource_type, id)
        if current is None:
            return failure(outcomes.not_found())
        if current.deleted:
            return failure(outcomes.gone())

        meta = data.get("meta") or {}
        expected = meta.get("versionId") or current.version_id
        if expected != current.version_id:
            logger.info(f"Stale update of {resource_type}/{id}: based on {expected}, latest {current.version_id}")
            return failure(outcomes.conflict())

        # Ownership never changes on update
        project = (current.content.get("meta") or {}).get("project") or meta.get("project")
        data["meta"] = self._build_meta(meta, project=project)

        error, updated = self._validate(data)
        if error:
            return failure(error)

        try:
            await self.storage.append(self._to_version(updated), expected_version=expected)
        except VersionConflictError as e:
            logger.info(f"Lost update race on {resource_type}/{id}: {e}")
            return failure(outcomes.conflict())

        logger.debug(f"Updated {resource_type}/{id} to version {updated.meta.version_id}")
        return RepositoryResult(outcomes.all_ok(), updated)

    async def delete_resource(self, resource_type: str, id: str) -> RepositoryResult:
        """Append a deletion marker; later reads yield Gone."""
        if not self.registry.is_registered(resource_type):
            return failure(outcomes.invalid_reference(f"Unknown resource type: {resource_type}"))

        current = await self.storage.get(resource_type, id)
        if current is None:
            return failure(outcomes.not_found())
        if current.deleted:
            return failure(outcomes.gone())

        marker = StoredVersion(
            resource_type=resource_type,
            id=id,
            version_id=generate_version_id(),
            last_updated=utc_now_iso(),
            content=None,
        )
        try:
            await self.storage.append(marker, expected_version=current.version_id)
        except VersionConflictError:
            return failure(outcomes.conflict())

        logger.debug(f"Deleted {resource_type}/{id}")
        return RepositoryResult(outcomes.all_ok())

    # =========================================================================
    # Reads
    # =========================================================================

    async def read_resource(self, resource_type: str, id: str) -> RepositoryResult:
        """Read the current version of a resource."""
        if not self.registry.is_registered(resource_type):
            return failure(outcomes.invalid_reference(f"Unknown resource type: {resource_type}"))

        version = await self.storage.get(resource_type, id)
        return self._from_version(version)

    async def read_version(self, resource_type: str, id: str, version_id: str) -> RepositoryResult:
        """Read a specific revision of a resource."""
        if not self.registry.is_registered(resource_type):
            return failure(outcomes.invalid_reference(f"Unknown resource type: {resource_type}"))

        version = await self.storage.get_version(resource_type, id, version_id)
        return self._from_version(version)

    async def read_history(self, resource_type: str, id: str) -> RepositoryResult:
        """
        Read every revision, newest first.

        Deletion markers are included as None entries so callers can
        see when a resource was deleted.
        """
        if not self.registry.is_registered(resource_type):
            return failure(outcomes.invalid_reference(f"Unknown resource type: {resource_type}"))

        versions = await self.storage.history(resource_type, id)
        if not versions:
            return failure(outcomes.not_found())
        return RepositoryResult(
            outcomes.all_ok(),
            [None if v.deleted else self.registry.parse(v.content) for v in versions],
        )

    async def read_reference(self, reference: Reference | str | None) -> RepositoryResult:
        """Resolve a "Type/id" pointer to the live resource."""
        parsed = parse_reference(reference)
        if parsed is None:
            return failure(outcomes.invalid_reference())

        resource_type, id = parsed
        if not self.registry.is_registered(resource_type):
            return failure(outcomes.invalid_reference(f"Unknown resource type: {resource_type}"))

        return await self.read_resource(resource_type, id)

    async def search_resources(
        self,
        resource_type: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> RepositoryResult:
        """Find live resources whose fields equal the given values."""
        if not self.registry.is_registered(resource_type):
            return failure(outcomes.invalid_reference(f"Unknown resource type: {resource_type}"))

        docs = await self.storage.query(resource_type, filters, limit=limit, offset=offset)
        return RepositoryResult(outcomes.all_ok(), [self.registry.parse(d) for d in docs])

    # =========================================================================
    # Helpers
    # =========================================================================

    def _to_json(self, resource: Resource | dict[str, Any]) -> dict[str, Any]:
        if isinstance(resource, Resource):
            return resource.to_json_dict()
        return copy.deepcopy(resource)

    def _build_meta(self, meta: dict[str, Any], project: str | None) -> dict[str, Any]:
        result = {
            **meta,
            "versionId": generate_version_id(),
            "lastUpdated": utc_now_iso(),
        }
        if project:
            result["project"] = project
        if self.author:
            result["author"] = self.author.to_json_dict()
        return result

    def _validate(self, data: dict[str, Any]) -> tuple[outcomes.Outcome | None, Resource | None]:
        try:
            return None, self.registry.parse(data)
        except RegistryError as e:
            return outcomes.validation_error(str(e), "resourceType"), None
        except ValidationError as e:
            message, expression = _format_validation_error(e)
            return outcomes.validation_error(message, expression), None

    def _to_version(self, resource: Resource) -> StoredVersion:
        return StoredVersion(
            resource_type=resource.resource_type,
            id=resource.id,
            version_id=resource.meta.version_id,
            last_updated=resource.meta.last_updated,
            content=resource.to_json_dict(),
        )

    def _from_version(self, version: StoredVersion | None) -> RepositoryResult:
        if version is None:
            return failure(outcomes.not_found())
        if version.deleted:
            return failure(outcomes.gone())
        return RepositoryResult(outcomes.all_ok(), self.registry.parse(version.content))
