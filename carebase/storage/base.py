"""
Storage abstraction layer.

All persistence goes through these interfaces. The repository is the
only caller of ResourceStorage; the binary gateway is the only reader of
ContentStorage. This allows swapping implementations (in-memory ->
PostgreSQL, filesystem -> S3) without changing the core.

Integration Points:
- ResourceStorage -> PostgreSQL (one row per version)
- ContentStorage -> S3 / CloudFront signed URLs
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterable

from pydantic import BaseModel

from carebase.core.models import Binary


# =============================================================================
# Errors
# =============================================================================


class StorageError(Exception):
    """Base exception for storage errors."""
    pass


class VersionConflictError(StorageError):
    """The stored version moved past the version the writer expected."""

    def __init__(self, resource_type: str, id: str, expected: str | None, actual: str | None):
        super().__init__(
            f"{resource_type}/{id}: expected version {expected}, found {actual}"
        )
        self.expected = expected
        self.actual = actual


class ContentNotFoundError(StorageError):
    """No bytes are stored for a binary."""
    pass


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True)
class StoredVersion:
    """
    One immutable revision of a resource.

    content is the resource JSON, or None for a deletion marker.
    """

    resource_type: str
    id: str
    version_id: str
    last_updated: str
    content: dict[str, Any] | None

    @property
    def deleted(self) -> bool:
        return self.content is None


def storage_key(binary: Binary) -> str:
    """Locator of a binary's bytes: "{id}/{versionId}"."""
    if binary.url and not binary.url.startswith(("http://", "https://")):
        return binary.url
    version_id = binary.meta.version_id if binary.meta else None
    return f"{binary.id}/{version_id}" if version_id else str(binary.id)


# =============================================================================
# Storage Interfaces
# =============================================================================


class BinarySink(ABC):
    """Writable destination for streamed bytes."""

    @abstractmethod
    async def write(self, chunk: bytes) -> None:
        """Write a chunk. May block until the consumer catches up."""
        pass


class ResourceStorage(ABC):
    """
    Versioned storage for resource JSON.

    Every write appends a StoredVersion. Writes are compare-and-set
    against the latest version id, and either commit fully or not at all.
    """

    @abstractmethod
    async def get(self, resource_type: str, id: str) -> StoredVersion | None:
        """Get the latest version (possibly a deletion marker)."""
        pass

    @abstractmethod
    async def get_version(self, resource_type: str, id: str, version_id: str) -> StoredVersion | None:
        """Get a specific version."""
        pass

    @abstractmethod
    async def history(self, resource_type: str, id: str) -> list[StoredVersion]:
        """All versions, newest first."""
        pass

    @abstractmethod
    async def append(self, version: StoredVersion, expected_version: str | None) -> None:
        """
        Append a version.

        expected_version is the version id the writer last observed, or
        None when the resource must not exist yet.

        Raises:
            VersionConflictError: latest stored version differs from expected_version
        """
        pass

    @abstractmethod
    async def query(
        self,
        resource_type: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Query live resources.

        Filter keys are dotted paths into the resource JSON
        ("user.reference"); values must match exactly.
        """
        pass


class ContentStorage(ABC):
    """
    Storage for binary content (documents, images, attachments).

    AWS Implementation: S3
    Local Implementation: Filesystem
    """

    @abstractmethod
    async def write_binary(self, binary: Binary, chunks: AsyncIterable[bytes] | bytes) -> int:
        """Store the bytes for a binary, return the number of bytes written."""
        pass

    @abstractmethod
    async def read_binary(self, binary: Binary, sink: BinarySink) -> int:
        """
        Stream the bytes for a binary into a sink.

        Returns the number of bytes written.

        Raises:
            ContentNotFoundError: nothing stored for this binary
        """
        pass

    @abstractmethod
    async def delete_binary(self, binary: Binary) -> bool:
        """Delete the bytes for a binary."""
        pass

    @abstractmethod
    def get_presigned_url(self, binary: Binary, expires_in: int | None = None) -> str:
        """Get a signed URL for direct access."""
        pass


# =============================================================================
# Storage Provider (dependency injection container)
# =============================================================================


class StorageProvider(BaseModel):
    """
    Container for all storage backends.

    Initialize once at app startup with appropriate implementations.
    """

    model_config = {"arbitrary_types_allowed": True}

    resources: ResourceStorage
    content: ContentStorage
