"""
Local storage implementations for development and tests.

These are in-memory or filesystem-based implementations
that work without any external services.
"""

from __future__ import annotations

import asyncio
import base64
import copy
import hashlib
import hmac
import time
from pathlib import Path
from typing import Any, AsyncIterable
from urllib.parse import urlencode

from carebase.config import get_settings
from carebase.core.models import Binary
from carebase.storage.base import (
    BinarySink,
    ContentNotFoundError,
    ContentStorage,
    ResourceStorage,
    StorageProvider,
    StoredVersion,
    VersionConflictError,
    storage_key,
)


# =============================================================================
# In-Memory Resource Storage
# =============================================================================


def _get_path(doc: dict[str, Any], path: str) -> Any:
    value: Any = doc
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


class InMemoryResourceStorage(ResourceStorage):
    """In-memory versioned resource storage for development."""

    def __init__(self):
        # (resource_type, id) -> versions, oldest first
        self._versions: dict[tuple[str, str], list[StoredVersion]] = {}
        self._lock = asyncio.Lock()

    async def get(self, resource_type: str, id: str) -> StoredVersion | None:
        versions = self._versions.get((resource_type, id))
        if not versions:
            return None
        return _copy(versions[-1])

    async def get_version(self, resource_type: str, id: str, version_id: str) -> StoredVersion | None:
        for version in self._versions.get((resource_type, id), []):
            if version.version_id == version_id:
                return _copy(version)
        return None

    async def history(self, resource_type: str, id: str) -> list[StoredVersion]:
        return [_copy(v) for v in reversed(self._versions.get((resource_type, id), []))]

    async def append(self, version: StoredVersion, expected_version: str | None) -> None:
        key = (version.resource_type, version.id)
        async with self._lock:
            versions = self._versions.setdefault(key, [])
            actual = versions[-1].version_id if versions else None
            if actual != expected_version:
                raise VersionConflictError(version.resource_type, version.id, expected_version, actual)
            versions.append(_copy(version))

    async def query(
        self,
        resource_type: str,
        filters: dict[str, Any] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        results = []
        for (rtype, _), versions in self._versions.items():
            if rtype != resource_type or versions[-1].deleted:
                continue
            doc = versions[-1].content

            # Apply filters
            if filters and any(_get_path(doc, k) != v for k, v in filters.items()):
                continue
            results.append(copy.deepcopy(doc))

        # Apply pagination
        return results[offset:offset + limit]


def _copy(version: StoredVersion) -> StoredVersion:
    return StoredVersion(
        resource_type=version.resource_type,
        id=version.id,
        version_id=version.version_id,
        last_updated=version.last_updated,
        content=copy.deepcopy(version.content),
    )


# =============================================================================
# Local Filesystem Content Storage
# =============================================================================


class LocalContentStorage(ContentStorage):
    """Store binary content on local filesystem."""

    def __init__(
        self,
        base_path: str,
        base_url: str,
        signing_key: str,
        chunk_size: int = 64 * 1024,
        expires_in: int = 3600,
    ):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url
        self.signing_key = signing_key
        self.chunk_size = chunk_size
        self.expires_in = expires_in

    def _key_to_path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Invalid storage key: {key}")
        return path

    async def write_binary(self, binary: Binary, chunks: AsyncIterable[bytes] | bytes) -> int:
        path = self._key_to_path(storage_key(binary))
        path.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        with open(path, "wb") as f:
            if isinstance(chunks, bytes):
                f.write(chunks)
                written = len(chunks)
            else:
                async for chunk in chunks:
                    f.write(chunk)
                    written += len(chunk)
        return written

    async def read_binary(self, binary: Binary, sink: BinarySink) -> int:
        path = self._key_to_path(storage_key(binary))
        if not path.exists():
            raise ContentNotFoundError(f"Content not found: {storage_key(binary)}")
        sent = 0
        with open(path, "rb") as f:
            while True:
                chunk = f.read(self.chunk_size)
                if not chunk:
                    break
                await sink.write(chunk)
                sent += len(chunk)
        return sent

    async def delete_binary(self, binary: Binary) -> bool:
        path = self._key_to_path(storage_key(binary))
        if path.exists():
            path.unlink()
            return True
        return False

    def get_presigned_url(self, binary: Binary, expires_in: int | None = None) -> str:
        """
        Build a CloudFront-style signed URL served by the storage endpoint.

        The signature is an HMAC-SHA256 over "{url}?Expires={expires}".
        """
        url = self.base_url + storage_key(binary)
        expires = int(time.time()) + (expires_in or self.expires_in)
        digest = hmac.new(
            self.signing_key.encode("utf-8"),
            f"{url}?Expires={expires}".encode("utf-8"),
            hashlib.sha256,
        ).digest()
        signature = base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
        return f"{url}?{urlencode({'Expires': expires, 'Signature': signature})}"


# =============================================================================
# Factory
# =============================================================================


def create_local_storage(data_dir: str | None = None) -> StorageProvider:
    """Create a StorageProvider with local implementations."""
    settings = get_settings()
    return StorageProvider(
        resources=InMemoryResourceStorage(),
        content=LocalContentStorage(
            data_dir or settings.binary_storage_path,
            base_url=settings.storage_base_url,
            signing_key=settings.signing_key,
            chunk_size=settings.binary_chunk_size,
            expires_in=settings.signed_url_expires_in,
        ),
    )
