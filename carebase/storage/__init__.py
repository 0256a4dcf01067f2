"""
Storage abstractions.

Integration Points:
- ResourceStorage -> PostgreSQL (versioned resource rows)
- ContentStorage -> S3 (binary content behind signed URLs)
"""

from carebase.storage.base import (
    BinarySink,
    ContentNotFoundError,
    ContentStorage,
    ResourceStorage,
    StorageError,
    StorageProvider,
    StoredVersion,
    VersionConflictError,
    storage_key,
)
from carebase.storage.local import (
    InMemoryResourceStorage,
    LocalContentStorage,
    create_local_storage,
)

__all__ = [
    "BinarySink",
    "ContentNotFoundError",
    "ContentStorage",
    "ResourceStorage",
    "StorageError",
    "StorageProvider",
    "StoredVersion",
    "VersionConflictError",
    "storage_key",
    "InMemoryResourceStorage",
    "LocalContentStorage",
    "create_local_storage",
]
