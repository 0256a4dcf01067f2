"""
Shared utility functions for carebase.

This module contains common utilities used across the codebase.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone


def generate_id() -> str:
    """
    Generate a resource ID.

    Resource IDs are bare UUIDs so they can be embedded in
    "Type/id" reference strings without escaping.
    """
    return str(uuid.uuid4())


def generate_version_id() -> str:
    """Generate a version ID for a new resource revision."""
    return str(uuid.uuid4())


def generate_code() -> str:
    """Generate an opaque, URL-safe continuation code for a login."""
    return secrets.token_urlsafe(32)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Get current UTC time as an ISO-8601 string with millisecond precision."""
    return utc_now().isoformat(timespec="milliseconds").replace("+00:00", "Z")
