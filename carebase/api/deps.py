"""
FastAPI dependencies shared by the routers.

Storage lives on app.state and is set once when the app is created.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from carebase.auth.keys import AccessTokenClaims, TokenError, decode_access_token
from carebase.config import get_settings
from carebase.core.models import Reference
from carebase.fhir.repo import Repository
from carebase.storage.base import StorageProvider
from carebase.storage.gateway import BinaryGateway


# Optional bearer (doesn't fail if no token, so we can answer with our own 401)
optional_bearer = HTTPBearer(auto_error=False)


def get_storage(request: Request) -> StorageProvider:
    return request.app.state.storage


def get_system_repo(storage: StorageProvider = Depends(get_storage)) -> Repository:
    """Repository with no project or author scope."""
    return Repository(storage.resources)


def get_gateway(
    storage: StorageProvider = Depends(get_storage),
    repo: Repository = Depends(get_system_repo),
) -> BinaryGateway:
    return BinaryGateway(repo, storage.content, queue_size=get_settings().stream_queue_size)


async def require_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> AccessTokenClaims:
    """Resolve the bearer token's claims, or reject with 401."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        return decode_access_token(credentials.credentials)
    except TokenError as e:
        raise HTTPException(status_code=401, detail=str(e))


def get_user_repo(
    claims: AccessTokenClaims = Depends(require_access_token),
    storage: StorageProvider = Depends(get_storage),
) -> Repository:
    """Repository acting as the token's profile."""
    return Repository(storage.resources, author=Reference(reference=claims.profile))
