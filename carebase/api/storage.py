"""
Binary storage endpoint.

Emulates CDN signed-URL delivery for local development: URLs produced by
ContentStorage.get_presigned_url() point here. The signature must be
present; verifying it is left to the CDN in production deployments.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response, StreamingResponse

from carebase.api.deps import get_gateway
from carebase.api.outcomes import send_outcome
from carebase.core.outcome import OutcomeKind
from carebase.storage.gateway import BinaryGateway

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{id}")
@router.get("/{id}/{version_id}")
async def get_binary(
    id: str,
    version_id: str | None = None,
    signature: str | None = Query(default=None, alias="Signature"),
    gateway: BinaryGateway = Depends(get_gateway),
):
    """Stream the content of a binary."""
    outcome, download = await gateway.retrieve(id, version_id, signature)
    if outcome.kind == OutcomeKind.UNAUTHORIZED:
        return Response(status_code=401)
    if not outcome.ok:
        return send_outcome(outcome)

    # A known length lets clients tell a truncated transfer from a short file
    headers = {}
    if download.size is not None:
        headers["Content-Length"] = str(download.size)

    return StreamingResponse(
        download.body,
        status_code=200,
        media_type=download.content_type,
        headers=headers,
    )
