"""
Translate outcomes to HTTP responses.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from carebase.core.models import Resource
from carebase.core.outcome import Outcome


def send_outcome(outcome: Outcome) -> JSONResponse:
    """Render an outcome as an OperationOutcome with its status code."""
    return JSONResponse(outcome.to_operation_outcome(), status_code=outcome.status)


def send_resource(outcome: Outcome, resource: Resource) -> JSONResponse:
    """Render a resource with the outcome's status and an ETag for its version."""
    headers = {}
    if resource.meta and resource.meta.version_id:
        headers["ETag"] = f'W/"{resource.meta.version_id}"'
    return JSONResponse(resource.to_json_dict(), status_code=outcome.status, headers=headers)
