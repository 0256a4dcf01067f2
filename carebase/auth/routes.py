# =============================================================================
# Auth API Routes
# =============================================================================
#
# Endpoints:
#   POST /auth/profile  - Choose the profile (membership) a login acts as
#
# Credential checks happen before a Login exists; this router only moves
# an existing login along its lifecycle.
#
# =============================================================================

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_exponential

from carebase.api.deps import get_system_repo
from carebase.api.outcomes import send_outcome
from carebase.auth.login import bind_profile
from carebase.config import get_settings
from carebase.core import outcome as outcomes
from carebase.core.outcome import RepositoryResult
from carebase.fhir.repo import Repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# Request/Response Models
# =============================================================================

class ProfileRequest(BaseModel):
    # Optional here so a missing field gets an OperationOutcome, not a 422
    login: str | None = None
    profile: str | None = None


class ProfileResponse(BaseModel):
    login: str
    code: str | None


# =============================================================================
# Helpers
# =============================================================================

def _lost_race(result: RepositoryResult) -> bool:
    return result.outcome.retryable


async def bind_profile_with_retry(repo: Repository, login_id: str, membership_id: str) -> RepositoryResult:
    """
    Run bind_profile, re-running it from the top when the write loses a race.

    Each attempt re-reads the login, so a retry after a concurrent bind
    ends in "Login profile set" rather than overwriting it. When the
    attempts run out the last Conflict is returned.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(get_settings().conflict_retry_attempts),
        wait=wait_exponential(multiplier=0.01, max=0.1),
        retry=retry_if_result(_lost_race),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    result = await retrying(bind_profile, repo, login_id, membership_id)
    if result.outcome.retryable:
        logger.warning(f"Gave up binding Login/{login_id} after repeated version conflicts")
    return result


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/profile", response_model=ProfileResponse)
async def choose_profile(
    data: ProfileRequest,
    repo: Repository = Depends(get_system_repo),
):
    """
    Bind a login to one of the user's project memberships.

    Returns the login id and its code, which the client exchanges for tokens.
    """
    if not data.login:
        return send_outcome(outcomes.bad_request("Missing login", "login"))
    if not data.profile:
        return send_outcome(outcomes.bad_request("Missing profile", "profile"))

    outcome, binding = await bind_profile_with_retry(repo, data.login, data.profile)
    if not outcome.ok:
        return send_outcome(outcome)

    return ProfileResponse(login=binding.login, code=binding.code)
