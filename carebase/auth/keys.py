# =============================================================================
# Access Token Signing
# =============================================================================
#
# Narrow token contract used once a login has been granted:
#   - generate_access_token(claims) signs a JWT
#   - decode_access_token(token) validates and returns the claims
#
# Signing keys and algorithm come from settings (JWT_SECRET_KEY,
# JWT_ALGORITHM). Swap this module for an asymmetric key store in
# production deployments.
#
# =============================================================================

from datetime import timedelta
import logging

from pydantic import BaseModel, ValidationError
import jwt

from carebase.config import get_settings
from carebase.core.utils import generate_id, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Models
# =============================================================================

class AccessTokenClaims(BaseModel):
    """Claims carried by an access token."""
    login_id: str
    sub: str  # user id
    username: str
    client_id: str | None = None
    profile: str  # "Type/id" of the bound profile
    scope: str = "openid"


# =============================================================================
# Token Creation
# =============================================================================

def generate_access_token(claims: AccessTokenClaims) -> str:
    """Create a signed JWT access token."""
    settings = get_settings()
    now = utc_now()
    payload = {
        **claims.model_dump(exclude_none=True),
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "jti": generate_id(),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


# =============================================================================
# Token Validation
# =============================================================================

class TokenError(Exception):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


def decode_access_token(token: str) -> AccessTokenClaims:
    """
    Decode and validate an access token.

    Raises:
        TokenExpiredError: Token has expired
        TokenInvalidError: Token is invalid
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return AccessTokenClaims.model_validate(payload)
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected access token: {e}")
        raise TokenInvalidError(f"Invalid token: {e}")
    except ValidationError:
        raise TokenInvalidError("Invalid token: missing claims")
