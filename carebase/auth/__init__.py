"""
Authentication core - login lifecycle and profile binding.

A Login records one authentication attempt. It is bound once to a
project membership (choosing the project, profile and access policy the
session acts as) and then granted, or revoked before it is granted.
"""

from carebase.auth.login import (
    LoginState,
    ProfileBinding,
    bind_profile,
    get_login_state,
    grant_login,
    revoke_login,
)
from carebase.auth.memberships import get_user_memberships
from carebase.auth.keys import (
    AccessTokenClaims,
    TokenError,
    decode_access_token,
    generate_access_token,
)

__all__ = [
    # Login lifecycle
    "LoginState",
    "ProfileBinding",
    "bind_profile",
    "get_login_state",
    "grant_login",
    "revoke_login",
    # Memberships
    "get_user_memberships",
    # Tokens
    "AccessTokenClaims",
    "TokenError",
    "decode_access_token",
    "generate_access_token",
]
