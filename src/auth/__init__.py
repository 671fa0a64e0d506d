"""Authentication module."""

from src.auth.dependencies import get_current_user, require_admin, scope_salesperson
from src.auth.jwt import TokenClaims, create_access_token, verify_token

__all__ = [
    "TokenClaims",
    "create_access_token",
    "verify_token",
    "get_current_user",
    "require_admin",
    "scope_salesperson",
]
