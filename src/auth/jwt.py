"""
Session tokens (python-jose, HS256) carried in the httpOnly
ACCESS_TOKEN_COOKIE.

A token names the user and the role it was issued for. The role is
checked again against the stored account on every request, so demoting an
administrator takes effect without waiting for the token to expire.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from src.config import settings
from src.models.user import UserRole

ALGORITHM = "HS256"
TOKEN_TYPE = "access"
ACCESS_TOKEN_COOKIE = "access_token"


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: UserRole


def create_access_token(
    user_id: int,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a session token for `user_id` acting as `role`."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta if expires_delta is not None else timedelta(hours=settings.jwt_expire_hours)

    claims = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "type": TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[TokenClaims]:
    """Decode a session token; None when it is forged, expired or malformed."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None

    if payload.get("type") != TOKEN_TYPE:
        return None

    try:
        return TokenClaims(user_id=int(payload["sub"]), role=UserRole(payload["role"]))
    except (KeyError, TypeError, ValueError):
        return None


def get_token_from_cookie(request) -> Optional[str]:
    return request.cookies.get(ACCESS_TOKEN_COOKIE)
