"""
FastAPI dependencies for authentication.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.jwt import get_token_from_cookie, verify_token
from src.db import get_db
from src.models import User
from src.services.errors import AuthorizationError


async def _user_from_token(request: Request, db: AsyncSession) -> Optional[User]:
    token = get_token_from_cookie(request)
    if not token:
        return None

    claims = verify_token(token)
    if not claims:
        return None

    user = await db.get(User, claims.user_id)
    # Token issued for a role the account no longer has
    if user is not None and user.role != claims.role:
        return None
    return user


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Get current user from JWT cookie if present.

    Returns None if no valid token found (doesn't raise error).
    """
    user = await _user_from_token(request, db)
    if not user or not user.is_active:
        return None
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user.

    Raises 401 if not authenticated, 403 if the account is disabled.
    """
    if not get_token_from_cookie(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    user = await _user_from_token(request, db)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


async def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Require the current user to be an administrator.

    Raises AuthorizationError (403) otherwise.
    """
    if not current_user.is_admin:
        raise AuthorizationError("Administrator access required")
    return current_user


def scope_salesperson(current_user: User, salesperson_id: Optional[int]) -> Optional[int]:
    """Salesperson filter a user may query: administrators any, others only themselves."""
    if current_user.is_admin:
        return salesperson_id
    if salesperson_id is not None and salesperson_id != current_user.id:
        raise AuthorizationError("Salespeople can only view their own commission")
    return current_user.id
