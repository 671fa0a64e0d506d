"""
Authentication API endpoints.

Login exchanges credentials for a session cookie; every other endpoint
reads the caller from that cookie.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth.dependencies import get_current_user, get_current_user_optional
from src.auth.jwt import ACCESS_TOKEN_COOKIE, create_access_token
from src.config import settings
from src.db import get_db
from src.models import AuditAction, User
from src.schemas.auth import CurrentUserResponse, LoginRequest, LoginResponse
from src.utils.audit import get_client_ip, log_action
from src.utils.password import hash_password, needs_rehash, verify_password

router = APIRouter(prefix="/auth", tags=["Authentication"])

_COOKIE_OPTIONS = {
    "httponly": True,
    "samesite": "lax",
}


def _set_session_cookie(response: Response, user: User) -> None:
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=create_access_token(user.id, user.role.value),
        secure=settings.is_production,
        max_age=settings.jwt_expire_hours * 3600,
        **_COOKIE_OPTIONS,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    response: Response,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Check credentials and start a session."""
    result = await db.execute(
        select(User).where(User.username == credentials.username)
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(credentials.password)
    user.last_active_at = datetime.now(timezone.utc)

    _set_session_cookie(response, user)

    await log_action(
        db=db,
        user_id=user.id,
        action=AuditAction.LOGIN,
        target_type="user",
        target_id=user.id,
        ip_address=get_client_ip(request),
    )
    await db.commit()

    return LoginResponse(
        success=True,
        message=f"Welcome, {user.display_name}",
        user_id=user.id,
        display_name=user.display_name,
        role=user.role.value,
    )


@router.get("/me", response_model=CurrentUserResponse)
async def me(current_user: User = Depends(get_current_user)):
    """The signed-in user; salespeople use the id to filter their own ledger."""
    return CurrentUserResponse.model_validate(current_user)


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user_optional),
):
    """End the session. Succeeds even without a valid cookie."""
    if current_user:
        await log_action(
            db=db,
            user_id=current_user.id,
            action=AuditAction.LOGOUT,
            target_type="user",
            target_id=current_user.id,
            ip_address=get_client_ip(request),
        )
        await db.commit()

    response.delete_cookie(
        key=ACCESS_TOKEN_COOKIE,
        secure=settings.is_production,
        **_COOKIE_OPTIONS,
    )
    return {"success": True, "message": "Logged out"}
