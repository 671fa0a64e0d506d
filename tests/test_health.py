"""
Health check, password and token tests.
"""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt

from src.auth.jwt import ACCESS_TOKEN_COOKIE, TokenClaims, create_access_token, verify_token
from src.db import get_db
from src.main import app
from src.models import User, UserRole


@pytest.mark.asyncio
async def test_health_endpoint():
    """Basic health check needs no database."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "primledger"}


def test_password_hashing():
    """Test password hashing utility."""
    from src.utils.password import hash_password, verify_password

    password = "test_password_123"
    hashed = hash_password(password)

    # Hash should be different from original
    assert hashed != password

    # Verification should work
    assert verify_password(password, hashed)

    # Wrong password should fail
    assert not verify_password("wrong_password", hashed)

    # Unknown hash formats fail closed
    assert not verify_password(password, "not-a-bcrypt-hash")


def test_token_roundtrip():
    token = create_access_token(7, "salesperson")
    assert verify_token(token) == TokenClaims(user_id=7, role=UserRole.SALESPERSON)


def test_unknown_role_cannot_be_signed():
    with pytest.raises(ValueError):
        create_access_token(7, "owner")


def test_token_signed_with_other_key():
    token = jwt.encode({"sub": "7", "role": "admin", "type": "access"}, "other-key", algorithm="HS256")
    assert verify_token(token) is None


def test_expired_token():
    token = create_access_token(7, "admin", expires_delta=timedelta(seconds=-1))
    assert verify_token(token) is None


@pytest.mark.asyncio
async def test_login_sets_cookie_that_authenticates(db_session, rate):
    from src.utils.password import hash_password

    user = User(
        username="ayse",
        password_hash=hash_password("gizli-parola"),
        role=UserRole.SALESPERSON,
        display_name="Ayşe",
        is_active=True,
    )
    db_session.add(user)
    await db_session.flush()

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            wrong = await client.post(
                "/api/auth/login",
                json={"username": "ayse", "password": "yanlış"},
            )
            assert wrong.status_code == 401

            response = await client.post(
                "/api/auth/login",
                json={"username": "ayse", "password": "gizli-parola"},
            )
            assert response.status_code == 200
            assert response.json()["role"] == "salesperson"
            token = response.cookies[ACCESS_TOKEN_COOKIE]

            rate_response = await client.get(
                "/api/prims/rate",
                headers={"Cookie": f"{ACCESS_TOKEN_COOKIE}={token}"},
            )
            assert rate_response.status_code == 200

            me = await client.get(
                "/api/auth/me",
                headers={"Cookie": f"{ACCESS_TOKEN_COOKIE}={token}"},
            )
            assert me.json()["id"] == user.id

        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as anonymous:
            assert (await anonymous.get("/api/prims/rate")).status_code == 401
    finally:
        app.dependency_overrides.clear()
