"""
Pytest configuration and fixtures.
"""

import os
from datetime import date, datetime, timezone
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.models import Base, PrimPeriod, PrimRate, User, UserRole
from src.services.periods import period_name


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SALE_DATE = date(2025, 9, 15)


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


def _user(username: str, role: UserRole, display_name: str) -> User:
    return User(
        username=username,
        password_hash="not-a-bcrypt-hash",
        role=role,
        display_name=display_name,
        is_active=True,
    )


@pytest_asyncio.fixture
async def admin(db_session):
    user = _user("admin", UserRole.ADMIN, "Administrator")
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def alice(db_session):
    user = _user("alice", UserRole.SALESPERSON, "Alice")
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def bob(db_session):
    user = _user("bob", UserRole.SALESPERSON, "Bob")
    db_session.add(user)
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def rate(db_session, admin):
    """1% commission rate effective long before any test sale."""
    prim_rate = PrimRate(
        rate=Decimal("1"),
        effective_date=datetime(2020, 1, 1, tzinfo=timezone.utc),
        is_active=True,
        created_by_user_id=admin.id,
    )
    db_session.add(prim_rate)
    await db_session.flush()
    return prim_rate


async def make_period(db_session, year: int, month: int, is_active: bool = True) -> PrimPeriod:
    period = PrimPeriod(
        name=period_name(year, month),
        year=year,
        month=month,
        is_active=is_active,
    )
    db_session.add(period)
    await db_session.flush()
    return period


@pytest_asyncio.fixture
async def september(db_session):
    return await make_period(db_session, 2025, 9)


@pytest_asyncio.fixture
async def october(db_session):
    return await make_period(db_session, 2025, 10)
