"""
Async SQLAlchemy database session configuration.

Every ledger command runs inside exactly one session: all transactions and
state transitions it generates are committed together or rolled back together.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.config import settings

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if "+asyncpg" in url:
        # Required behind transaction poolers (pgbouncer, Supabase)
        return {"statement_cache_size": 0}
    return {}


engine = create_async_engine(
    settings.database_url,
    poolclass=NullPool,
    echo=not settings.is_production,
    connect_args=_connect_args(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Commits when the endpoint returns normally. Any error, including the
    request task being cancelled by a client disconnect, rolls back so a
    half-written transfer pair is never persisted.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions.
    Use in non-FastAPI contexts (scheduler jobs, startup, scripts).

        async with get_db_context() as db:
            await carry_forward_deductions(db, period_id)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            logger.debug("Rolling back session after error")
            await session.rollback()
            raise
