"""
Tests for the carry-forward background job.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.models import DeductionState, PrimTransaction, TransactionKind
from src.scheduler import jobs


@pytest.fixture
def job_session(db_session, monkeypatch):
    @asynccontextmanager
    async def fake_context():
        yield db_session

    monkeypatch.setattr(jobs, "get_db_context", fake_context)
    return db_session


@pytest.mark.asyncio
async def test_job_surfaces_pending_deductions(job_session, admin, alice, september):
    job_session.add(
        PrimTransaction(
            salesperson_id=alice.id,
            period_id=september.id,
            kind=TransactionKind.DEDUCTION,
            amount=Decimal("-250.00"),
            description="Manual deduction",
            deduction_state=DeductionState.PENDING,
            created_by_user_id=admin.id,
        )
    )
    await job_session.flush()

    now = datetime(2025, 11, 2, 3, 0, tzinfo=timezone.utc)
    assert await jobs.carry_forward_job(now) == 1
    assert await jobs.carry_forward_job(now) == 0


@pytest.mark.asyncio
async def test_job_without_pending_rows(job_session):
    assert await jobs.carry_forward_job(datetime(2025, 11, 2, tzinfo=timezone.utc)) == 0


def test_setup_registers_job():
    jobs.setup_scheduler()
    job = jobs.scheduler.get_job("carry_forward")
    assert job is not None
    jobs.scheduler.remove_job("carry_forward")
