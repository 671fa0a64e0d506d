"""
Tests for periods, period reassignment and the commission rate history.

Covers:
- Monthly period lookup and creation, including a concurrent first insert
- reassign_transaction_period: move, no-op, retired target, unknown ids
- Rate history: lookup as of a date, activation, validation
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from src.models import PrimTransaction, TransactionKind
from src.services.errors import (
    ConflictError,
    NotFoundError,
    RateUnavailableError,
    ValidationError,
)
from src.services import periods
from src.services.periods import (
    create_period,
    get_or_create_period_for_date,
    list_periods,
    period_name,
    reassign_transaction_period,
)
from src.services.rates import get_current_rate, get_rate_at, list_rates, set_rate

from tests.conftest import make_period


async def _earn(db, salesperson, period, creator, amount="900.00") -> PrimTransaction:
    row = PrimTransaction(
        salesperson_id=salesperson.id,
        period_id=period.id,
        kind=TransactionKind.EARN,
        amount=Decimal(amount),
        description="Manual commission",
        created_by_user_id=creator.id,
    )
    db.add(row)
    await db.flush()
    return row


# ── periods ─────────────────────────────


class TestPeriods:
    def test_period_name(self):
        assert period_name(2025, 1) == "Ocak 2025"
        assert period_name(2025, 12) == "Aralık 2025"

    @pytest.mark.asyncio
    async def test_get_or_create_is_stable(self, db_session, admin):
        first = await get_or_create_period_for_date(db_session, date(2025, 9, 1), admin.id)
        second = await get_or_create_period_for_date(db_session, date(2025, 9, 30), admin.id)
        assert first.id == second.id
        assert first.ordinal == 2025 * 12 + 8

    @pytest.mark.asyncio
    async def test_concurrent_creation_reuses_existing_row(self, db_session, admin, monkeypatch):
        """Another request inserts the month between our lookup and our insert."""
        original_find = periods._find_period
        calls = []

        async def find_after_race(db, year, month):
            calls.append((year, month))
            if len(calls) == 1:
                await make_period(db, year, month)
                return None
            return await original_find(db, year, month)

        monkeypatch.setattr(periods, "_find_period", find_after_race)

        period = await get_or_create_period_for_date(db_session, date(2025, 11, 5), admin.id)

        assert len(calls) == 2
        assert (period.year, period.month) == (2025, 11)
        assert period.created_by_user_id is None
        assert len(await list_periods(db_session)) == 1

    @pytest.mark.asyncio
    async def test_create_duplicate_period(self, db_session, admin, september):
        with pytest.raises(ConflictError):
            await create_period(db_session, 2025, 9, admin)

    @pytest.mark.asyncio
    async def test_create_invalid_month(self, db_session, admin):
        with pytest.raises(ValidationError):
            await create_period(db_session, 2025, 13, admin)

    @pytest.mark.asyncio
    async def test_list_hides_retired(self, db_session, september, october):
        await make_period(db_session, 2024, 1, is_active=False)

        active = await list_periods(db_session)
        assert [p.id for p in active] == [october.id, september.id]
        assert len(await list_periods(db_session, include_inactive=True)) == 3


# ── reassignment ─────────────────────────────


class TestReassignPeriod:
    @pytest.mark.asyncio
    async def test_moves_only_period(self, db_session, admin, alice, september, october):
        row = await _earn(db_session, alice, september, admin)

        result = await reassign_transaction_period(db_session, row.id, october.id, admin)

        assert result.changed is True
        assert result.old_period_id == september.id
        assert result.new_period_id == october.id
        assert row.period_id == october.id
        assert row.amount == Decimal("900.00")
        assert row.kind == TransactionKind.EARN

    @pytest.mark.asyncio
    async def test_same_period_is_a_no_op(self, db_session, admin, alice, september):
        row = await _earn(db_session, alice, september, admin)

        result = await reassign_transaction_period(db_session, row.id, september.id, admin)

        assert result.changed is False
        assert result.message.startswith("No change")

    @pytest.mark.asyncio
    async def test_retired_target(self, db_session, admin, alice, september):
        retired = await make_period(db_session, 2025, 11, is_active=False)
        row = await _earn(db_session, alice, september, admin)

        with pytest.raises(ConflictError):
            await reassign_transaction_period(db_session, row.id, retired.id, admin)

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, db_session, admin, september):
        with pytest.raises(NotFoundError):
            await reassign_transaction_period(db_session, 404, september.id, admin)

    @pytest.mark.asyncio
    async def test_unknown_period(self, db_session, admin, alice, september):
        row = await _earn(db_session, alice, september, admin)
        with pytest.raises(NotFoundError):
            await reassign_transaction_period(db_session, row.id, 999, admin)


# ── rates ─────────────────────────────


class TestRates:
    @pytest.mark.asyncio
    async def test_no_rate(self, db_session):
        with pytest.raises(RateUnavailableError):
            await get_rate_at(db_session, date(2025, 9, 15))

    @pytest.mark.asyncio
    async def test_rate_in_effect_at_date(self, db_session, admin, rate):
        await set_rate(
            db_session,
            Decimal("1.5"),
            admin,
            effective_date=datetime(2025, 10, 1, tzinfo=timezone.utc),
        )

        assert await get_rate_at(db_session, date(2025, 9, 30)) == Decimal("1")
        assert await get_rate_at(db_session, date(2025, 10, 1)) == Decimal("1.5")

    @pytest.mark.asyncio
    async def test_new_rate_deactivates_previous(self, db_session, admin, rate):
        new_rate = await set_rate(db_session, Decimal("2"), admin)

        current = await get_current_rate(db_session)
        assert current.id == new_rate.id

        history = await list_rates(db_session)
        assert len(history) == 2

    @pytest.mark.asyncio
    async def test_rate_out_of_range(self, db_session, admin):
        with pytest.raises(ValidationError):
            await set_rate(db_session, Decimal("150"), admin)
