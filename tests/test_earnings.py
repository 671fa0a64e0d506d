"""
Tests for earnings aggregation.

Covers:
- Replaying ledger rows into paid / unpaid / deduction totals
- Sale modification and cancellation scenarios end to end, including
  restore after an approved claw-back
- Carried-forward totals for a period filter
- Pure reduction over plain rows, ordering, idempotence
- Transaction listing with pagination
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from src.models import DeductionState, PrimStatus, SaleStatus, TransactionKind
from src.schemas.sale import SaleCreate
from src.services.commission import PriceSnapshot
from src.services.deductions import approve_deduction, cancel_deduction
from src.services.earnings import aggregate_earnings, build_earnings_views, list_transactions
from src.services.ledger_writer import on_cancel, on_create, on_modify, on_restore, on_transfer
from src.services.prim_status import set_prim_status

from tests.conftest import SALE_DATE


async def _create(db, actor, salesperson, contract_no="S-3001", activity_price="90000"):
    data = SaleCreate(
        kind="sale",
        contract_no=contract_no,
        sale_date=SALE_DATE,
        list_price=Decimal("100000"),
        activity_price=Decimal(activity_price),
        salesperson_id=salesperson.id,
    )
    event = await on_create(db, data, actor)
    return event.sale


def _view_for(views, salesperson_id, period_id):
    matches = [v for v in views if v.salesperson_id == salesperson_id and v.period_id == period_id]
    assert len(matches) == 1
    return matches[0]


# ── end to end ─────────────────────────────


class TestScenarios:
    @pytest.mark.asyncio
    async def test_modification_lowers_net_unpaid(self, db_session, admin, alice, rate, september):
        sale = await _create(db_session, admin, alice)

        before = _view_for(await aggregate_earnings(db_session), alice.id, september.id)
        assert before.unpaid_amount == Decimal("900.00")
        assert before.net_unpaid == Decimal("900.00")

        await on_modify(
            db_session,
            sale.id,
            PriceSnapshot.from_values("100000", activity_price="80000"),
            "Kampanya",
            admin,
        )

        after = _view_for(await aggregate_earnings(db_session), alice.id, september.id)
        assert after.unpaid_amount == Decimal("800.00")
        assert after.net_unpaid == before.net_unpaid - Decimal("100")
        assert after.earn_count == 2

    @pytest.mark.asyncio
    async def test_paid_cancellation_then_approval(
        self, db_session, admin, alice, rate, september, october
    ):
        sale = await _create(db_session, admin, alice)
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)

        paid = _view_for(await aggregate_earnings(db_session), alice.id, september.id)
        assert paid.paid_amount == Decimal("900.00")
        assert paid.unpaid_amount == Decimal("0.00")

        event = await on_cancel(db_session, sale.id, admin, period_id=october.id)
        deduction = event.transactions[0]

        views = await aggregate_earnings(db_session)
        pending = _view_for(views, alice.id, october.id)
        assert pending.pending_deductions_total == Decimal("900.00")
        assert pending.approved_deductions_total == Decimal("0.00")
        assert pending.net_unpaid == Decimal("0.00")
        # What was paid stays paid after the sale is cancelled
        assert _view_for(views, alice.id, september.id).paid_amount == Decimal("900.00")

        await approve_deduction(db_session, deduction.id, admin)

        approved = _view_for(await aggregate_earnings(db_session), alice.id, october.id)
        assert approved.pending_deductions_total == Decimal("0.00")
        assert approved.approved_deductions_total == Decimal("900.00")
        assert approved.net_unpaid == pending.net_unpaid - Decimal("900")

    @pytest.mark.asyncio
    async def test_restore_after_approval_returns_claw_back(
        self, db_session, admin, alice, rate, september, october
    ):
        sale = await _create(db_session, admin, alice)
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)
        event = await on_cancel(db_session, sale.id, admin, period_id=october.id)
        await approve_deduction(db_session, event.transactions[0].id, admin)

        clawed_back = await aggregate_earnings(db_session, salesperson_id=alice.id)
        assert sum(v.net_unpaid for v in clawed_back) == Decimal("-900.00")

        restored = await on_restore(db_session, sale.id, admin)
        compensation = restored.transactions[0]

        views = await aggregate_earnings(db_session, salesperson_id=alice.id)
        assert sum(v.paid_amount for v in views) == Decimal("900.00")
        assert sum(v.net_unpaid for v in views) == Decimal("0.00")
        assert _view_for(views, alice.id, compensation.period_id).unpaid_amount == Decimal("900.00")

    @pytest.mark.asyncio
    async def test_paid_price_reduction_then_cancellation_claws_back_once(
        self, db_session, admin, alice, rate, september, october
    ):
        sale = await _create(db_session, admin, alice)
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)
        await on_modify(
            db_session,
            sale.id,
            PriceSnapshot.from_values("100000", activity_price="80000"),
            "İndirim",
            admin,
        )
        await on_cancel(db_session, sale.id, admin, period_id=october.id)

        views = await aggregate_earnings(db_session, salesperson_id=alice.id)
        assert sum(v.pending_deductions_total for v in views) == Decimal("900.00")

    @pytest.mark.asyncio
    async def test_cancelled_deduction_has_no_effect(
        self, db_session, admin, alice, rate, september, october
    ):
        sale = await _create(db_session, admin, alice)
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)
        event = await on_cancel(db_session, sale.id, admin, period_id=october.id)

        await cancel_deduction(db_session, event.transactions[0].id, admin)

        view = _view_for(await aggregate_earnings(db_session), alice.id, october.id)
        assert view.pending_deductions_total == Decimal("0.00")
        assert view.approved_deductions_total == Decimal("0.00")
        assert view.net_unpaid == Decimal("0.00")
        assert view.deduction_count == 1

    @pytest.mark.asyncio
    async def test_transfer_moves_earnings(self, db_session, admin, alice, bob, rate, september):
        sale = await _create(db_session, admin, alice)
        await on_transfer(db_session, sale.id, bob.id, admin)

        views = await aggregate_earnings(db_session)
        assert _view_for(views, alice.id, september.id).net_unpaid == Decimal("0.00")
        assert _view_for(views, bob.id, september.id).net_unpaid == Decimal("900.00")
        assert _view_for(views, bob.id, september.id).transfer_in_count == 1


# ── period filter and carry-forward ─────────────────────────────


class TestPeriodFilter:
    @pytest.mark.asyncio
    async def test_pending_deduction_carried_into_later_period(
        self, db_session, admin, alice, rate, september, october
    ):
        sale = await _create(db_session, admin, alice)
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)
        await on_cancel(db_session, sale.id, admin, period_id=september.id)

        views = await aggregate_earnings(db_session, period_id=october.id)

        assert len(views) == 1
        view = views[0]
        assert view.period_id == october.id
        assert view.carried_forward_deductions_total == Decimal("900.00")
        assert view.pending_deductions_total == Decimal("0.00")
        assert view.transaction_count == 0

    @pytest.mark.asyncio
    async def test_own_period_is_not_carried(self, db_session, admin, alice, rate, september):
        sale = await _create(db_session, admin, alice)
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)
        await on_cancel(db_session, sale.id, admin, period_id=september.id)

        view = _view_for(
            await aggregate_earnings(db_session, period_id=september.id),
            alice.id,
            september.id,
        )
        assert view.pending_deductions_total == Decimal("900.00")
        assert view.carried_forward_deductions_total == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_salesperson_filter(self, db_session, admin, alice, bob, rate):
        await _create(db_session, admin, alice, contract_no="S-3001")
        await _create(db_session, admin, bob, contract_no="S-3002")

        views = await aggregate_earnings(db_session, salesperson_id=bob.id)
        assert [v.salesperson_id for v in views] == [bob.id]

    @pytest.mark.asyncio
    async def test_idempotent(self, db_session, admin, alice, bob, rate, october):
        await _create(db_session, admin, alice, contract_no="S-3001")
        sale = await _create(db_session, admin, bob, contract_no="S-3002")
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)
        await on_cancel(db_session, sale.id, admin, period_id=october.id)

        first = await aggregate_earnings(db_session)
        second = await aggregate_earnings(db_session)
        assert first == second


# ── pure reduction ─────────────────────────────


def _row(**kwargs):
    defaults = {
        "salesperson_id": 1,
        "salesperson_name": "Alice",
        "period_id": 10,
        "period_name": "Eylül 2025",
        "period_ordinal": 2025 * 12 + 8,
        "kind": TransactionKind.EARN,
        "amount": Decimal("900.00"),
        "deduction_state": None,
        "related_transaction_id": None,
        "sale_status": SaleStatus.ACTIVE,
        "prim_status": PrimStatus.UNPAID,
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


class TestBuildEarningsViews:
    def test_deduction_totals_are_magnitudes(self):
        rows = [
            _row(),
            _row(kind=TransactionKind.DEDUCTION, amount=Decimal("-100.00"),
                 deduction_state=DeductionState.APPROVED, prim_status=PrimStatus.PAID),
            _row(kind=TransactionKind.DEDUCTION, amount=Decimal("-40.00"),
                 deduction_state=DeductionState.PENDING),
            _row(kind=TransactionKind.DEDUCTION, amount=Decimal("-5.00"),
                 deduction_state=DeductionState.CANCELLED),
        ]
        (view,) = build_earnings_views(rows)

        assert view.unpaid_amount == Decimal("900.00")
        assert view.approved_deductions_total == Decimal("100.00")
        assert view.pending_deductions_total == Decimal("40.00")
        assert view.net_unpaid == Decimal("800.00")
        assert view.deduction_count == 3

    def test_paid_and_unpaid_split(self):
        rows = [
            _row(amount=Decimal("900.00"), prim_status=PrimStatus.PAID),
            _row(amount=Decimal("250.50")),
            _row(kind=TransactionKind.TRANSFER_OUT, amount=Decimal("-250.50")),
        ]
        (view,) = build_earnings_views(rows)
        assert view.paid_amount == Decimal("900.00")
        assert view.unpaid_amount == Decimal("0.00")
        assert view.transfer_out_count == 1

    def test_cancelled_sale_keeps_paid_but_drops_unpaid(self):
        rows = [
            _row(amount=Decimal("900.00"), prim_status=PrimStatus.PAID,
                 sale_status=SaleStatus.CANCELLED),
            _row(amount=Decimal("400.00"), sale_status=SaleStatus.CANCELLED),
        ]
        (view,) = build_earnings_views(rows)
        assert view.paid_amount == Decimal("900.00")
        assert view.unpaid_amount == Decimal("0.00")

    def test_restore_compensation_is_unpaid(self):
        rows = [
            _row(prim_status=PrimStatus.PAID, related_transaction_id=7),
            _row(kind=TransactionKind.TRANSFER_IN, prim_status=PrimStatus.PAID,
                 related_transaction_id=8),
        ]
        (view,) = build_earnings_views(rows)
        assert view.unpaid_amount == Decimal("900.00")
        assert view.paid_amount == Decimal("900.00")

    def test_rows_without_sale_count_as_unpaid(self):
        (view,) = build_earnings_views([_row(sale_status=None, prim_status=None)])
        assert view.unpaid_amount == Decimal("900.00")

    def test_carried_forward_from_earlier_periods(self):
        rows = [
            _row(kind=TransactionKind.DEDUCTION, amount=Decimal("-300.00"),
                 deduction_state=DeductionState.PENDING),
            _row(period_id=11, period_name="Ekim 2025", period_ordinal=2025 * 12 + 9,
                 amount=Decimal("100.00")),
        ]
        views = build_earnings_views(rows)

        assert [v.period_id for v in views] == [11, 10]
        assert views[0].carried_forward_deductions_total == Decimal("300.00")
        assert views[1].carried_forward_deductions_total == Decimal("0.00")

    def test_ordering(self):
        rows = [
            _row(salesperson_id=2, salesperson_name="Zeynep"),
            _row(salesperson_id=3, salesperson_name="Ahmet"),
            _row(salesperson_id=2, salesperson_name="Zeynep", period_id=11,
                 period_name="Ekim 2025", period_ordinal=2025 * 12 + 9),
        ]
        views = build_earnings_views(rows)
        assert [(v.period_id, v.salesperson_name) for v in views] == [
            (11, "Zeynep"),
            (10, "Ahmet"),
            (10, "Zeynep"),
        ]

    def test_empty(self):
        assert build_earnings_views([]) == []


# ── list_transactions ─────────────────────────────


class TestListTransactions:
    @pytest.mark.asyncio
    async def test_pagination(self, db_session, admin, alice, rate):
        for n in range(3):
            await _create(db_session, admin, alice, contract_no=f"S-40{n}")

        items, total = await list_transactions(db_session, salesperson_id=alice.id, per_page=2)
        assert total == 3
        assert len(items) == 2

        items, _ = await list_transactions(db_session, salesperson_id=alice.id, page=2, per_page=2)
        assert len(items) == 1

    @pytest.mark.asyncio
    async def test_kind_filter(self, db_session, admin, alice, rate, october):
        sale = await _create(db_session, admin, alice)
        await set_prim_status(db_session, sale.id, PrimStatus.PAID, admin)
        await on_cancel(db_session, sale.id, admin, period_id=october.id)

        items, total = await list_transactions(db_session, kind=TransactionKind.DEDUCTION)
        assert total == 1
        assert items[0].deduction_state == DeductionState.PENDING
