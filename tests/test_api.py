"""
HTTP API tests.

Covers:
- Sale endpoints: create, modify, cancel, transfer, history
- Ledger error rendering (status code + error kind)
- Administrator-only endpoints reject salespeople with 403
- Salespeople only see their own earnings
- Audit entries written by state-changing endpoints
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from src.auth.dependencies import get_current_user
from src.db import get_db
from src.main import app
from src.models import AuditAction, AuditLog


@pytest_asyncio.fixture
async def client_as(db_session):
    """Factory: HTTP client acting as the given user on the test session."""

    async def override_get_db():
        yield db_session

    clients = []

    async def make(user) -> AsyncClient:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = lambda: user
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()


SALE_PAYLOAD = {
    "kind": "sale",
    "contract_no": "S-5001",
    "customer_name": "Mehmet Demir",
    "sale_date": "2025-09-15",
    "list_price": "100000",
    "activity_price": "90000",
}


# ── sales ─────────────────────────────


class TestSalesApi:
    @pytest.mark.asyncio
    async def test_create_sale(self, client_as, alice, rate):
        client = await client_as(alice)

        response = await client.post("/api/sales", json=SALE_PAYLOAD)

        assert response.status_code == 201
        body = response.json()
        assert Decimal(body["sale"]["prim_amount"]) == Decimal("900.00")
        assert body["sale"]["salesperson_id"] == alice.id
        assert len(body["transaction_ids"]) == 1

    @pytest.mark.asyncio
    async def test_float_price_rejected(self, client_as, alice, rate):
        client = await client_as(alice)
        response = await client.post("/api/sales", json={**SALE_PAYLOAD, "list_price": 100000.5})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_kind_renders_ledger_error(self, client_as, alice, rate):
        client = await client_as(alice)

        response = await client.post("/api/sales", json={**SALE_PAYLOAD, "kind": "barter"})

        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

    @pytest.mark.asyncio
    async def test_modify_and_history(self, client_as, db_session, alice, rate):
        client = await client_as(alice)
        created = (await client.post("/api/sales", json=SALE_PAYLOAD)).json()
        sale_id = created["sale"]["id"]

        response = await client.put(
            f"/api/sales/{sale_id}/modify",
            json={"list_price": "100000", "activity_price": "80000", "reason": "Kampanya"},
        )
        assert response.status_code == 200
        assert Decimal(response.json()["modification"]["commission_delta"]) == Decimal("-100.00")

        history = (await client.get(f"/api/sales/{sale_id}/modifications")).json()
        assert len(history) == 1
        assert history[0]["reason"] == "Kampanya"

        audit = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.MODIFY_SALE)
        )
        assert audit.scalar_one().target_id == sale_id

    @pytest.mark.asyncio
    async def test_modify_without_reason(self, client_as, alice, rate):
        client = await client_as(alice)
        sale_id = (await client.post("/api/sales", json=SALE_PAYLOAD)).json()["sale"]["id"]

        response = await client.put(
            f"/api/sales/{sale_id}/modify",
            json={"list_price": "100000", "reason": "  "},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_sale(self, client_as, alice):
        client = await client_as(alice)
        response = await client.get("/api/sales/999")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_other_salespersons_sale_is_forbidden(self, client_as, admin, bob, rate):
        admin_client = await client_as(admin)
        sale_id = (await admin_client.post("/api/sales", json=SALE_PAYLOAD)).json()["sale"]["id"]

        bob_client = await client_as(bob)
        response = await bob_client.get(f"/api/sales/{sale_id}")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_double_cancel_conflicts(self, client_as, alice, rate, october):
        client = await client_as(alice)
        sale_id = (await client.post("/api/sales", json=SALE_PAYLOAD)).json()["sale"]["id"]

        first = await client.put(f"/api/sales/{sale_id}/cancel", json={"period_id": october.id})
        second = await client.put(f"/api/sales/{sale_id}/cancel", json={"period_id": october.id})

        assert first.status_code == 200
        assert first.json()["sale"]["status"] == "cancelled"
        assert second.status_code == 409
        assert second.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_transfer_requires_admin(self, client_as, alice, bob, rate):
        client = await client_as(alice)
        sale_id = (await client.post("/api/sales", json=SALE_PAYLOAD)).json()["sale"]["id"]

        response = await client.put(
            f"/api/sales/{sale_id}/transfer",
            json={"to_salesperson_id": bob.id},
        )
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_convert_deposit_to_sale(self, client_as, db_session, alice, rate):
        client = await client_as(alice)
        deposit = await client.post(
            "/api/sales",
            json={**SALE_PAYLOAD, "kind": "deposit", "contract_no": None},
        )
        sale_id = deposit.json()["sale"]["id"]
        assert deposit.json()["transaction_ids"] == []

        response = await client.put(
            f"/api/sales/{sale_id}/convert-to-sale",
            json={"sale_date": "2025-10-10", "contract_no": "S-5009"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["sale"]["kind"] == "sale"
        assert body["sale"]["prim_status"] == "unpaid"
        assert Decimal(body["sale"]["prim_amount"]) == Decimal("900.00")
        assert len(body["transaction_ids"]) == 1

        again = await client.put(
            f"/api/sales/{sale_id}/convert-to-sale",
            json={"sale_date": "2025-10-10"},
        )
        assert again.status_code == 422
        assert again.json()["error"] == "validation_error"

        audit = await db_session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.CONVERT_SALE)
        )
        assert audit.scalar_one().action_metadata["prim_amount"] == "900.00"

    @pytest.mark.asyncio
    async def test_bulk_prim_status(self, client_as, admin, alice, rate):
        client = await client_as(admin)
        await client.post("/api/sales", json={**SALE_PAYLOAD, "salesperson_id": alice.id})

        preview = await client.post(
            "/api/sales/bulk-prim-status/preview",
            json={"prim_status": "paid", "filters": {"month": 9, "year": 2025}},
        )
        assert preview.status_code == 200
        assert preview.json()["total"] == 1
        assert len(preview.json()["affected_sales"]) == 1

        applied = await client.put(
            "/api/sales/bulk-prim-status",
            json={"prim_status": "paid", "filters": {"month": 9, "year": 2025}},
        )
        assert applied.json()["total"] == 1

        nothing_left = await client.put(
            "/api/sales/bulk-prim-status",
            json={"prim_status": "paid", "filters": {"month": 9, "year": 2025}},
        )
        assert nothing_left.status_code == 404


# ── commission reads ─────────────────────────────


class TestPrimsApi:
    @pytest.mark.asyncio
    async def test_earnings_scoped_to_salesperson(self, client_as, admin, alice, bob, rate):
        admin_client = await client_as(admin)
        await admin_client.post("/api/sales", json={**SALE_PAYLOAD, "salesperson_id": alice.id})
        await admin_client.post(
            "/api/sales",
            json={**SALE_PAYLOAD, "contract_no": "S-5002", "salesperson_id": bob.id},
        )

        all_views = (await admin_client.get("/api/prims/earnings")).json()
        assert {v["salesperson_id"] for v in all_views} == {alice.id, bob.id}

        alice_client = await client_as(alice)
        mine = (await alice_client.get("/api/prims/earnings")).json()
        assert [v["salesperson_id"] for v in mine] == [alice.id]
        assert Decimal(mine[0]["net_unpaid"]) == Decimal("900.00")

        snooping = await alice_client.get(f"/api/prims/earnings?salesperson_id={bob.id}")
        assert snooping.status_code == 403

    @pytest.mark.asyncio
    async def test_transactions_page(self, client_as, alice, rate):
        client = await client_as(alice)
        await client.post("/api/sales", json=SALE_PAYLOAD)

        body = (await client.get("/api/prims/transactions?per_page=10")).json()
        assert body["total"] == 1
        assert body["pages"] == 1
        assert body["items"][0]["kind"] == "earn"

    @pytest.mark.asyncio
    async def test_current_rate(self, client_as, alice, rate):
        client = await client_as(alice)
        body = (await client.get("/api/prims/rate")).json()
        assert Decimal(body["rate"]) == Decimal("1")


# ── admin ─────────────────────────────


class TestAdminApi:
    @pytest.mark.asyncio
    async def test_salesperson_gets_403(self, client_as, alice):
        client = await client_as(alice)
        for method, url in [
            ("post", "/api/admin/deductions/cleanup-duplicates"),
            ("post", "/api/admin/deductions/1/approve"),
            ("get", "/api/admin/audit/list"),
            ("get", "/api/admin/settings/data"),
        ]:
            response = await getattr(client, method)(url)
            assert response.status_code == 403, url

    @pytest.mark.asyncio
    async def test_deduction_approval_flow(self, client_as, admin, alice, rate, october):
        client = await client_as(admin)
        sale_id = (
            await client.post("/api/sales", json={**SALE_PAYLOAD, "salesperson_id": alice.id})
        ).json()["sale"]["id"]
        await client.put(f"/api/sales/{sale_id}/prim-status", json={"prim_status": "paid"})
        cancelled = (
            await client.put(f"/api/sales/{sale_id}/cancel", json={"period_id": october.id})
        ).json()
        deduction_id = cancelled["transaction_ids"][0]

        approved = await client.post(f"/api/admin/deductions/{deduction_id}/approve", json={})
        assert approved.status_code == 200
        assert approved.json()["deduction_state"] == "approved"

        again = await client.post(f"/api/admin/deductions/{deduction_id}/approve", json={})
        assert again.status_code == 409

        earnings = (
            await client.get(f"/api/prims/earnings?period_id={october.id}&salesperson_id={alice.id}")
        ).json()
        assert Decimal(earnings[0]["approved_deductions_total"]) == Decimal("900.00")

    @pytest.mark.asyncio
    async def test_reassign_period(self, client_as, admin, alice, rate, september, october):
        client = await client_as(admin)
        created = (
            await client.post("/api/sales", json={**SALE_PAYLOAD, "salesperson_id": alice.id})
        ).json()
        transaction_id = created["transaction_ids"][0]

        moved = await client.put(
            f"/api/admin/transactions/{transaction_id}/period",
            json={"period_id": october.id},
        )
        assert moved.json()["changed"] is True

        unchanged = await client.put(
            f"/api/admin/transactions/{transaction_id}/period",
            json={"period_id": october.id},
        )
        assert unchanged.json()["changed"] is False

    @pytest.mark.asyncio
    async def test_settings_roundtrip(self, client_as, admin):
        client = await client_as(admin)

        response = await client.put(
            "/api/admin/settings/data",
            json={"duplicate_deduction_rule": "sale_and_carry_forward"},
        )
        assert response.status_code == 200

        current = (await client.get("/api/admin/settings/data")).json()
        assert current["duplicate_deduction_rule"] == "sale_and_carry_forward"

    @pytest.mark.asyncio
    async def test_audit_list(self, client_as, admin, alice, rate):
        client = await client_as(admin)
        await client.post("/api/sales", json={**SALE_PAYLOAD, "salesperson_id": alice.id})

        body = (await client.get("/api/admin/audit/list?action=create_sale")).json()
        assert body["total"] == 1
        assert body["items"][0]["username"] == "admin"

    @pytest.mark.asyncio
    async def test_sale_audit_trail(self, client_as, admin, alice, rate, october):
        client = await client_as(admin)
        sale_id = (
            await client.post("/api/sales", json={**SALE_PAYLOAD, "salesperson_id": alice.id})
        ).json()["sale"]["id"]
        await client.put(f"/api/sales/{sale_id}/cancel", json={"period_id": october.id})

        trail = (await client.get(f"/api/admin/audit/sales/{sale_id}")).json()
        assert [entry["action"] for entry in trail] == ["create_sale", "cancel_sale"]
        assert trail[0]["metadata"]["prim_amount"] == "900.00"
