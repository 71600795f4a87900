"""HTTP-level tests: routers, envelope, error handler and admin guard.

Services and the DB session are replaced through dependency_overrides, so no
database, Redis or gateway is needed.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from config.settings import settings
from src.main import app
from src.rb_common.database import get_db_session
from src.rb_common.enums import ObligationKind
from src.rb_common.errors import InvalidSignatureError, ObligationNotFoundError
from src.rb_obligation.api.router import get_obligation_service
from src.rb_obligation.application.schemas import LedgerResponse, ObligationView
from src.rb_payment.api.router import get_payment_service
from src.rb_payment.application.schemas import PaymentDetailsView, QuoteView
from src.rb_payment.domain.models import GatewayPayment
from src.rb_pricing.domain.calculator import compute_charge
from src.rb_pricing.domain.models import LeaseRateBasis
from src.rb_reconciliation.api.router import get_scheduler
from src.rb_reconciliation.application.sweep import SweepReport

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
ADMIN_TOKEN = "admin-test-token"


async def _fake_db() -> AsyncGenerator[MagicMock, None]:
    yield MagicMock()


@pytest.fixture
def obligation_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def payment_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def scheduler() -> AsyncMock:
    return AsyncMock()


@pytest.fixture(autouse=True)
def overrides(obligation_service, payment_service, scheduler, monkeypatch):  # type: ignore[no-untyped-def]
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    app.dependency_overrides[get_db_session] = _fake_db
    app.dependency_overrides[get_obligation_service] = lambda: obligation_service
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    yield
    app.dependency_overrides.clear()


class TestHealth:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


class TestObligationRoutes:
    async def test_status(self, client: AsyncClient, obligation_service, make_obligation) -> None:
        obligation_service.get_status.return_value = ObligationView.from_domain(
            make_obligation(), NOW
        )

        resp = await client.get("/api/v1/obligations/subscription/listing-1")

        assert resp.status_code == 200
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["resource_id"] == "listing-1"
        assert body["request_id"].startswith("req_")
        args = obligation_service.get_status.await_args.args
        assert args[1] is ObligationKind.SUBSCRIPTION

    async def test_unknown_kind_rejected(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/obligations/mortgage/x")
        assert resp.status_code == 422

    async def test_not_found_envelope(self, client: AsyncClient, obligation_service) -> None:
        obligation_service.get_status.side_effect = ObligationNotFoundError("lease", "nope")

        resp = await client.get("/api/v1/obligations/lease/nope")

        assert resp.status_code == 404
        body = resp.json()
        assert body["code"] == 2001
        assert body["data"] is None

    async def test_ledger_query_params(self, client: AsyncClient, obligation_service) -> None:
        obligation_service.list_ledger.return_value = LedgerResponse(
            items=[], next_cursor=None, has_more=False
        )

        resp = await client.get("/api/v1/obligations/lease/lease-1/ledger?limit=5")

        assert resp.status_code == 200
        assert obligation_service.list_ledger.await_args.args[3:] == (None, 5)

    async def test_open_requires_admin_token(self, client: AsyncClient, obligation_service) -> None:
        resp = await client.post("/api/v1/obligations/lease/lease-1")

        assert resp.status_code == 403
        assert resp.json()["code"] == 9003
        obligation_service.open_obligation.assert_not_awaited()

    async def test_open_with_token(
        self, client: AsyncClient, obligation_service, make_obligation
    ) -> None:
        obligation_service.open_obligation.return_value = ObligationView.from_domain(
            make_obligation(kind=ObligationKind.LEASE, resource_id="lease-1"), NOW
        )

        resp = await client.post(
            "/api/v1/obligations/lease/lease-1", headers={"X-Admin-Token": ADMIN_TOKEN}
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["kind"] == "lease"

    async def test_wrong_token(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/obligations/subscription/listing-1/refresh-rate",
            headers={"X-Admin-Token": "guess"},
        )
        assert resp.status_code == 403

    async def test_suspend_requires_reason(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/obligations/subscription/listing-1/suspend",
            json={"reason": ""},
            headers={"X-Admin-Token": ADMIN_TOKEN},
        )
        assert resp.status_code == 422


class TestPaymentRoutes:
    async def test_quote(self, client: AsyncClient, payment_service, policy) -> None:
        quote = compute_charge(LeaseRateBasis(10_000), 6, policy)
        payment_service.quote.return_value = QuoteView.from_domain(
            ObligationKind.LEASE, "lease-1", quote
        )

        resp = await client.post(
            "/api/v1/payments/quote",
            json={"kind": "lease", "resource_id": "lease-1", "periods": 6},
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["final_amount"] == 55_458

    async def test_quote_rejects_zero_periods(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/payments/quote",
            json={"kind": "lease", "resource_id": "lease-1", "periods": 0},
        )
        assert resp.status_code == 422

    async def test_verify_bad_signature(self, client: AsyncClient, payment_service) -> None:
        payment_service.verify_and_apply.side_effect = InvalidSignatureError()

        resp = await client.post(
            "/api/v1/payments/verify",
            json={"order_id": "order_1", "payment_id": "pay_1", "signature": "00"},
        )

        assert resp.status_code == 400
        assert resp.json()["code"] == 3001

    async def test_payment_details(self, client: AsyncClient, payment_service) -> None:
        payment_service.payment_details.return_value = PaymentDetailsView.from_domain(
            GatewayPayment("pay_1", "captured", 14_100, "INR", "order_1"), None
        )

        resp = await client.get("/api/v1/payments/pay_1")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["amount_display"] == "INR 141.00"
        assert data["ledger_entry"] is None
        assert payment_service.payment_details.await_args.args[1] == "pay_1"


class TestAdminRoutes:
    async def test_run_sweep(self, client: AsyncClient, scheduler) -> None:
        scheduler.run_now.return_value = SweepReport(started_at=NOW, scanned=4, transitioned=2)

        resp = await client.post(
            "/api/v1/admin/reconciliation/run", headers={"X-Admin-Token": ADMIN_TOKEN}
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["skipped"] is False
        assert data["scanned"] == 4

    async def test_run_sweep_skipped_while_lock_held(self, client: AsyncClient, scheduler) -> None:
        scheduler.run_now.return_value = None

        resp = await client.post(
            "/api/v1/admin/reconciliation/run", headers={"X-Admin-Token": ADMIN_TOKEN}
        )

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["skipped"] is True
        assert "billing:sweep:lock" in data["reason"]
        scheduler.run_now.assert_awaited_once()

    async def test_run_sweep_forbidden(self, client: AsyncClient, scheduler) -> None:
        resp = await client.post("/api/v1/admin/reconciliation/run")

        assert resp.status_code == 403
        scheduler.run_now.assert_not_awaited()

    async def test_disabled_when_token_unset(
        self, client: AsyncClient, scheduler, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")

        resp = await client.post("/api/v1/admin/reconciliation/run", headers={"X-Admin-Token": ""})

        assert resp.status_code == 403
