"""Shared test fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from src.main import app
from src.rb_common.enums import ObligationKind
from src.rb_obligation.domain.lifecycle import initial_status
from src.rb_obligation.domain.models import LedgerEntry, Obligation
from src.rb_pricing.domain.policy import DiscountPolicy, build_policy

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def policy() -> DiscountPolicy:
    return build_policy(18, {"WELCOME10": 10, "FESTIVE25": 25, "FREEMONTH": 100})


@pytest.fixture
def make_obligation() -> Callable[..., Obligation]:
    """Factory for Obligation values; keyword overrides win."""

    def _make(**kwargs: object) -> Obligation:
        kind = kwargs.pop("kind", ObligationKind.SUBSCRIPTION)
        fields: dict[str, object] = {
            "id": "11111111-2222-3333-4444-555555555555",
            "kind": kind,
            "resource_id": "listing-1",
            "rate_per_period": 54,
            "due_at": NOW,
            "status": initial_status(kind),  # type: ignore[arg-type]
            "created_at": datetime(2026, 1, 1, tzinfo=UTC),
            "version": 3,
        }
        fields.update(kwargs)
        return Obligation(**fields)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def make_entry() -> Callable[..., LedgerEntry]:
    def _make(**kwargs: object) -> LedgerEntry:
        fields: dict[str, object] = {
            "amount": 5400,
            "periods_covered": 1,
            "external_payment_id": "pay_001",
            "external_order_id": "order_001",
            "applied_at": NOW,
            "valid_until": datetime(2026, 4, 10, 12, 0, tzinfo=UTC),
            "id": 1,
        }
        fields.update(kwargs)
        return LedgerEntry(**fields)  # type: ignore[arg-type]

    return _make
