"""Unit tests for ObligationRepository using MagicMock AsyncSession."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.rb_common.enums import ObligationKind
from src.rb_common.errors import InternalError
from src.rb_obligation.infrastructure.persistence import ObligationRepository
from src.rb_pricing.domain.models import LeaseRateBasis, ListingRateBasis

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _make_obligation_row(**kwargs):
    """Build a mock DB row with all obligation columns."""
    row = MagicMock()
    row.id = kwargs.get("id", "11111111-2222-3333-4444-555555555555")
    row.kind = kwargs.get("kind", "subscription")
    row.resource_id = kwargs.get("resource_id", "listing-1")
    row.rate_per_period = kwargs.get("rate_per_period", 54)
    row.due_at = kwargs.get("due_at", NOW)
    row.status = kwargs.get("status", "active")
    row.grace_period_ends_at = None
    row.suspended_at = None
    row.suspension_reason = None
    row.last_payment_at = None
    row.version = kwargs.get("version", 2)
    row.created_at = NOW
    row.updated_at = NOW
    return row


def _make_ledger_row(**kwargs):
    row = MagicMock()
    row.id = kwargs.get("id", 1)
    row.amount = kwargs.get("amount", 5400)
    row.periods_covered = kwargs.get("periods_covered", 1)
    row.external_payment_id = kwargs.get("external_payment_id", "pay_1")
    row.external_order_id = "order_1"
    row.applied_at = NOW
    row.valid_until = NOW
    row.convenience_fee_minor = kwargs.get("convenience_fee_minor", 0)
    row.entry_status = "completed"
    return row


def _result(one=None, many=None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = one
    result.fetchall.return_value = many or []
    return result


@pytest.fixture
def db():
    return MagicMock()


class TestGetObligation:
    async def test_maps_row_and_ledger(self, db) -> None:
        db.execute = AsyncMock(
            side_effect=[
                _result(one=_make_obligation_row()),
                _result(many=[_make_ledger_row(id=1), _make_ledger_row(id=2, amount=100)]),
            ]
        )

        obligation = await ObligationRepository().get_obligation(
            db, ObligationKind.SUBSCRIPTION, "listing-1"
        )

        assert obligation is not None
        assert obligation.kind is ObligationKind.SUBSCRIPTION
        assert obligation.version == 2
        assert [e.id for e in obligation.ledger] == [1, 2]
        assert sum(e.amount for e in obligation.ledger) == 5_500

    async def test_returns_none_when_missing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))

        result = await ObligationRepository().get_obligation(
            db, ObligationKind.LEASE, "missing"
        )

        assert result is None
        assert db.execute.await_count == 1

    async def test_lock_uses_for_update(self, db) -> None:
        db.execute = AsyncMock(side_effect=[_result(one=_make_obligation_row()), _result()])

        await ObligationRepository().lock_obligation(db, ObligationKind.SUBSCRIPTION, "listing-1")

        sql = str(db.execute.await_args_list[0].args[0])
        assert "FOR UPDATE" in sql


class TestSavePayment:
    async def test_checks_previous_version_then_inserts_entry(
        self, db, make_obligation, make_entry
    ) -> None:
        db.execute = AsyncMock(
            side_effect=[_result(one=MagicMock(version=5)), _result(one=_make_ledger_row(id=42))]
        )
        obligation = make_obligation(version=5)

        stored = await ObligationRepository().save_payment(db, obligation, make_entry(id=None))

        update_params = db.execute.await_args_list[0].args[1]
        assert update_params["expected_version"] == 4
        insert_sql = str(db.execute.await_args_list[1].args[0])
        assert "INSERT INTO obligation_ledger_entries" in insert_sql
        assert stored.id == 42

    async def test_version_conflict_raises(self, db, make_obligation, make_entry) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))

        with pytest.raises(InternalError):
            await ObligationRepository().save_payment(db, make_obligation(), make_entry())
        assert db.execute.await_count == 1


class TestSaveStatus:
    async def test_writes_transition_fields(self, db, make_obligation) -> None:
        db.execute = AsyncMock(return_value=_result(one=MagicMock(version=4)))
        obligation = make_obligation(
            status="suspended", suspended_at=NOW, suspension_reason="payment overdue", version=4
        )

        await ObligationRepository().save_status(db, obligation)

        params = db.execute.await_args.args[1]
        assert params["status"] == "suspended"
        assert params["suspended_at"] == NOW
        assert params["expected_version"] == 3

    async def test_version_conflict_raises(self, db, make_obligation) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))
        with pytest.raises(InternalError):
            await ObligationRepository().save_status(db, make_obligation())


class TestInsertObligation:
    async def test_returns_inserted_row(self, db, make_obligation) -> None:
        db.execute = AsyncMock(return_value=_result(one=_make_obligation_row(id="new-uuid")))

        created = await ObligationRepository().insert_obligation(db, make_obligation(id=""))

        assert created.id == "new-uuid"
        assert created.ledger == ()

    async def test_conflict_returns_existing(self, db, make_obligation) -> None:
        db.execute = AsyncMock(
            side_effect=[
                _result(one=None),
                _result(one=_make_obligation_row(id="existing")),
                _result(),
            ]
        )

        created = await ObligationRepository().insert_obligation(db, make_obligation(id=""))

        assert created.id == "existing"


class TestQueries:
    async def test_list_ledger_entries_passes_cursor(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(many=[_make_ledger_row(id=7)]))

        entries = await ObligationRepository().list_ledger_entries(db, "obl-1", None, 21)

        params = db.execute.await_args.args[1]
        assert params == {"obligation_id": "obl-1", "cursor_id": None, "limit": 21}
        assert entries[0].id == 7

    async def test_find_ledger_entry_by_payment_id(self, db) -> None:
        db.execute = AsyncMock(
            return_value=_result(one=_make_ledger_row(id=4, convenience_fee_minor=27_000))
        )

        entry = await ObligationRepository().find_ledger_entry(db, "pay_1")

        assert db.execute.await_args.args[1] == {"external_payment_id": "pay_1"}
        assert entry is not None
        assert entry.id == 4
        assert entry.convenience_fee == 27_000

    async def test_find_ledger_entry_missing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))

        assert await ObligationRepository().find_ledger_entry(db, "pay_x") is None

    async def test_sweep_candidates_skip_ledger(self, db) -> None:
        db.execute = AsyncMock(
            return_value=_result(many=[_make_obligation_row(), _make_obligation_row(id="b")])
        )

        candidates = await ObligationRepository().list_sweep_candidates(db, NOW)

        assert len(candidates) == 2
        assert db.execute.await_count == 1
        assert "suspended_at IS NULL" in str(db.execute.await_args.args[0])

    async def test_listing_rate_basis(self, db) -> None:
        row = MagicMock(unit_type="Flat", rooms=None, beds=None, bhk_label="2BHK")
        db.execute = AsyncMock(return_value=_result(one=row))

        basis = await ObligationRepository().get_listing_rate_basis(db, "listing-1")

        assert basis == ListingRateBasis("Flat", None, None, "2BHK")

    async def test_lease_rate_basis_missing(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=None))
        assert await ObligationRepository().get_lease_rate_basis(db, "nope") is None

    async def test_lease_rate_basis(self, db) -> None:
        db.execute = AsyncMock(return_value=_result(one=MagicMock(monthly_rent=9_000)))
        assert await ObligationRepository().get_lease_rate_basis(db, "lease-1") == LeaseRateBasis(
            9_000
        )

    async def test_set_listing_active(self, db) -> None:
        db.execute = AsyncMock()
        await ObligationRepository().set_listing_active(db, "listing-1", False)
        assert db.execute.await_args.args[1] == {"listing_id": "listing-1", "active": False}
