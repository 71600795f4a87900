"""Tests for rb_obligation schemas and the transition publisher payload."""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from src.rb_common.enums import ObligationKind
from src.rb_obligation.application.schemas import (
    LedgerEntryItem,
    ObligationView,
    cursor_decode,
    cursor_encode,
)
from src.rb_obligation.domain.models import StatusTransition
from src.rb_obligation.infrastructure.publisher import (
    TRANSITIONS_CHANNEL,
    RedisTransitionPublisher,
    transition_to_payload,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _transition() -> StatusTransition:
    return StatusTransition(
        obligation_id="obl-1",
        kind=ObligationKind.LEASE,
        resource_id="lease-1",
        from_status="overdue",
        to_status="terminated",
        due_at=NOW - timedelta(days=11),
        occurred_at=NOW,
        reason="payment overdue",
    )


class TestCursor:
    def test_round_trip(self) -> None:
        assert cursor_decode(cursor_encode(12345)) == 12345

    def test_none(self) -> None:
        assert cursor_decode(None) is None

    def test_garbage_is_ignored(self) -> None:
        assert cursor_decode("not-a-cursor") is None


class TestObligationView:
    def test_totals_and_display(self, make_obligation, make_entry) -> None:
        obligation = make_obligation(
            due_at=NOW + timedelta(days=31),
            ledger=(
                make_entry(amount=5_400, external_payment_id="a"),
                make_entry(amount=14_100, periods_covered=3, external_payment_id="b"),
            ),
        )

        view = ObligationView.from_domain(obligation, NOW)

        assert view.status == "active"
        assert view.days_until_due == 31
        assert view.payments_count == 2
        assert view.periods_paid == 4
        assert view.total_paid_minor == 19_500
        assert view.total_paid_display == "INR 195.00"
        assert view.ledger_consistent is True
        assert view.suspended_at is None

    def test_flags_ledger_that_does_not_replay(self, make_obligation, make_entry) -> None:
        obligation = make_obligation(
            due_at=NOW + timedelta(days=90),
            ledger=(make_entry(valid_until=NOW + timedelta(days=31)),),
        )

        view = ObligationView.from_domain(obligation, NOW)

        assert view.ledger_consistent is False

    def test_ledger_item(self, make_entry) -> None:
        item = LedgerEntryItem.from_domain(make_entry(amount=5_545_800))
        assert item.amount_display == "INR 55,458.00"
        assert item.entry_status == "completed"
        assert item.convenience_fee_minor == 0


class TestTransitionPublisher:
    def test_payload(self) -> None:
        payload = json.loads(transition_to_payload(_transition()))
        assert payload["kind"] == "lease"
        assert payload["to_status"] == "terminated"
        assert payload["occurred_at"] == NOW.isoformat()

    async def test_publishes_to_channel(self) -> None:
        redis = AsyncMock()
        publisher = RedisTransitionPublisher(AsyncMock(return_value=redis))

        await publisher.publish(_transition())

        channel, message = redis.publish.await_args.args
        assert channel == TRANSITIONS_CHANNEL
        assert json.loads(message)["resource_id"] == "lease-1"

    async def test_redis_outage_is_swallowed(self) -> None:
        redis = AsyncMock()
        redis.publish.side_effect = RedisConnectionError("down")
        publisher = RedisTransitionPublisher(AsyncMock(return_value=redis))

        await publisher.publish(_transition())

        redis.publish.assert_awaited_once()
