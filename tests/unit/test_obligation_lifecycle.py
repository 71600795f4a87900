"""Tests for the time-derived lifecycle status."""

from datetime import UTC, datetime, timedelta

import pytest

from src.rb_common.enums import LifecycleStage, ObligationKind
from src.rb_obligation.domain.lifecycle import (
    current_status,
    derive_stage,
    derive_status,
    grace_period_end,
    initial_status,
    status_label,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class TestDeriveStage:
    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (timedelta(days=30), LifecycleStage.CURRENT),
            (timedelta(days=15, seconds=1), LifecycleStage.CURRENT),
            (timedelta(days=15), LifecycleStage.DUE),
            (timedelta(hours=1), LifecycleStage.DUE),
            (timedelta(0), LifecycleStage.OVERDUE),
            (timedelta(days=-10), LifecycleStage.OVERDUE),
            (timedelta(days=-10, hours=-12), LifecycleStage.OVERDUE),
            (timedelta(days=-11), LifecycleStage.LAPSED),
            (timedelta(days=-90), LifecycleStage.LAPSED),
        ],
    )
    def test_buckets(self, offset: timedelta, expected: LifecycleStage) -> None:
        assert derive_stage(NOW + offset, NOW, None) is expected

    def test_suspension_pins_lapsed(self) -> None:
        assert derive_stage(NOW + timedelta(days=60), NOW, NOW) is LifecycleStage.LAPSED

    def test_pure(self) -> None:
        due = NOW - timedelta(days=3)
        results = {derive_stage(due, NOW, None) for _ in range(5)}
        assert results == {LifecycleStage.OVERDUE}


class TestLabels:
    def test_subscription_labels(self) -> None:
        kind = ObligationKind.SUBSCRIPTION
        assert [status_label(kind, s) for s in LifecycleStage] == [
            "active", "due", "overdue", "suspended",
        ]

    def test_lease_labels(self) -> None:
        kind = ObligationKind.LEASE
        assert [status_label(kind, s) for s in LifecycleStage] == [
            "active", "pending", "overdue", "terminated",
        ]

    def test_initial_status(self) -> None:
        assert initial_status(ObligationKind.LEASE) == "active"


class TestDeriveStatus:
    def test_lease_due_is_pending(self) -> None:
        assert derive_status(NOW + timedelta(days=5), NOW, None, ObligationKind.LEASE) == "pending"

    def test_defaults_to_subscription_labels(self) -> None:
        assert derive_status(NOW - timedelta(days=20), NOW, None) == "suspended"

    def test_current_status_ignores_recorded_status(self, make_obligation) -> None:
        obligation = make_obligation(due_at=NOW - timedelta(days=2), status="active")
        assert current_status(obligation, NOW) == "overdue"
        assert obligation.status == "active"

    def test_grace_period_end(self) -> None:
        assert grace_period_end(NOW) == NOW + timedelta(days=10)
