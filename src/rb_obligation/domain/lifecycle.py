"""Lifecycle state machine: status is a pure function of time.

    days = ceil((due_at - now) / 1 day)

    days > 15          CURRENT   (subscription: active,    lease: active)
    0 < days <= 15     DUE       (subscription: due,       lease: pending)
    -10 <= days <= 0   OVERDUE   (subscription: overdue,   lease: overdue)
    days < -10         LAPSED    (subscription: suspended, lease: terminated)

A recorded ``suspended_at`` pins the result to LAPSED until a payment clears
it. Nothing in this module writes; committing a transition is the job of the
reconciliation sweep and the apply-payment path.
"""

from datetime import datetime, timedelta

from src.rb_common.datetime_utils import days_until
from src.rb_common.enums import LeaseStatus, LifecycleStage, ObligationKind, SubscriptionStatus
from src.rb_obligation.domain.models import Obligation

DUE_WINDOW_DAYS = 15
GRACE_PERIOD_DAYS = 10

_LABELS: dict[ObligationKind, dict[LifecycleStage, str]] = {
    ObligationKind.SUBSCRIPTION: {
        LifecycleStage.CURRENT: SubscriptionStatus.ACTIVE.value,
        LifecycleStage.DUE: SubscriptionStatus.DUE.value,
        LifecycleStage.OVERDUE: SubscriptionStatus.OVERDUE.value,
        LifecycleStage.LAPSED: SubscriptionStatus.SUSPENDED.value,
    },
    ObligationKind.LEASE: {
        LifecycleStage.CURRENT: LeaseStatus.ACTIVE.value,
        LifecycleStage.DUE: LeaseStatus.PENDING.value,
        LifecycleStage.OVERDUE: LeaseStatus.OVERDUE.value,
        LifecycleStage.LAPSED: LeaseStatus.TERMINATED.value,
    },
}


def derive_stage(
    due_at: datetime, now: datetime, suspended_at: datetime | None
) -> LifecycleStage:
    if suspended_at is not None:
        return LifecycleStage.LAPSED
    days = days_until(due_at, now)
    if days > DUE_WINDOW_DAYS:
        return LifecycleStage.CURRENT
    if days > 0:
        return LifecycleStage.DUE
    if days >= -GRACE_PERIOD_DAYS:
        return LifecycleStage.OVERDUE
    return LifecycleStage.LAPSED


def status_label(kind: ObligationKind, stage: LifecycleStage) -> str:
    return _LABELS[kind][stage]


def derive_status(
    due_at: datetime,
    now: datetime,
    suspended_at: datetime | None,
    kind: ObligationKind = ObligationKind.SUBSCRIPTION,
) -> str:
    """Candidate status label for ``kind`` at ``now``."""
    return status_label(kind, derive_stage(due_at, now, suspended_at))


def initial_status(kind: ObligationKind) -> str:
    return status_label(kind, LifecycleStage.CURRENT)


def current_status(obligation: Obligation, now: datetime) -> str:
    """Read-side projection: what the status is right now, without committing."""
    return derive_status(
        obligation.due_at, now, obligation.suspended_at, obligation.kind
    )


def grace_period_end(due_at: datetime) -> datetime:
    return due_at + timedelta(days=GRACE_PERIOD_DAYS)
