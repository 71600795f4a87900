"""Sweep transition rule — pure function of (obligation, now).

Given the recorded status and the time-derived one, decide what (if
anything) the sweep commits. Running it twice with the same ``now`` yields
no second transition.
"""

from dataclasses import dataclass, replace
from datetime import datetime

from src.rb_common.enums import LifecycleStage
from src.rb_obligation.domain.lifecycle import derive_stage, grace_period_end, status_label
from src.rb_obligation.domain.models import Obligation, StatusTransition

OVERDUE_SUSPENSION_REASON = "payment overdue"


@dataclass(frozen=True)
class TransitionPlan:
    obligation: Obligation           # post-transition value, version bumped
    transition: StatusTransition
    stage: LifecycleStage


def plan_transition(obligation: Obligation, now: datetime) -> TransitionPlan | None:
    """Return the transition to commit, or None when the recorded status is current.

    Explicitly suspended obligations are left alone; only a payment clears them.
    """
    if obligation.suspended_at is not None:
        return None

    stage = derive_stage(obligation.due_at, now, None)
    label = status_label(obligation.kind, stage)
    if label == obligation.status:
        return None

    grace_ends = obligation.grace_period_ends_at
    suspended_at = None
    reason = None
    if stage in (LifecycleStage.CURRENT, LifecycleStage.DUE):
        grace_ends = None
    elif stage is LifecycleStage.OVERDUE:
        grace_ends = grace_period_end(obligation.due_at)
    else:
        grace_ends = grace_ends or grace_period_end(obligation.due_at)
        suspended_at = now
        reason = OVERDUE_SUSPENSION_REASON

    updated = replace(
        obligation,
        status=label,
        grace_period_ends_at=grace_ends,
        suspended_at=suspended_at,
        suspension_reason=reason,
        version=obligation.version + 1,
        updated_at=now,
    )
    transition = StatusTransition(
        obligation_id=obligation.id,
        kind=obligation.kind,
        resource_id=obligation.resource_id,
        from_status=obligation.status,
        to_status=label,
        due_at=obligation.due_at,
        occurred_at=now,
        reason=reason,
    )
    return TransitionPlan(obligation=updated, transition=transition, stage=stage)
