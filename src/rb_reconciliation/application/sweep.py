"""ReconciliationSweep — commits time-driven status transitions.

Each candidate is handled in its own transaction under its obligation lock,
so a failure on one obligation never blocks or rolls back the others.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.datetime_utils import utc_now
from src.rb_common.enums import LifecycleStage, ObligationKind
from src.rb_common.errors import InternalError
from src.rb_obligation.application.locks import ObligationLocks, get_obligation_locks
from src.rb_obligation.domain.events import TransitionPublisherProtocol
from src.rb_obligation.domain.lifecycle import DUE_WINDOW_DAYS
from src.rb_obligation.domain.models import Obligation, StatusTransition
from src.rb_obligation.domain.repository import ObligationRepositoryProtocol
from src.rb_obligation.infrastructure.persistence import ObligationRepository
from src.rb_reconciliation.domain.transitions import plan_transition

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    started_at: datetime
    scanned: int = 0
    transitioned: int = 0
    failed: int = 0
    transitions: list[StatusTransition] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "scanned": self.scanned,
            "transitioned": self.transitioned,
            "failed": self.failed,
            "transitions": [
                {
                    "kind": t.kind.value,
                    "resource_id": t.resource_id,
                    "from_status": t.from_status,
                    "to_status": t.to_status,
                }
                for t in self.transitions
            ],
        }


class ReconciliationSweep:
    def __init__(
        self,
        repo: ObligationRepositoryProtocol | None = None,
        locks: ObligationLocks | None = None,
        publisher: TransitionPublisherProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo: ObligationRepositoryProtocol = repo or ObligationRepository()
        self._locks = locks or get_obligation_locks()
        self._publisher = publisher
        self._clock = clock

    async def run(self, db: AsyncSession, now: datetime | None = None) -> SweepReport:
        now = now or self._clock()
        report = SweepReport(started_at=now)
        horizon = now + timedelta(days=DUE_WINDOW_DAYS)
        try:
            candidates = await self._repo.list_sweep_candidates(db, horizon)
        finally:
            # End the read transaction before per-candidate ones start
            await db.rollback()
        report.scanned = len(candidates)

        for candidate in candidates:
            try:
                transition = await self._reconcile_one(db, candidate, now)
            except (SQLAlchemyError, InternalError) as exc:
                report.failed += 1
                logger.error(
                    "Sweep failed for %s/%s: %s",
                    candidate.kind.value,
                    candidate.resource_id,
                    exc,
                )
                continue
            if transition is None:
                continue
            report.transitioned += 1
            report.transitions.append(transition)
            if self._publisher is not None:
                await self._publisher.publish(transition)

        logger.info(
            "Sweep at %s: scanned=%d transitioned=%d failed=%d",
            now.isoformat(),
            report.scanned,
            report.transitioned,
            report.failed,
        )
        return report

    async def _reconcile_one(
        self, db: AsyncSession, candidate: Obligation, now: datetime
    ) -> StatusTransition | None:
        async with self._locks.get(candidate.kind, candidate.resource_id):
            try:
                # Re-read under the row lock: a payment may have landed since listing
                current = await self._repo.lock_obligation(
                    db, candidate.kind, candidate.resource_id
                )
                plan = plan_transition(current, now) if current is not None else None
                if plan is None:
                    await db.rollback()
                    return None
                await self._repo.save_status(db, plan.obligation)
                if (
                    plan.stage is LifecycleStage.LAPSED
                    and plan.obligation.kind is ObligationKind.SUBSCRIPTION
                ):
                    await self._repo.set_listing_active(db, plan.obligation.resource_id, False)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info(
            "%s/%s: %s → %s",
            plan.transition.kind.value,
            plan.transition.resource_id,
            plan.transition.from_status,
            plan.transition.to_status,
        )
        return plan.transition
