"""ObligationApplicationService — composition layer over the obligation repository.

Mutating operations (open, apply_payment, refresh_rate, suspend) take the
per-obligation lock, run in one DB transaction and commit or roll back as a
unit. Read operations take a snapshot and never write.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.datetime_utils import add_months, utc_now
from src.rb_common.enums import LifecycleStage, ObligationKind
from src.rb_common.errors import (
    InternalError,
    InvalidPaymentDataError,
    ObligationExistsError,
    ObligationNotFoundError,
    PaymentAppliedButNotPersistedError,
    ResourceNotFoundError,
)
from src.rb_obligation.application.locks import ObligationLocks, get_obligation_locks
from src.rb_obligation.application.schemas import (
    ApplyPaymentResult,
    LedgerEntryItem,
    LedgerResponse,
    ObligationView,
    cursor_decode,
    cursor_encode,
)
from src.rb_obligation.domain.events import TransitionPublisherProtocol
from src.rb_obligation.domain.ledger import apply_payment, validate_payment
from src.rb_obligation.domain.lifecycle import initial_status, status_label
from src.rb_obligation.domain.models import Obligation, StatusTransition
from src.rb_obligation.domain.repository import ObligationRepositoryProtocol
from src.rb_obligation.infrastructure.persistence import ObligationRepository
from src.rb_pricing.domain.calculator import per_period_rate
from src.rb_pricing.domain.models import RateBasis
from src.rb_pricing.domain.policy import DiscountPolicy

logger = logging.getLogger(__name__)

PAYMENT_REACTIVATION_REASON = "payment received"


class ObligationApplicationService:
    def __init__(
        self,
        policy: DiscountPolicy,
        repo: ObligationRepositoryProtocol | None = None,
        locks: ObligationLocks | None = None,
        publisher: TransitionPublisherProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
        currency: str = "INR",
    ) -> None:
        self._policy = policy
        self._repo: ObligationRepositoryProtocol = repo or ObligationRepository()
        self._locks = locks or get_obligation_locks()
        self._publisher = publisher
        self._clock = clock
        self._currency = currency

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_obligation(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> Obligation:
        obligation = await self._repo.get_obligation(db, kind, resource_id)
        if obligation is None:
            raise ObligationNotFoundError(kind.value, resource_id)
        return obligation

    async def get_status(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> ObligationView:
        obligation = await self.get_obligation(db, kind, resource_id)
        return ObligationView.from_domain(obligation, self._clock(), self._currency)

    async def list_ledger(
        self,
        db: AsyncSession,
        kind: ObligationKind,
        resource_id: str,
        cursor: str | None,
        limit: int,
    ) -> LedgerResponse:
        obligation = await self.get_obligation(db, kind, resource_id)
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_ledger_entries(
            db, obligation.id, cursor_id, limit + 1
        )
        has_more = len(entries) > limit
        page = entries[:limit]
        items = [LedgerEntryItem.from_domain(e, self._currency) for e in page]
        last_id = page[-1].id if page else None
        next_cursor = cursor_encode(last_id) if has_more and last_id is not None else None
        return LedgerResponse(items=items, next_cursor=next_cursor, has_more=has_more)

    async def find_payment_entry(
        self, db: AsyncSession, external_payment_id: str
    ) -> LedgerEntryItem | None:
        entry = await self._repo.find_ledger_entry(db, external_payment_id)
        if entry is None:
            return None
        return LedgerEntryItem.from_domain(entry, self._currency)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def rate_basis(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> RateBasis:
        basis: RateBasis | None
        if kind is ObligationKind.SUBSCRIPTION:
            basis = await self._repo.get_listing_rate_basis(db, resource_id)
        else:
            basis = await self._repo.get_lease_rate_basis(db, resource_id)
        if basis is None:
            raise ResourceNotFoundError(kind.value, resource_id)
        return basis

    async def open_obligation(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> ObligationView:
        """Create the obligation for a newly created listing or lease.

        The first period is free of charge: due_at = now + 1 calendar month.
        """
        now = self._clock()
        async with self._locks.get(kind, resource_id):
            try:
                if await self._repo.get_obligation(db, kind, resource_id) is not None:
                    raise ObligationExistsError(kind.value, resource_id)
                basis = await self.rate_basis(db, kind, resource_id)
                obligation = Obligation(
                    id="",
                    kind=kind,
                    resource_id=resource_id,
                    rate_per_period=per_period_rate(basis, self._policy),
                    due_at=add_months(now, 1),
                    status=initial_status(kind),
                    created_at=now,
                )
                created = await self._repo.insert_obligation(db, obligation)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info(
            "Opened %s obligation for %s: rate=%d due_at=%s",
            kind.value,
            resource_id,
            created.rate_per_period,
            created.due_at.isoformat(),
        )
        return ObligationView.from_domain(created, now, self._currency)

    async def apply_payment(
        self,
        db: AsyncSession,
        kind: ObligationKind,
        resource_id: str,
        amount: int,
        periods_covered: int,
        external_payment_id: str,
        external_order_id: str,
        convenience_fee: int = 0,
    ) -> ApplyPaymentResult:
        """Credit a verified payment (amount and fee in minor units).

        Safe to retry: a payment id already in the ledger is a no-op success.
        Any failure after validation raises PaymentAppliedButNotPersistedError
        so the caller retries this step instead of charging again.
        """
        validate_payment(
            amount, periods_covered, external_payment_id, external_order_id, convenience_fee
        )

        async with self._locks.get(kind, resource_id):
            now = self._clock()
            try:
                current = await self._repo.lock_obligation(db, kind, resource_id)
                if current is None:
                    raise ObligationNotFoundError(kind.value, resource_id)
                application = apply_payment(
                    current,
                    amount,
                    periods_covered,
                    external_payment_id,
                    external_order_id,
                    now,
                    convenience_fee,
                )
                if application.duplicate:
                    await db.rollback()
                    logger.info(
                        "Payment %s already applied to %s/%s; no-op",
                        external_payment_id,
                        kind.value,
                        resource_id,
                    )
                    return ApplyPaymentResult(
                        obligation=ObligationView.from_domain(current, now, self._currency),
                        entry=LedgerEntryItem.from_domain(application.entry, self._currency),
                        duplicate=True,
                    )
                stored_entry = await self._repo.save_payment(
                    db, application.obligation, application.entry
                )
                if application.reactivate_parent:
                    await self._repo.set_listing_active(db, resource_id, True)
                await db.commit()
            except (ObligationNotFoundError, InvalidPaymentDataError):
                await db.rollback()
                raise
            except (SQLAlchemyError, InternalError, OSError) as exc:
                await db.rollback()
                logger.error(
                    "Verified payment %s for %s/%s not persisted: %s",
                    external_payment_id,
                    kind.value,
                    resource_id,
                    exc,
                )
                raise PaymentAppliedButNotPersistedError(external_payment_id) from exc
            except Exception:
                await db.rollback()
                raise

        updated = replace(
            application.obligation,
            ledger=(*application.obligation.ledger[:-1], stored_entry),
        )
        logger.info(
            "Applied payment %s to %s/%s: amount=%d periods=%d due_at=%s",
            external_payment_id,
            kind.value,
            resource_id,
            amount,
            periods_covered,
            updated.due_at.isoformat(),
        )
        if application.previous_status != updated.status:
            await self._publish(
                StatusTransition(
                    obligation_id=updated.id,
                    kind=kind,
                    resource_id=resource_id,
                    from_status=application.previous_status,
                    to_status=updated.status,
                    due_at=updated.due_at,
                    occurred_at=now,
                    reason=PAYMENT_REACTIVATION_REASON,
                )
            )
        return ApplyPaymentResult(
            obligation=ObligationView.from_domain(updated, now, self._currency),
            entry=LedgerEntryItem.from_domain(stored_entry, self._currency),
            duplicate=False,
        )

    async def refresh_rate(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> ObligationView:
        """Recompute rate_per_period after the parent's capacity or rent changed.

        Affects future charges only; due_at and the ledger are untouched.
        """
        async with self._locks.get(kind, resource_id):
            now = self._clock()
            try:
                current = await self._repo.lock_obligation(db, kind, resource_id)
                if current is None:
                    raise ObligationNotFoundError(kind.value, resource_id)
                basis = await self.rate_basis(db, kind, resource_id)
                rate = per_period_rate(basis, self._policy)
                if rate != current.rate_per_period:
                    await self._repo.update_rate(db, current.id, rate)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        if rate != current.rate_per_period:
            logger.info(
                "Rate for %s/%s changed %d → %d",
                kind.value,
                resource_id,
                current.rate_per_period,
                rate,
            )
        updated = replace(current, rate_per_period=rate)
        return ObligationView.from_domain(updated, now, self._currency)

    async def suspend(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str, reason: str
    ) -> ObligationView:
        """Suspend a subscription (owner delisted) or terminate a lease.

        Sticky until the next applied payment. Listings are deactivated.
        """
        async with self._locks.get(kind, resource_id):
            now = self._clock()
            try:
                current = await self._repo.lock_obligation(db, kind, resource_id)
                if current is None:
                    raise ObligationNotFoundError(kind.value, resource_id)
                if current.suspended_at is not None:
                    await db.rollback()
                    return ObligationView.from_domain(current, now, self._currency)
                updated = replace(
                    current,
                    status=status_label(kind, LifecycleStage.LAPSED),
                    suspended_at=now,
                    suspension_reason=reason,
                    version=current.version + 1,
                    updated_at=now,
                )
                await self._repo.save_status(db, updated)
                if kind is ObligationKind.SUBSCRIPTION:
                    await self._repo.set_listing_active(db, resource_id, False)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        logger.info("Suspended %s/%s: %s", kind.value, resource_id, reason)
        await self._publish(
            StatusTransition(
                obligation_id=updated.id,
                kind=kind,
                resource_id=resource_id,
                from_status=current.status,
                to_status=updated.status,
                due_at=updated.due_at,
                occurred_at=now,
                reason=reason,
            )
        )
        return ObligationView.from_domain(updated, now, self._currency)

    async def _publish(self, transition: StatusTransition) -> None:
        if self._publisher is not None:
            await self._publisher.publish(transition)
