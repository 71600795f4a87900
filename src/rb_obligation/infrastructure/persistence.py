"""ObligationRepository — concrete implementation of ObligationRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.

Transaction ownership: the CALLER (application service or sweep) starts and
commits the transaction. ``lock_obligation`` must run inside it: the row stays
locked (SELECT ... FOR UPDATE) until that transaction ends.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.enums import ObligationKind
from src.rb_common.errors import InternalError
from src.rb_obligation.domain.models import LedgerEntry, Obligation
from src.rb_pricing.domain.models import LeaseRateBasis, ListingRateBasis

# ---------------------------------------------------------------------------
# SQL: obligations
# ---------------------------------------------------------------------------

_OBLIGATION_COLUMNS = """
    id, kind, resource_id, rate_per_period, due_at, status,
    grace_period_ends_at, suspended_at, suspension_reason,
    last_payment_at, version, created_at, updated_at
"""

_GET_OBLIGATION_SQL = text(f"""
    SELECT {_OBLIGATION_COLUMNS}
    FROM obligations
    WHERE kind = :kind AND resource_id = :resource_id
""")

_LOCK_OBLIGATION_SQL = text(f"""
    SELECT {_OBLIGATION_COLUMNS}
    FROM obligations
    WHERE kind = :kind AND resource_id = :resource_id
    FOR UPDATE
""")

_INSERT_OBLIGATION_SQL = text(f"""
    INSERT INTO obligations
        (kind, resource_id, rate_per_period, due_at, status, created_at)
    VALUES
        (:kind, :resource_id, :rate_per_period, :due_at, :status, :created_at)
    ON CONFLICT (kind, resource_id) DO NOTHING
    RETURNING {_OBLIGATION_COLUMNS}
""")

_SAVE_PAYMENT_SQL = text("""
    UPDATE obligations
    SET due_at = :due_at,
        status = :status,
        last_payment_at = :last_payment_at,
        grace_period_ends_at = NULL,
        suspended_at = NULL,
        suspension_reason = NULL,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND version = :expected_version
    RETURNING version
""")

_SAVE_STATUS_SQL = text("""
    UPDATE obligations
    SET status = :status,
        grace_period_ends_at = :grace_period_ends_at,
        suspended_at = :suspended_at,
        suspension_reason = :suspension_reason,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id AND version = :expected_version
    RETURNING version
""")

_UPDATE_RATE_SQL = text("""
    UPDATE obligations
    SET rate_per_period = :rate_per_period,
        version = version + 1,
        updated_at = NOW()
    WHERE id = :id
""")

_LIST_SWEEP_CANDIDATES_SQL = text(f"""
    SELECT {_OBLIGATION_COLUMNS}
    FROM obligations
    WHERE suspended_at IS NULL
      AND due_at <= :due_before
    ORDER BY due_at ASC, id ASC
""")

# ---------------------------------------------------------------------------
# SQL: ledger (append-only; there is no UPDATE or DELETE statement for it)
# ---------------------------------------------------------------------------

_LEDGER_COLUMNS = """
    id, amount, periods_covered, external_payment_id, external_order_id,
    applied_at, valid_until, convenience_fee_minor, entry_status
"""

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO obligation_ledger_entries
        (obligation_id, amount, periods_covered, external_payment_id,
         external_order_id, applied_at, valid_until, convenience_fee_minor,
         entry_status)
    VALUES
        (:obligation_id, :amount, :periods_covered, :external_payment_id,
         :external_order_id, :applied_at, :valid_until, :convenience_fee_minor,
         :entry_status)
    RETURNING {_LEDGER_COLUMNS}
""")

_ALL_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM obligation_ledger_entries
    WHERE obligation_id = :obligation_id
    ORDER BY id ASC
""")

_FIND_LEDGER_ENTRY_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM obligation_ledger_entries
    WHERE external_payment_id = :external_payment_id
""")

_LIST_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM obligation_ledger_entries
    WHERE obligation_id = :obligation_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
    ORDER BY id DESC
    LIMIT :limit
""")

# ---------------------------------------------------------------------------
# SQL: parent resources (owned by the resource store; read rate inputs only)
# ---------------------------------------------------------------------------

_GET_LISTING_SQL = text("""
    SELECT id, unit_type, rooms, beds, bhk_label
    FROM listings
    WHERE id = :listing_id
""")

_GET_LEASE_SQL = text("""
    SELECT id, monthly_rent
    FROM leases
    WHERE id = :lease_id
""")

_SET_LISTING_ACTIVE_SQL = text("""
    UPDATE listings
    SET is_active = :active,
        updated_at = NOW()
    WHERE id = :listing_id
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_obligation(row: object, ledger: tuple[LedgerEntry, ...] = ()) -> Obligation:
    return Obligation(
        id=str(row.id),  # type: ignore[attr-defined]
        kind=ObligationKind(row.kind),  # type: ignore[attr-defined]
        resource_id=row.resource_id,  # type: ignore[attr-defined]
        rate_per_period=row.rate_per_period,  # type: ignore[attr-defined]
        due_at=row.due_at,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        grace_period_ends_at=row.grace_period_ends_at,  # type: ignore[attr-defined]
        suspended_at=row.suspended_at,  # type: ignore[attr-defined]
        suspension_reason=row.suspension_reason,  # type: ignore[attr-defined]
        last_payment_at=row.last_payment_at,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
        ledger=ledger,
    )


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        periods_covered=row.periods_covered,  # type: ignore[attr-defined]
        external_payment_id=row.external_payment_id,  # type: ignore[attr-defined]
        external_order_id=row.external_order_id,  # type: ignore[attr-defined]
        applied_at=row.applied_at,  # type: ignore[attr-defined]
        valid_until=row.valid_until,  # type: ignore[attr-defined]
        convenience_fee=row.convenience_fee_minor,  # type: ignore[attr-defined]
        entry_status=row.entry_status,  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ObligationRepository:
    """Concrete repository; writes use optimistic version checks under the row lock."""

    async def _load_ledger(
        self, db: AsyncSession, obligation_id: str
    ) -> tuple[LedgerEntry, ...]:
        result = await db.execute(_ALL_LEDGER_SQL, {"obligation_id": obligation_id})
        return tuple(_row_to_ledger(row) for row in result.fetchall())

    async def get_obligation(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> Obligation | None:
        result = await db.execute(
            _GET_OBLIGATION_SQL, {"kind": kind.value, "resource_id": resource_id}
        )
        row = result.fetchone()
        if row is None:
            return None
        ledger = await self._load_ledger(db, str(row.id))
        return _row_to_obligation(row, ledger)

    async def lock_obligation(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> Obligation | None:
        result = await db.execute(
            _LOCK_OBLIGATION_SQL, {"kind": kind.value, "resource_id": resource_id}
        )
        row = result.fetchone()
        if row is None:
            return None
        ledger = await self._load_ledger(db, str(row.id))
        return _row_to_obligation(row, ledger)

    async def insert_obligation(
        self, db: AsyncSession, obligation: Obligation
    ) -> Obligation:
        result = await db.execute(
            _INSERT_OBLIGATION_SQL,
            {
                "kind": obligation.kind.value,
                "resource_id": obligation.resource_id,
                "rate_per_period": obligation.rate_per_period,
                "due_at": obligation.due_at,
                "status": obligation.status,
                "created_at": obligation.created_at,
            },
        )
        row = result.fetchone()
        if row is None:
            # ON CONFLICT DO NOTHING: another request created it first
            existing = await self.get_obligation(db, obligation.kind, obligation.resource_id)
            if existing is None:
                raise InternalError("Obligation insert returned no rows — this should never happen")
            return existing
        return _row_to_obligation(row)

    async def save_payment(
        self, db: AsyncSession, obligation: Obligation, entry: LedgerEntry
    ) -> LedgerEntry:
        # obligation is the post-payment value; its version was bumped by one
        result = await db.execute(
            _SAVE_PAYMENT_SQL,
            {
                "id": obligation.id,
                "due_at": obligation.due_at,
                "status": obligation.status,
                "last_payment_at": obligation.last_payment_at,
                "expected_version": obligation.version - 1,
            },
        )
        if result.fetchone() is None:
            raise InternalError(f"Obligation {obligation.id} changed while locked")
        ledger_result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "obligation_id": obligation.id,
                "amount": entry.amount,
                "periods_covered": entry.periods_covered,
                "external_payment_id": entry.external_payment_id,
                "external_order_id": entry.external_order_id,
                "applied_at": entry.applied_at,
                "valid_until": entry.valid_until,
                "convenience_fee_minor": entry.convenience_fee,
                "entry_status": entry.entry_status,
            },
        )
        ledger_row = ledger_result.fetchone()
        if ledger_row is None:
            raise InternalError("Ledger insert returned no rows — this should never happen")
        return _row_to_ledger(ledger_row)

    async def save_status(self, db: AsyncSession, obligation: Obligation) -> None:
        result = await db.execute(
            _SAVE_STATUS_SQL,
            {
                "id": obligation.id,
                "status": obligation.status,
                "grace_period_ends_at": obligation.grace_period_ends_at,
                "suspended_at": obligation.suspended_at,
                "suspension_reason": obligation.suspension_reason,
                "expected_version": obligation.version - 1,
            },
        )
        if result.fetchone() is None:
            raise InternalError(f"Obligation {obligation.id} changed while locked")

    async def update_rate(
        self, db: AsyncSession, obligation_id: str, rate_per_period: int
    ) -> None:
        await db.execute(
            _UPDATE_RATE_SQL, {"id": obligation_id, "rate_per_period": rate_per_period}
        )

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        obligation_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {"obligation_id": obligation_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def find_ledger_entry(
        self, db: AsyncSession, external_payment_id: str
    ) -> LedgerEntry | None:
        result = await db.execute(
            _FIND_LEDGER_ENTRY_SQL, {"external_payment_id": external_payment_id}
        )
        row = result.fetchone()
        return _row_to_ledger(row) if row is not None else None

    async def list_sweep_candidates(
        self, db: AsyncSession, due_before: datetime
    ) -> list[Obligation]:
        # Ledger not loaded: the sweep only reads time fields
        result = await db.execute(_LIST_SWEEP_CANDIDATES_SQL, {"due_before": due_before})
        return [_row_to_obligation(row) for row in result.fetchall()]

    async def get_listing_rate_basis(
        self, db: AsyncSession, listing_id: str
    ) -> ListingRateBasis | None:
        result = await db.execute(_GET_LISTING_SQL, {"listing_id": listing_id})
        row = result.fetchone()
        if row is None:
            return None
        return ListingRateBasis(
            unit_type=row.unit_type,
            rooms=row.rooms,
            beds=row.beds,
            bhk_label=row.bhk_label,
        )

    async def get_lease_rate_basis(
        self, db: AsyncSession, lease_id: str
    ) -> LeaseRateBasis | None:
        result = await db.execute(_GET_LEASE_SQL, {"lease_id": lease_id})
        row = result.fetchone()
        if row is None:
            return None
        return LeaseRateBasis(monthly_rent=row.monthly_rent)

    async def set_listing_active(
        self, db: AsyncSession, listing_id: str, active: bool
    ) -> None:
        await db.execute(
            _SET_LISTING_ACTIVE_SQL, {"listing_id": listing_id, "active": active}
        )
