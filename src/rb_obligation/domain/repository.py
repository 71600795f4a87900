"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.rb_common.enums import ObligationKind
from src.rb_obligation.domain.models import LedgerEntry, Obligation
from src.rb_pricing.domain.models import LeaseRateBasis, ListingRateBasis


class ObligationRepositoryProtocol(Protocol):
    async def get_obligation(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> Obligation | None: ...

    async def lock_obligation(
        self, db: AsyncSession, kind: ObligationKind, resource_id: str
    ) -> Obligation | None: ...

    async def insert_obligation(
        self, db: AsyncSession, obligation: Obligation
    ) -> Obligation: ...

    async def save_payment(
        self, db: AsyncSession, obligation: Obligation, entry: LedgerEntry
    ) -> LedgerEntry: ...

    async def save_status(
        self, db: AsyncSession, obligation: Obligation
    ) -> None: ...

    async def update_rate(
        self, db: AsyncSession, obligation_id: str, rate_per_period: int
    ) -> None: ...

    async def list_ledger_entries(
        self,
        db: AsyncSession,
        obligation_id: str,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerEntry]: ...

    async def find_ledger_entry(
        self, db: AsyncSession, external_payment_id: str
    ) -> LedgerEntry | None: ...

    async def list_sweep_candidates(
        self, db: AsyncSession, due_before: datetime
    ) -> list[Obligation]: ...

    async def get_listing_rate_basis(
        self, db: AsyncSession, listing_id: str
    ) -> ListingRateBasis | None: ...

    async def get_lease_rate_basis(
        self, db: AsyncSession, lease_id: str
    ) -> LeaseRateBasis | None: ...

    async def set_listing_active(
        self, db: AsyncSession, listing_id: str, active: bool
    ) -> None: ...
