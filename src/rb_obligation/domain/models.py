"""Domain models for rb_obligation — frozen dataclasses, no SQLAlchemy dependency.

An Obligation is embedded in its parent resource (listing or lease) and owns
its ledger. Every mutation produces a new Obligation value; the ledger is a
tuple so callers can never append to it behind the service's back.
"""

from dataclasses import dataclass, field
from datetime import datetime

from src.rb_common.enums import LedgerEntryStatus, ObligationKind


@dataclass(frozen=True)
class LedgerEntry:
    amount: int                      # minor units (paise), > 0
    periods_covered: int             # >= 1
    external_payment_id: str
    external_order_id: str
    applied_at: datetime
    valid_until: datetime            # due_at right after this entry was applied
    convenience_fee: int = 0         # minor units, included in amount; leases only
    entry_status: str = LedgerEntryStatus.COMPLETED.value
    id: int | None = None            # BIGSERIAL, None until persisted


@dataclass(frozen=True)
class Obligation:
    id: str
    kind: ObligationKind
    resource_id: str
    rate_per_period: int             # whole currency units per period
    due_at: datetime
    status: str                      # recorded label; see lifecycle.status_label
    created_at: datetime
    grace_period_ends_at: datetime | None = None
    suspended_at: datetime | None = None
    suspension_reason: str | None = None
    last_payment_at: datetime | None = None
    version: int = 0
    updated_at: datetime | None = None
    ledger: tuple[LedgerEntry, ...] = field(default_factory=tuple)

    def find_entry(self, external_payment_id: str) -> LedgerEntry | None:
        for entry in self.ledger:
            if entry.external_payment_id == external_payment_id:
                return entry
        return None


@dataclass(frozen=True)
class StatusTransition:
    """A committed change of recorded status; published to subscribers."""

    obligation_id: str
    kind: ObligationKind
    resource_id: str
    from_status: str
    to_status: str
    due_at: datetime
    occurred_at: datetime
    reason: str | None = None
