"""Pydantic schemas and cursor utilities for rb_obligation API."""

import base64
import json
from datetime import datetime

from pydantic import BaseModel, Field

from src.rb_common.datetime_utils import days_until
from src.rb_common.money import minor_to_display, to_minor_units
from src.rb_obligation.domain.ledger import ledger_is_consistent, ledger_total, periods_total
from src.rb_obligation.domain.lifecycle import current_status
from src.rb_obligation.domain.models import LedgerEntry, Obligation

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SuspendRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ObligationView(BaseModel):
    obligation_id: str
    kind: str
    resource_id: str
    status: str                       # derived from due_at at read time
    recorded_status: str              # last committed status
    days_until_due: int
    due_at: str
    rate_per_period: int
    rate_per_period_minor: int
    rate_per_period_display: str
    grace_period_ends_at: str | None
    suspended_at: str | None
    suspension_reason: str | None
    last_payment_at: str | None
    payments_count: int
    periods_paid: int
    total_paid_minor: int
    total_paid_display: str
    ledger_consistent: bool           # replaying the ledger reproduces due_at

    @classmethod
    def from_domain(
        cls, obligation: Obligation, now: datetime, currency: str = "INR"
    ) -> "ObligationView":
        rate_minor = to_minor_units(obligation.rate_per_period)
        total_paid = ledger_total(obligation.ledger)
        return cls(
            obligation_id=obligation.id,
            kind=obligation.kind.value,
            resource_id=obligation.resource_id,
            status=current_status(obligation, now),
            recorded_status=obligation.status,
            days_until_due=days_until(obligation.due_at, now),
            due_at=obligation.due_at.isoformat(),
            rate_per_period=obligation.rate_per_period,
            rate_per_period_minor=rate_minor,
            rate_per_period_display=minor_to_display(rate_minor, currency),
            grace_period_ends_at=_iso(obligation.grace_period_ends_at),
            suspended_at=_iso(obligation.suspended_at),
            suspension_reason=obligation.suspension_reason,
            last_payment_at=_iso(obligation.last_payment_at),
            payments_count=len(obligation.ledger),
            periods_paid=periods_total(obligation.ledger),
            total_paid_minor=total_paid,
            total_paid_display=minor_to_display(total_paid, currency),
            ledger_consistent=ledger_is_consistent(obligation),
        )


class LedgerEntryItem(BaseModel):
    id: int | None
    amount_minor: int
    amount_display: str
    convenience_fee_minor: int
    periods_covered: int
    external_payment_id: str
    external_order_id: str
    applied_at: str
    valid_until: str
    entry_status: str

    @classmethod
    def from_domain(cls, entry: LedgerEntry, currency: str = "INR") -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            amount_minor=entry.amount,
            amount_display=minor_to_display(entry.amount, currency),
            convenience_fee_minor=entry.convenience_fee,
            periods_covered=entry.periods_covered,
            external_payment_id=entry.external_payment_id,
            external_order_id=entry.external_order_id,
            applied_at=entry.applied_at.isoformat(),
            valid_until=entry.valid_until.isoformat(),
            entry_status=entry.entry_status,
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool


class ApplyPaymentResult(BaseModel):
    obligation: ObligationView
    entry: LedgerEntryItem
    duplicate: bool


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
