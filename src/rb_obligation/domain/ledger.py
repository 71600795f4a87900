"""Apply-payment rule and ledger aggregates — pure functions, no I/O.

The application service runs ``apply_payment`` under the obligation's row
lock and persists the result in a single transaction.
"""

from dataclasses import dataclass, replace
from datetime import datetime

from src.rb_common.datetime_utils import add_months, ensure_utc
from src.rb_common.enums import LedgerEntryStatus, ObligationKind
from src.rb_common.errors import InvalidPaymentDataError
from src.rb_obligation.domain.lifecycle import initial_status
from src.rb_obligation.domain.models import LedgerEntry, Obligation


@dataclass(frozen=True)
class PaymentApplication:
    obligation: Obligation
    entry: LedgerEntry
    duplicate: bool                  # True: entry already existed, nothing changed
    reactivate_parent: bool          # True: listing must be marked active again
    previous_status: str


def validate_payment(
    amount: int,
    periods_covered: int,
    external_payment_id: str,
    external_order_id: str,
    convenience_fee: int = 0,
) -> None:
    if amount <= 0:
        raise InvalidPaymentDataError(f"amount must be positive, got {amount}")
    if not 0 <= convenience_fee <= amount:
        raise InvalidPaymentDataError(
            f"convenience_fee must be within 0..{amount}, got {convenience_fee}"
        )
    if periods_covered < 1:
        raise InvalidPaymentDataError(f"periods_covered must be >= 1, got {periods_covered}")
    if not external_payment_id or not external_payment_id.strip():
        raise InvalidPaymentDataError("external_payment_id is required")
    if not external_order_id or not external_order_id.strip():
        raise InvalidPaymentDataError("external_order_id is required")


def renewal_base(kind: ObligationKind, due_at: datetime, now: datetime) -> datetime:
    """Date the new coverage is counted from.

    Subscriptions restart from the payment moment when already past due, so
    missed periods are not back-billed. Leases always continue from the
    previous due date.
    """
    if kind is ObligationKind.SUBSCRIPTION:
        return max(ensure_utc(due_at), ensure_utc(now))
    return ensure_utc(due_at)


def next_due_at(
    kind: ObligationKind, due_at: datetime, now: datetime, periods_covered: int
) -> datetime:
    return add_months(renewal_base(kind, due_at, now), periods_covered)


def apply_payment(
    obligation: Obligation,
    amount: int,
    periods_covered: int,
    external_payment_id: str,
    external_order_id: str,
    now: datetime,
    convenience_fee: int = 0,
) -> PaymentApplication:
    """Credit one verified payment to ``obligation``.

    Re-applying a payment id that is already in the ledger returns the
    existing entry with ``duplicate=True`` and the obligation unchanged.
    """
    validate_payment(
        amount, periods_covered, external_payment_id, external_order_id, convenience_fee
    )

    existing = obligation.find_entry(external_payment_id)
    if existing is not None:
        return PaymentApplication(
            obligation=obligation,
            entry=existing,
            duplicate=True,
            reactivate_parent=False,
            previous_status=obligation.status,
        )

    new_due_at = next_due_at(obligation.kind, obligation.due_at, now, periods_covered)
    entry = LedgerEntry(
        amount=amount,
        periods_covered=periods_covered,
        external_payment_id=external_payment_id,
        external_order_id=external_order_id,
        applied_at=now,
        valid_until=new_due_at,
        convenience_fee=convenience_fee,
        entry_status=LedgerEntryStatus.COMPLETED.value,
    )
    updated = replace(
        obligation,
        due_at=new_due_at,
        status=initial_status(obligation.kind),
        last_payment_at=now,
        grace_period_ends_at=None,
        suspended_at=None,
        suspension_reason=None,
        version=obligation.version + 1,
        updated_at=now,
        ledger=(*obligation.ledger, entry),
    )
    return PaymentApplication(
        obligation=updated,
        entry=entry,
        duplicate=False,
        reactivate_parent=obligation.kind is ObligationKind.SUBSCRIPTION,
        previous_status=obligation.status,
    )


def ledger_total(entries: tuple[LedgerEntry, ...] | list[LedgerEntry]) -> int:
    return sum(e.amount for e in entries)


def periods_total(entries: tuple[LedgerEntry, ...] | list[LedgerEntry]) -> int:
    return sum(e.periods_covered for e in entries)


def ledger_is_consistent(obligation: Obligation) -> bool:
    """Replay check: valid_until never decreases and the last one is due_at."""
    previous: datetime | None = None
    for entry in obligation.ledger:
        if entry.amount <= 0 or entry.periods_covered < 1:
            return False
        if previous is not None and entry.valid_until < previous:
            return False
        previous = entry.valid_until
    if previous is None:
        return True
    return ensure_utc(previous) == ensure_utc(obligation.due_at)
