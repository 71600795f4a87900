"""Charge calculation for subscription and lease obligations.

Order of operations (whole currency units, each step rounded half away
from zero):

    base       = per_period_rate * periods
    discounted = round(base * (1 - duration_pct))
    with_fee   = round(discounted * (1 + fee_pct))      (fee_pct is 0 for subscriptions)
    final      = max(round(with_fee * (1 - coupon_pct)), 1)
"""

import re

from src.rb_common.enums import ObligationKind, UnitType
from src.rb_common.errors import (
    InvalidCouponError,
    InvalidDurationError,
    InvalidRateBasisError,
)
from src.rb_common.money import BPS_DENOMINATOR, apply_bps, to_minor_units
from src.rb_pricing.domain.models import (
    ChargeBreakdown,
    ChargeQuote,
    LeaseRateBasis,
    ListingRateBasis,
    RateBasis,
)
from src.rb_pricing.domain.policy import DiscountPolicy

MIN_PAYABLE_AMOUNT = 1

_BHK_COUNT_RE = re.compile(r"(\d+)")


def parse_bedroom_count(bhk_label: str | None) -> int | None:
    """'2BHK' -> 2, '3 BHK' -> 3, 'studio' -> None."""
    if not bhk_label:
        return None
    match = _BHK_COUNT_RE.search(bhk_label)
    return int(match.group(1)) if match else None


def _listing_units(basis: ListingRateBasis) -> int:
    if basis.unit_type == UnitType.PG.value:
        # rooms take precedence over beds for shared-room units
        if basis.rooms:
            return basis.rooms
        if basis.beds:
            return basis.beds
        return 1
    if basis.unit_type in (UnitType.FLAT.value, UnitType.APARTMENT.value):
        return parse_bedroom_count(basis.bhk_label) or 1
    return 1


def per_period_rate(basis: RateBasis, policy: DiscountPolicy) -> int:
    if isinstance(basis, LeaseRateBasis):
        if basis.monthly_rent <= 0:
            raise InvalidRateBasisError(f"monthly rent must be positive, got {basis.monthly_rent}")
        return basis.monthly_rent
    rate = _listing_units(basis) * policy.per_unit_rate
    return max(rate, policy.per_unit_rate)


def kind_of(basis: RateBasis) -> ObligationKind:
    if isinstance(basis, LeaseRateBasis):
        return ObligationKind.LEASE
    return ObligationKind.SUBSCRIPTION


def compute_charge(
    basis: RateBasis,
    periods: int,
    policy: DiscountPolicy,
    coupon_code: str | None = None,
) -> ChargeQuote:
    """Compute the amount owed for ``periods`` billing periods.

    Raises InvalidDurationError for periods outside the policy table and
    InvalidCouponError for unknown coupon codes. Both are raised before any
    amount is produced, so no order is ever created for a rejected request.
    """
    kind = kind_of(basis)
    duration_bps = policy.duration_bps(kind, periods)
    if duration_bps is None:
        raise InvalidDurationError(periods, policy.allowed_periods(kind))

    coupon_bps = 0
    normalized_coupon: str | None = None
    if coupon_code is not None and coupon_code.strip():
        normalized_coupon = coupon_code.strip().upper()
        found = policy.coupon_discount_bps(normalized_coupon)
        if found is None:
            raise InvalidCouponError(coupon_code)
        coupon_bps = found

    rate = per_period_rate(basis, policy)
    base = rate * periods

    discounted = apply_bps(base, BPS_DENOMINATOR - duration_bps)

    fee_bps = policy.fee_bps(kind)
    with_fee = apply_bps(discounted, BPS_DENOMINATOR + fee_bps)
    fee = with_fee - discounted

    final = max(apply_bps(with_fee, BPS_DENOMINATOR - coupon_bps), MIN_PAYABLE_AMOUNT)

    breakdown = ChargeBreakdown(
        per_period_rate=rate,
        periods=periods,
        base_amount=base,
        duration_discount_bps=duration_bps,
        duration_discount_amount=base - discounted,
        convenience_fee_bps=fee_bps,
        convenience_fee_amount=fee,
        coupon_code=normalized_coupon,
        coupon_discount_bps=coupon_bps,
        coupon_discount_amount=with_fee - final if coupon_bps else 0,
    )
    return ChargeQuote(
        final_amount=final,
        amount_minor=to_minor_units(final),
        breakdown=breakdown,
    )
