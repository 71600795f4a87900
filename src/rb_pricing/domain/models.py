"""Domain models for rb_pricing — frozen dataclasses, no I/O."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ListingRateBasis:
    """Declared capacity of a listed unit; drives the owner service charge."""

    unit_type: str
    rooms: int | None = None
    beds: int | None = None
    bhk_label: str | None = None   # e.g. "2BHK", "3 BHK"


@dataclass(frozen=True)
class LeaseRateBasis:
    monthly_rent: int              # whole currency units


RateBasis = ListingRateBasis | LeaseRateBasis


@dataclass(frozen=True)
class ChargeBreakdown:
    """Every intermediate amount is in whole currency units."""

    per_period_rate: int
    periods: int
    base_amount: int
    duration_discount_bps: int
    duration_discount_amount: int
    convenience_fee_bps: int
    convenience_fee_amount: int
    coupon_code: str | None
    coupon_discount_bps: int
    coupon_discount_amount: int


@dataclass(frozen=True)
class ChargeQuote:
    final_amount: int              # whole currency units, >= 1
    amount_minor: int              # final_amount * 100, sent to the gateway
    breakdown: ChargeBreakdown
