"""DiscountPolicy — pricing tables as an injected value object.

Built once at startup (see ``policy_from_settings``) and passed into the
calculator. Nothing here is module-level mutable state.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from config.settings import Settings
from src.rb_common.enums import ObligationKind
from src.rb_common.money import percent_to_bps

# Duration discount tables, keyed by periods paid up front.
SUBSCRIPTION_DURATION_DISCOUNT_PCT: dict[int, int] = {1: 0, 3: 13, 6: 20, 12: 25}
LEASE_DURATION_DISCOUNT_PCT: dict[int, int] = {1: 0, 3: 5, 6: 10, 12: 15}

LEASE_CONVENIENCE_FEE_BPS = 270  # 2.7%


def _frozen(mapping: Mapping) -> Mapping:  # type: ignore[type-arg]
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class DiscountPolicy:
    per_unit_rate: int
    duration_discount_bps: Mapping[ObligationKind, Mapping[int, int]]
    coupon_bps: Mapping[str, int] = field(default_factory=lambda: _frozen({}))
    convenience_fee_bps: Mapping[ObligationKind, int] = field(
        default_factory=lambda: _frozen({ObligationKind.LEASE: LEASE_CONVENIENCE_FEE_BPS})
    )

    def __post_init__(self) -> None:
        if self.per_unit_rate < 1:
            raise ValueError(f"per_unit_rate must be >= 1, got {self.per_unit_rate}")
        for code, bps in self.coupon_bps.items():
            if not (0 < bps <= 10_000):
                raise ValueError(f"coupon {code} must discount 0-100%, got {bps} bps")

    def allowed_periods(self, kind: ObligationKind) -> tuple[int, ...]:
        return tuple(sorted(self.duration_discount_bps[kind]))

    def duration_bps(self, kind: ObligationKind, periods: int) -> int | None:
        return self.duration_discount_bps[kind].get(periods)

    def coupon_discount_bps(self, code: str) -> int | None:
        return self.coupon_bps.get(code.strip().upper())

    def fee_bps(self, kind: ObligationKind) -> int:
        return self.convenience_fee_bps.get(kind, 0)


def build_policy(
    per_unit_rate: int,
    coupons_pct: Mapping[str, int | float],
) -> DiscountPolicy:
    duration = {
        ObligationKind.SUBSCRIPTION: _frozen(
            {p: percent_to_bps(pct) for p, pct in SUBSCRIPTION_DURATION_DISCOUNT_PCT.items()}
        ),
        ObligationKind.LEASE: _frozen(
            {p: percent_to_bps(pct) for p, pct in LEASE_DURATION_DISCOUNT_PCT.items()}
        ),
    }
    coupons = {code.strip().upper(): percent_to_bps(pct) for code, pct in coupons_pct.items()}
    return DiscountPolicy(
        per_unit_rate=per_unit_rate,
        duration_discount_bps=_frozen(duration),
        coupon_bps=_frozen(coupons),
    )


def policy_from_settings(settings: Settings) -> DiscountPolicy:
    return build_policy(settings.PER_UNIT_RATE, settings.COUPON_CODES)
