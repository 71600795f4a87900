"""Integer money arithmetic.

Whole currency units (rupees) come out of the calculator; minor units (paise)
are what gets persisted and sent to the gateway. No float, no Decimal:
percentages are basis points (1% = 100 bps).
"""

MINOR_UNITS_PER_UNIT = 100
BPS_DENOMINATOR = 10_000


def round_half_away(numerator: int, denominator: int) -> int:
    """Integer division rounding half away from zero.

    round_half_away(5, 2) == 3, round_half_away(-5, 2) == -3
    """
    if denominator <= 0:
        raise ValueError(f"denominator must be positive, got {denominator}")
    quotient, remainder = divmod(abs(numerator), denominator)
    if remainder * 2 >= denominator:
        quotient += 1
    return quotient if numerator >= 0 else -quotient


def apply_bps(amount: int, bps: int) -> int:
    """amount * bps / 10000, rounded half away from zero."""
    return round_half_away(amount * bps, BPS_DENOMINATOR)


def percent_to_bps(percent: int | float) -> int:
    return round(percent * 100)


def to_minor_units(amount: int) -> int:
    return amount * MINOR_UNITS_PER_UNIT


def minor_to_display(minor: int, currency: str = "INR") -> str:
    """Convert minor units to display string: 5445800 -> 'INR 54,458.00'."""
    sign = "-" if minor < 0 else ""
    whole, frac = divmod(abs(minor), MINOR_UNITS_PER_UNIT)
    return f"{sign}{currency} {whole:,}.{frac:02d}"
