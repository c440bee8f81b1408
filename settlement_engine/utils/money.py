"""Cent arithmetic helpers.

Every amount in the engine is an integer number of cents. Rates are Decimal
fractions; applying a rate rounds half-up to the cent. Remainders are always
derived by subtraction so that splits add back to the original amount.
"""

from decimal import ROUND_HALF_UP, Decimal

ONE_CENT = Decimal("1")
HUNDRED = Decimal("100")


def apply_rate(amount_cents: int, rate: Decimal) -> int:
    """Multiply a cent amount by a fractional rate, rounding half-up to the cent"""
    return int((Decimal(amount_cents) * rate).quantize(ONE_CENT, rounding=ROUND_HALF_UP))


def split(amount_cents: int, rate: Decimal) -> tuple[int, int]:
    """Split an amount into (share at rate, remainder). The two parts always sum to the amount."""
    share = apply_rate(amount_cents, rate)
    return share, amount_cents - share


def dollars_to_cents(value: Decimal | float | int | str) -> int:
    """Convert a dollar amount to cents, rounding half-up"""
    return int((Decimal(str(value)) * HUNDRED).quantize(ONE_CENT, rounding=ROUND_HALF_UP))


def format_cents(amount_cents: int) -> str:
    """Render cents as a dollar string, e.g. 37350 -> '$373.50', -150 -> '-$1.50'"""
    sign = "-" if amount_cents < 0 else ""
    dollars, cents = divmod(abs(amount_cents), 100)
    return f"{sign}${dollars:,}.{cents:02d}"
