"""
Money helpers - integer minor-unit arithmetic.

All amounts inside the domain are integers in minor currency units (cents).
Decimal is used only when converting to or from a human-readable value at
the boundary, so totals never accumulate binary floating point error.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MINOR_UNITS_PER_MAJOR = 100

# Australian GST is 10%, so the GST inside a GST-inclusive price is 1/11th.
GST_DIVISOR = 11


def to_minor_units(value: Decimal | str | int) -> int:
    """
    Convert a major-unit amount ("12.50") into minor units (1250).

    Raises:
        ValueError: If the value is not a number or is negative
    """
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Not a monetary amount: {value!r}") from None
    if amount < 0:
        raise ValueError(f"Monetary amount must be >= 0: {value!r}")
    cents = (amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return int(cents)


def to_major_units(amount: int) -> Decimal:
    """Convert minor units back into a two-place Decimal."""
    return (Decimal(amount) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def gst_component(amount: int) -> int:
    """GST contained in a GST-inclusive amount, rounded half-up to the cent."""
    quotient, remainder = divmod(amount, GST_DIVISOR)
    return quotient + (1 if remainder * 2 >= GST_DIVISOR else 0)
