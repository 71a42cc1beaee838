"""Fixed-point limits for amounts stored as NUMERIC(p, 2)."""

from decimal import Decimal

CENT = Decimal("0.01")
MAX_KG = Decimal("99999.99")  # NUMERIC(7, 2)
MAX_PRICE = Decimal("99999999.99")  # NUMERIC(10, 2)


def has_two_places(value: Decimal) -> bool:
    """True when ``value`` is stored without rounding at two decimal places."""
    return value == value.quantize(CENT)
