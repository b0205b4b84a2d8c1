"""Conversion between human-readable decimals and integer minor units.

Everything inside the ledger works in integer minor units. These helpers
are only used at the boundary (CLI input, display).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import InvalidAmountError

BASIS_POINTS_PER_WHOLE = 10000


def _to_decimal(amount: Decimal | str | int) -> Decimal:
    if isinstance(amount, float):
        raise InvalidAmountError(
            f"Refusing to convert float {amount!r}; pass a string or Decimal"
        )
    try:
        value = Decimal(str(amount).strip().replace(",", ""))
    except InvalidOperation:
        raise InvalidAmountError(f"Not a valid amount: {amount!r}") from None
    if not value.is_finite():
        raise InvalidAmountError(f"Not a valid amount: {amount!r}")
    return value


def to_minor_units(amount: Decimal | str | int, digits: int = 2) -> int:
    """
    Convert a decimal amount to integer minor units.
    Uses ROUND_HALF_UP for consistency.

    Args:
        amount: Amount as Decimal, numeric string or int (no floats)
        digits: Number of minor-unit digits for the currency (2 for cents)

    Returns:
        Amount in minor units (integer)
    """
    value = _to_decimal(amount) * (Decimal(10) ** digits)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, digits: int = 2) -> Decimal:
    """Convert integer minor units back to a Decimal amount."""
    return Decimal(amount).scaleb(-digits)


def format_amount(amount: int, currency_code: str = "USD", digits: int = 2) -> str:
    """Render minor units for display, e.g. ``USD 1,234.50`` or ``-USD 3.00``."""
    value = from_minor_units(abs(amount), digits)
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency_code} {value:,.{digits}f}"


def percent_to_basis_points(percent: Decimal | str | int) -> int:
    """Convert a percentage such as ``"33.33"`` to basis points (3333)."""
    return to_minor_units(percent, digits=2)
