"""Conversion between decimal strings and fixed-point integer amounts."""

from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

# Enough digits for any uint256 at any realistic decimals
_PRECISION = 100


def parse_units(amount: str, decimals: int) -> int:
    """
    Convert a decimal string to its fixed-point integer representation.

    Digits beyond ``decimals`` are truncated, never rounded up.

    Raises:
        ValueError: If amount is not a finite, non-negative decimal.
    """
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")

    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = value.scaleb(decimals)
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def format_units(value: int, decimals: int) -> str:
    """Convert a fixed-point integer to a plain decimal string ("1.5", "0")."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        result = Decimal(int(value)).scaleb(-decimals).normalize()
    return format(result, "f")


def is_zero(amount: str | None) -> bool:
    """True for empty, unparsable or zero amounts."""
    if not amount:
        return True
    try:
        return Decimal(str(amount).strip()) == 0
    except InvalidOperation:
        return True


def format_address(address: str) -> str:
    """Shorten an address for display: 0x1234...abcd."""
    return f"{address[:6]}...{address[-4:]}"
