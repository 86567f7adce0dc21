from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

ZERO = Decimal("0")
DISPLAY_QUANTUM = Decimal("0.01")

AmountLike = Union[str, int, Decimal, None]


def parse_amount(value: AmountLike) -> Optional[Decimal]:
    """Parse a stored decimal string without going through float.

    Returns ``None`` for missing, empty, non-numeric and non-finite values.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return Decimal(value)
    clean = str(value).strip().replace(" ", "").replace(",", "")
    if not clean:
        return None
    try:
        amount = Decimal(clean)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def amount_or_zero(value: AmountLike) -> Decimal:
    amount = parse_amount(value)
    return ZERO if amount is None else amount


def to_storage(amount: Decimal) -> str:
    """Full-precision plain notation, no exponent."""
    text = format(amount, "f")
    if amount == 0 and text.startswith("-"):
        return text[1:]
    return text


def format_amount(amount: Decimal) -> str:
    """Display rounding; the only place amounts are quantized."""
    return str(amount.quantize(DISPLAY_QUANTUM, rounding=ROUND_HALF_UP))
