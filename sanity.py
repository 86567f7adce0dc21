import logging
import re
from decimal import Decimal, ROUND_DOWN
from enum import Enum
from typing import Optional

from config import Settings, get_settings
from money import ZERO, AmountLike, parse_amount, to_storage

logger = logging.getLogger(__name__)

# The same 1-3 digit group repeated at least three times, e.g. "777" or
# "125125125". Seen when storage hands back a corrupted representation.
_REPEATED_GROUP = re.compile(r"^(\d{1,3})\1{2,}$")


class ValueKind(str, Enum):
    integer = "integer"
    decimal = "decimal"


class SanityGuard:
    """Bounds values crossing component boundaries; never raises.

    Stored amounts get the full treatment (repeated-digit pattern, ceiling,
    sign). Figures computed here are only held to the ceiling: they are sums
    of already-checked rows and a pattern in a sum says nothing about storage.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self.max_count_value = Decimal(settings.max_count_value)
        self.max_integer_amount = Decimal(settings.max_integer_amount)
        self.max_decimal_amount = Decimal(settings.max_decimal_amount)

    def ceiling(self, kind: ValueKind, *, counter: bool = False) -> Decimal:
        if kind == ValueKind.integer:
            return self.max_count_value if counter else self.max_integer_amount
        return self.max_decimal_amount

    def clamp(
        self,
        value: AmountLike,
        kind: ValueKind = ValueKind.decimal,
        *,
        field: str = "value",
        counter: bool = False,
        stored: bool = True,
    ) -> Decimal:
        kind = ValueKind(kind)
        if value is None:
            return ZERO
        text = to_storage(value) if isinstance(value, Decimal) else str(value).strip()

        if stored and _REPEATED_GROUP.match(text):
            logger.warning(f"sanity_clamp: field={field} reason=repeated_digits value={text}")
            return ZERO

        parsed = parse_amount(text)
        if parsed is None:
            logger.warning(f"sanity_clamp: field={field} reason=unparseable value={text!r}")
            return ZERO
        if kind == ValueKind.integer:
            parsed = parsed.to_integral_value(rounding=ROUND_DOWN)

        limit = self.ceiling(kind, counter=counter)
        if abs(parsed) > limit:
            logger.warning(
                f"sanity_clamp: field={field} reason=ceiling kind={kind.value} "
                f"value={to_storage(parsed)} limit={to_storage(limit)}"
            )
            return ZERO

        if parsed < 0:
            return ZERO
        return parsed

    def row_amount(self, value: AmountLike, *, field: str) -> Decimal:
        return self.clamp(value, ValueKind.decimal, field=field)

    def total(self, value: AmountLike, *, field: str) -> Decimal:
        return self.clamp(value, ValueKind.decimal, field=field, stored=False)

    def count(self, value: AmountLike, *, field: str) -> int:
        return int(
            self.clamp(value, ValueKind.integer, field=field, counter=True, stored=False)
        )
