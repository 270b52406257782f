from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def as_decimal(value) -> Decimal:
    """Coerce anything to a finite Decimal, falling back to zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        parsed = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError, TypeError):
            return Decimal("0")
    if not parsed.is_finite():
        return Decimal("0")
    return parsed


def round_currency(value) -> Decimal:
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal | float | int | str | None) -> Decimal | None:
    if value is None:
        return None
    return round_currency(value)


def to_cents(value) -> int:
    return int(round_currency(value) * 100)


def from_cents(cents: int) -> Decimal:
    return round_currency(Decimal(int(cents)) / 100)


def sum_money(values: Iterable) -> Decimal:
    return from_cents(sum(to_cents(value) for value in values))
