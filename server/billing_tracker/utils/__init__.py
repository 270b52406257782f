from .clock import utcnow
from .money import ZERO, as_decimal, from_cents, quantize_money, round_currency, sum_money, to_cents

__all__ = [
    "ZERO",
    "as_decimal",
    "from_cents",
    "quantize_money",
    "round_currency",
    "sum_money",
    "to_cents",
    "utcnow",
]
