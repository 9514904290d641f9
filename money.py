from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
# keeps amount_cents, and sums over it, inside a signed 64-bit column
MAX_AMOUNT = Decimal("1000000000000")


def to_cents(amount: Decimal) -> int:
    try:
        quantized = Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    return int(quantized * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def json_number(amount: Decimal) -> Union[int, float]:
    """Render a money value as a JSON number; whole amounts drop the fraction."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)
