"""
Money helpers.

All monetary values are ``Decimal`` fixed at two fractional digits and
rounded half-up. Binary floats never reach these helpers.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, str]


def to_money(value: MoneyLike) -> Decimal:
    """
    Quantize a value to two decimal places using round-half-up.

    Raises:
        ValueError: If the value is a float or cannot be parsed as a decimal
    """
    if isinstance(value, float):
        raise ValueError("Monetary values must not be floats")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid monetary value: {value!r}") from e
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def apply_discount(amount: Decimal, discount: Decimal) -> Decimal:
    """Multiply by ``1 - discount`` and round to cents."""
    return to_money(amount * (Decimal("1") - discount))


def is_valid_amount(amount: Decimal) -> bool:
    """True for finite, non-negative amounts."""
    return amount.is_finite() and amount >= ZERO
