"""
Monetary Amount Module

Decimal handling for wallet amounts. Every amount is held at two decimal
places, rounded with ROUND_HALF_UP. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Any, Optional, Union

from .errors import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28

SCALE = 2
CENT = Decimal('0.1') ** SCALE
ZERO = Decimal('0.00')

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: Any) -> Decimal:
    """
    Convert a raw value to Decimal without rounding.

    Floats go through str() so 10.005 becomes Decimal('10.005') rather
    than its binary approximation.
    """
    if isinstance(value, bool):
        raise InvalidAmount("Amount must be a number", value)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        value = str(value)
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmount(f"Amount {value!r} is not a valid number", value)
    raise InvalidAmount(f"Unsupported amount type: {type(value).__name__}", value)


def quantize(value: Decimal) -> Decimal:
    """Round to two decimal places (half-up)"""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_amount(value: AmountLike, max_amount: Optional[Decimal] = None) -> Decimal:
    """
    Normalize a transaction amount.

    Args:
        value: Raw amount
        max_amount: Optional inclusive upper bound

    Returns:
        Amount rounded to two places

    Raises:
        InvalidAmount: If the value is not finite, not positive after
            rounding, or above max_amount
    """
    amount = to_decimal(value)
    if not amount.is_finite():
        raise InvalidAmount(f"Amount {value!r} is not a finite number", value)

    try:
        amount = quantize(amount)
    except InvalidOperation:
        raise InvalidAmount(f"Amount {value!r} is out of range", value)
    if amount <= ZERO:
        raise InvalidAmount("Amount must be at least 0.01", value)
    if max_amount is not None and amount > max_amount:
        raise InvalidAmount(f"Amount cannot exceed {format_amount(max_amount)}", value)
    return amount


def format_amount(value: Decimal) -> str:
    """Format for display, e.g. 1,234.50"""
    return f"{value:,.{SCALE}f}"
