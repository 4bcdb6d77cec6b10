"""
Money helpers
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from gstledger.core.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Coerce user input to a finite Decimal or raise ValidationError."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            # str() keeps floats like 0.1 from dragging binary noise along
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number, got {value!r}")
    return result


def money(value) -> Decimal:
    """Round to paise, half up."""
    if value is None:
        return ZERO.quantize(CENT)
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_indian_currency(amount, symbol: str = "₹") -> str:
    """
    Format an amount with lakh/crore digit grouping.
    
    >>> format_indian_currency("12345678.9")
    '₹1,23,45,678.90'
    """
    value = money(amount if amount is not None else 0)
    sign = "-" if value < 0 else ""
    whole, fraction = f"{abs(value):.2f}".split(".")
    
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    
    return f"{sign}{symbol}{whole}.{fraction}"
