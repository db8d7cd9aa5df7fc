"""
Input coercion shared by the business layer.

Form posts arrive as strings, tests pass ints/floats/Decimals; everything that reaches a
Numeric column goes through here so stored values are quantized the same way the
database stores them.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from stockroom.business.errors import NotAuthenticated, ValidationError

QUANTITY_STEP = Decimal('0.001')
MONEY_STEP = Decimal('0.01')

# Largest magnitudes the Numeric(12,3) and Numeric(12,2) columns hold exactly
MAX_QUANTITY = Decimal('999999999.999')
MAX_MONEY = Decimal('9999999999.99')


def _to_decimal(value, field: str, step: Decimal, limit: Decimal) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{field} is required")
    try:
        # float goes through str() so 0.1 stays 0.1 instead of its binary expansion
        number = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
        if not number.is_finite():
            raise ValidationError(f"{field} must be a finite number")
        number = number.quantize(step)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if abs(number) > limit:
        raise ValidationError(f"{field} must not exceed {limit}")
    return number


def to_quantity(value, field: str = 'quantity', *, positive: bool = False) -> Decimal:
    """Parse a stock quantity; rejects negatives, and zero when `positive` is set."""
    number = _to_decimal(value, field, QUANTITY_STEP, MAX_QUANTITY)
    if positive and number <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def to_money(value, field: str = 'unit_price') -> Decimal | None:
    """Parse an optional non-negative price; blank means unpriced."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    number = _to_decimal(value, field, MONEY_STEP, MAX_MONEY)
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def clean_text(value) -> str | None:
    """Strip a free-text field; blank becomes None."""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def ensure_identity(identity) -> int:
    """Fail closed when there is no acting identity."""
    if identity is None:
        raise NotAuthenticated()
    return identity
