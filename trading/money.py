from decimal import Decimal, InvalidOperation

from .exceptions import ValidationError

CENT = Decimal("0.01")


def to_decimal(value, field="amount", **context):
    """Parse user input into a finite ``Decimal`` or raise ``ValidationError``."""
    try:
        value = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number.", **context)
    if not value.is_finite():
        raise ValidationError(f"{field} must be a number.", **context)
    return value


def to_money(value, field="amount", **context):
    return to_decimal(value, field, **context).quantize(CENT)


def positive(value, field="qty", **context):
    value = to_decimal(value, field, **context)
    if value <= 0:
        raise ValidationError(f"{field} must be positive.", **context)
    return value
