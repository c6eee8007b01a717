"""
Money helpers.

All amounts are Decimal with two places; floats never reach arithmetic.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from tuition_backend.app.core.exceptions import ValidationError

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce an int/str/float/Decimal amount to a 2-place Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value, field: str = "amount") -> Decimal:
    """
    Parse a caller-supplied amount without rounding it.

    Raises ValidationError for missing or non-numeric values and for
    amounts finer than one cent.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("Amount is required", field=field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"Amount '{value}' is not a number", field=field)
    if not amount.is_finite():
        raise ValidationError(f"Amount '{value}' is not a number", field=field)
    if amount != amount.quantize(CENT, rounding=ROUND_HALF_UP):
        raise ValidationError("Amount cannot have more than two decimal places", field=field)
    return amount.quantize(CENT)


def money_sum(values) -> Decimal:
    total = ZERO
    for value in values:
        total += to_money(value)
    return total
