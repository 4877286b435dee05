"""
Amount handling (SSOT).

Rounding Strategy (SSOT):
- Every monetary value is quantized to 2 decimal places with ROUND_HALF_UP
- Base amounts are always derived: amount_original × exchange_rate, then rounded
- Floats coming from JSON are converted through str() so 12.1 stays 12.1

Amount Sign Convention (SSOT):
- Invoice totals are non-negative; zero is allowed (credit-balanced invoices)
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# Rounding precision for currency amounts
CURRENCY_PRECISION = Decimal("0.01")

# Largest accepted invoice total. amount x rate, quantized, must fit the
# 28-digit default decimal context
MAX_AMOUNT = Decimal("1e15")


class AmountValidationError(Exception):
    """Raised when amount validation fails (SSOT for amount constraints)."""

    pass


def to_decimal(value: Decimal | float | int | str, *, field_name: str = "amount") -> Decimal:
    """Convert a JSON-ish number or a string into a Decimal.

    Raises:
        AmountValidationError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise AmountValidationError(f"{field_name}: expected a number, got a boolean")
    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, float):
            result = Decimal(str(value))
        elif isinstance(value, int):
            result = Decimal(value)
        elif isinstance(value, str):
            result = Decimal(value.strip())
        else:
            raise AmountValidationError(
                f"{field_name}: expected a number, got {type(value).__name__}"
            )
    except InvalidOperation as e:
        raise AmountValidationError(f"{field_name}: Invalid amount format - {value!r}") from e

    if not result.is_finite():
        raise AmountValidationError(f"{field_name}: amount must be finite, got {value!r}")
    return result


def validate_amount(
    amount: Decimal | float | int | str,
    *,
    field_name: str = "amount",
) -> Decimal:
    """Validate an invoice total: a finite, non-negative number below MAX_AMOUNT.

    The value is returned unrounded; rounding only happens when the base
    amount is derived.

    Examples:
        >>> validate_amount(12.5)
        Decimal('12.5')
        >>> validate_amount("-5.00")  # Raises AmountValidationError
    """
    result = to_decimal(amount, field_name=field_name)
    if result < 0:
        raise AmountValidationError(f"{field_name}: Amount must not be negative, got {result}")
    if result >= MAX_AMOUNT:
        raise AmountValidationError(f"{field_name}: Amount out of range, got {result}")
    return result


def round_currency(amount: Decimal) -> Decimal:
    """Quantize to CURRENCY_PRECISION using ROUND_HALF_UP."""
    return amount.quantize(CURRENCY_PRECISION, rounding=ROUND_HALF_UP)


def compute_base_amount(amount_original: Decimal, exchange_rate: Decimal) -> Decimal:
    """Derive the base-currency amount (SSOT for the conversion identity).

    Examples:
        >>> compute_base_amount(Decimal("10.005"), Decimal("1"))
        Decimal('10.01')
        >>> compute_base_amount(Decimal("100"), Decimal("0.8567"))
        Decimal('85.67')
    """
    return round_currency(amount_original * exchange_rate)
