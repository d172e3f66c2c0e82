"""
Module: stock_kernel.db.types
Responsibility: Annotated type aliases and utility functions for price and
    quantity columns.  Centralizes precision and rounding so that every model
    and service uses identical type definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere in the kernel.  Prices and revenue use Decimal with
      explicit precision; stock quantities are integers.
    - round_money() is the ONLY sanctioned rounding function for prices.

Failure modes:
    - ValueError / InvalidOperation on non-numeric input to to_money().
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Integer, Numeric, String


# Price / revenue amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Whole-unit stock quantity
Quantity = Annotated[int, Integer]

# Short identifier strings (enum values, metric keys)
ShortCode = Annotated[str, String(50)]

# Display names
Name = Annotated[str, String(255)]

# Long text for descriptions and reasons
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_money(value: Decimal | int | str) -> Decimal:
    """
    Coerce a price-like input to Decimal.

    Floats are rejected: a binary float cannot carry an exact price.

    Raises:
        TypeError: If value is a float.
        ValueError: If value cannot be parsed as a number.
    """
    if isinstance(value, float):
        raise TypeError(f"Float amounts are not accepted: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for prices in the
    entire system.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)
