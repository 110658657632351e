"""
Module: inventory_kernel.db.types
Responsibility: Annotated type aliases for the column types shared across
    models, so that every table stores prices, identifiers and quantities
    with identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats for money.  Unit prices and stock valuations use Decimal
      with explicit precision; money_from_value() is the sanctioned
      conversion for raw input.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import BigInteger, Numeric, String

# Unit price or valuation: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Whole-unit stock quantity
Quantity = Annotated[int, BigInteger]

# Opaque identifier owned by another subsystem (product, vendor, order)
ExternalId = Annotated[str, String(100)]

# Actor identifier supplied by the caller
ActorId = Annotated[str, String(100)]

# Short enumerated value stored as text
ShortCode = Annotated[str, String(30)]

# Free-form reason text
ReasonText = Annotated[str, String(500)]


def money_from_value(value) -> Decimal:
    """
    Convert a raw price to Decimal without passing through float formatting.

    Raises:
        ValueError: If value is None or not numeric.
    """
    if value is None:
        raise ValueError("money value is required")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise ValueError(f"Invalid money value: {value!r}") from None
