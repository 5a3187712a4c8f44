"""
Module: ledger_kernel.db.types
Responsibility: Annotated column aliases and the single money rounding
    function used by posting, depreciation, and report generation.

CRITICAL: No floats anywhere in the ledger.  Amounts are Decimal end to end;
rounding happens explicitly through round_money(), never by truncating
stored values.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Monetary amount: 38 digits, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Short identifier strings (codes, doc types, statuses)
ShortCode = Annotated[str, String(50)]

# Free-text descriptions
LongText = Annotated[str, String(4000)]

MONEY_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def to_decimal(value: Decimal | int | str | float | None) -> Decimal:
    """
    Coerce a stored or aggregated value to Decimal.

    Aggregates come back as None for empty groups; ints and strings come
    from callers building commands by hand.  Some drivers return floats for
    SUM over NUMERIC, so floats go through their shortest repr.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to ``decimal_places`` (ROUND_HALF_UP by default).

    This is the only rounding function used for financial values.
    """
    if decimal_places == 0:
        return value.quantize(Decimal("1"), rounding=rounding)
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)
