"""
Pure validation of journal lines before they reach storage.

The same function runs for a fresh posting and for a document being
re-validated on its DRAFT -> POSTED transition, so both paths reject
exactly the same inputs.
"""

from decimal import Decimal
from typing import Sequence

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import PostingLine
from ledger_kernel.exceptions import (
    EmptyBatchError,
    InvalidLineError,
    UnbalancedEntryError,
)

MIN_LINES = 2


def validate_posting_lines(
    lines: Sequence[PostingLine],
    tolerance: Decimal,
) -> tuple[Decimal, Decimal]:
    """
    Validate line shape and batch balance.

    Returns:
        (total_debit, total_credit)

    Raises:
        EmptyBatchError: fewer than two lines.
        InvalidLineError: negative side, both sides set, or neither set.
        UnbalancedEntryError: |debits - credits| >= tolerance.
    """
    if len(lines) < MIN_LINES:
        raise EmptyBatchError(len(lines))

    total_debit = ZERO
    total_credit = ZERO
    for line_no, line in enumerate(lines, start=1):
        if line.debit < ZERO or line.credit < ZERO:
            raise InvalidLineError(line_no, "amounts cannot be negative")
        if line.debit > ZERO and line.credit > ZERO:
            raise InvalidLineError(line_no, "line cannot have both debit and credit")
        if line.debit == ZERO and line.credit == ZERO:
            raise InvalidLineError(line_no, "line must have either debit or credit")
        total_debit += line.debit
        total_credit += line.credit

    if abs(total_debit - total_credit) >= tolerance:
        raise UnbalancedEntryError(
            debits=str(total_debit),
            credits=str(total_credit),
            tolerance=str(tolerance),
        )

    return total_debit, total_credit
