"""
General Ledger Domain Models.

Manual journal entries: free-form balanced entries (expenses, transfers,
adjustments) keyed in by a user instead of derived from a sales document.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import ZERO, to_decimal
from ledger_kernel.domain.dtos import PostingLine
from ledger_kernel.domain.lifecycle import DocumentStatus


@dataclass(frozen=True)
class ManualJournalLine:
    """One leg of a manual journal, as submitted and as stored."""
    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))

    def to_posting_line(self) -> PostingLine:
        return PostingLine(
            account_id=self.account_id,
            debit=self.debit,
            credit=self.credit,
            description=self.description,
        )


@dataclass(frozen=True)
class ManualJournal:
    id: UUID
    company_id: UUID
    outlet_id: UUID | None
    entry_date: date
    reference: str | None
    description: str
    status: DocumentStatus
    journal_batch_id: UUID | None
    posted_at: datetime | None
    lines: tuple[ManualJournalLine, ...] = ()

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)
