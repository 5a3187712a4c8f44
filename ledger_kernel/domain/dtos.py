"""
DTOs -- Immutable command objects for the posting engine.

Responsibility:
    Defines what a caller hands to ``JournalPoster.post()``: a
    ``PostingRequest`` made of ``PostingLine`` legs.  Document services and
    the depreciation engine build these from their own rows; the poster never
    sees an invoice or a plan.

Architecture position:
    Kernel > Domain -- pure, zero I/O, no ORM imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money, to_decimal


@dataclass(frozen=True)
class PostingLine:
    """
    One leg of a journal batch.

    Exactly one of ``debit``/``credit`` is expected to be nonzero; the
    check itself lives in ``validation.validate_posting_lines`` so that the
    error reports the line number.
    """

    account_id: UUID
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit))
        object.__setattr__(self, "credit", to_decimal(self.credit))

    @classmethod
    def dr(cls, account_id: UUID, amount: Decimal, description: str = "") -> PostingLine:
        return cls(account_id=account_id, debit=amount, description=description)

    @classmethod
    def cr(cls, account_id: UUID, amount: Decimal, description: str = "") -> PostingLine:
        return cls(account_id=account_id, credit=amount, description=description)

    @property
    def is_debit(self) -> bool:
        return self.debit > ZERO

    def quantized(self, decimal_places: int) -> PostingLine:
        """Both sides rounded half-up to the money precision."""
        return PostingLine(
            account_id=self.account_id,
            debit=round_money(self.debit, decimal_places),
            credit=round_money(self.credit, decimal_places),
            description=self.description,
        )

    def swapped(self) -> PostingLine:
        """The compensating leg: same account, sides exchanged."""
        return PostingLine(
            account_id=self.account_id,
            debit=self.credit,
            credit=self.debit,
            description=self.description,
        )


@dataclass(frozen=True)
class PostingRequest:
    """
    Command to post one balanced batch.

    ``(company_id, doc_type, doc_id)`` is the idempotency key: submitting
    the same request twice yields the same batch.
    """

    company_id: UUID
    doc_type: str
    doc_id: UUID
    lines: tuple[PostingLine, ...]
    actor_id: UUID
    outlet_id: UUID | None = None
    posted_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def idempotency_key(self) -> str:
        return idempotency_key(self.company_id, self.doc_type, self.doc_id)


def idempotency_key(company_id: UUID, doc_type: str, doc_id: UUID) -> str:
    """Storage key for a posting: ``company:doc_type:doc_id``."""
    return f"{company_id}:{doc_type}:{doc_id}"


def reversal_key(original_key: str) -> str:
    return f"{original_key}:reversal"
