"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal batches and journal lines -- the
    single source of financial truth.  Every report is derived from these rows;
    there are no stored balances.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - idempotency_key is UNIQUE: one batch per (company, doc_type, doc_id)
      and at most one compensating batch per original.
    - Lines are CHECK-constrained: debit >= 0, credit >= 0, exactly one
      side nonzero.
    - Batch balance (sum debit == sum credit within tolerance) is checked by
      JournalPoster before flush; is_balanced re-derives it for read-side
      assertions.
    - A batch is never edited after insert.  Voiding flips status to VOID
      and writes a separate compensating batch.

Failure modes:
    - IntegrityError on duplicate idempotency_key (concurrent double post).
    - IntegrityError on a line violating the side CHECK constraints.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import ZERO

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalBatchStatus(str, Enum):
    """
    POSTED on insert; VOID once a compensating batch has been written.

    VOID is terminal.  The compensating batch itself is POSTED.
    """

    POSTED = "POSTED"
    VOID = "VOID"


class JournalBatch(TrackedBase):
    """
    One atomic, balanced set of lines posted together.

    Contract:
        All lines share the batch's posted_at.  outlet_id None means the
        batch is company-wide.
    """

    __tablename__ = "journal_batches"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_journal_batches_idempotency_key"),
        Index("idx_journal_batches_company_posted", "company_id", "posted_at"),
        Index("idx_journal_batches_doc", "doc_type", "doc_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    outlet_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    doc_type: Mapped[str] = mapped_column(String(50), nullable=False)

    doc_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    idempotency_key: Mapped[str] = mapped_column(String(200), nullable=False)

    posted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    status: Mapped[JournalBatchStatus] = mapped_column(
        String(10),
        default=JournalBatchStatus.POSTED.value,
        nullable=False,
    )

    # Set on compensating batches
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_batches.id"),
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    void_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_no",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalBatch {self.doc_type}:{self.doc_id} [{self.status}]>"

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit

    @property
    def is_void(self) -> bool:
        return JournalBatchStatus(self.status) == JournalBatchStatus.VOID


class JournalLine(TrackedBase):
    """
    One debit or credit leg of a batch.

    company_id, outlet_id and line_date are copied from the batch so report
    queries filter and aggregate without a join.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        UniqueConstraint("journal_batch_id", "line_no", name="uq_journal_lines_batch_line"),
        CheckConstraint("debit >= 0", name="chk_journal_lines_debit_non_negative"),
        CheckConstraint("credit >= 0", name="chk_journal_lines_credit_non_negative"),
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="chk_journal_lines_one_side",
        ),
        Index("idx_journal_lines_account_date", "account_id", "line_date"),
        Index("idx_journal_lines_company_date", "company_id", "line_date"),
    )

    journal_batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_batches.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    outlet_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    line_date: Mapped[date] = mapped_column(Date, nullable=False)

    debit: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    credit: Mapped[Decimal] = mapped_column(default=ZERO, nullable=False)

    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)

    batch: Mapped[JournalBatch] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.line_no} dr={self.debit} cr={self.credit}>"

    @property
    def net(self) -> Decimal:
        """Debit-positive signed amount."""
        return self.debit - self.credit
