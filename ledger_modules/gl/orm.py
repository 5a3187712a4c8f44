"""
General Ledger ORM Models (``ledger_modules.gl.orm``).

Responsibility
--------------
SQLAlchemy persistence models for manual journal entries and their lines.
Lines here are the editable draft; once posted, the journal batch written
by ``JournalPoster`` is the record of truth.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel``.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.db.types import ZERO


# ---------------------------------------------------------------------------
# ManualJournalModel
# ---------------------------------------------------------------------------

class ManualJournalModel(TrackedBase):
    """
    ORM model for ``ManualJournal``.

    Table: ``manual_journals``
    """

    __tablename__ = "manual_journals"

    company_id: Mapped[UUID]
    outlet_id: Mapped[UUID | None]
    entry_date: Mapped[date]
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str] = mapped_column(String(500), default="")
    status: Mapped[str] = mapped_column(String(20), default="DRAFT")
    journal_batch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_batches.id"), nullable=True,
    )
    posted_at: Mapped[datetime | None]
    voided_at: Mapped[datetime | None]

    lines: Mapped[list["ManualJournalLineModel"]] = relationship(
        back_populates="journal",
        cascade="all, delete-orphan",
        order_by="ManualJournalLineModel.line_no",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_manual_journals_company_date", "company_id", "entry_date"),
    )

    def to_dto(self):
        from ledger_kernel.domain.lifecycle import DocumentStatus
        from ledger_modules.gl.models import ManualJournal, ManualJournalLine
        return ManualJournal(
            id=self.id,
            company_id=self.company_id,
            outlet_id=self.outlet_id,
            entry_date=self.entry_date,
            reference=self.reference,
            description=self.description,
            status=DocumentStatus(self.status),
            journal_batch_id=self.journal_batch_id,
            posted_at=self.posted_at,
            lines=tuple(
                ManualJournalLine(
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                )
                for line in self.lines
            ),
        )

    def __repr__(self) -> str:
        return f"<ManualJournalModel(id={self.id!r}, status={self.status!r})>"


# ---------------------------------------------------------------------------
# ManualJournalLineModel
# ---------------------------------------------------------------------------

class ManualJournalLineModel(TrackedBase):
    """
    ORM model for ``ManualJournalLine``.

    Table: ``manual_journal_lines``
    """

    __tablename__ = "manual_journal_lines"

    journal_id: Mapped[UUID] = mapped_column(ForeignKey("manual_journals.id"))
    line_no: Mapped[int]
    account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"))
    debit: Mapped[Decimal] = mapped_column(default=ZERO)
    credit: Mapped[Decimal] = mapped_column(default=ZERO)
    description: Mapped[str] = mapped_column(String(255), default="")

    journal: Mapped["ManualJournalModel"] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("journal_id", "line_no", name="uq_manual_journal_lines_no"),
    )
