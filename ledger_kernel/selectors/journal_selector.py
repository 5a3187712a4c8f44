"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only access to journal batches -- a single batch with
    its lines, batches for a document, and a filtered, paged batch list.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import aliased

from ledger_kernel.db.types import to_decimal
from ledger_kernel.exceptions import BatchNotFoundError
from ledger_kernel.models.journal import JournalBatch, JournalBatchStatus, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class BatchLineView:
    line_no: int
    account_id: UUID
    debit: Decimal
    credit: Decimal
    description: str


@dataclass(frozen=True)
class BatchView:
    """A batch with its lines in line_no order."""

    id: UUID
    company_id: UUID
    outlet_id: UUID | None
    doc_type: str
    doc_id: UUID
    posted_at: datetime
    status: JournalBatchStatus
    reversal_of_id: UUID | None
    lines: tuple[BatchLineView, ...]

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @classmethod
    def from_model(cls, batch: JournalBatch) -> "BatchView":
        return cls(
            id=batch.id,
            company_id=batch.company_id,
            outlet_id=batch.outlet_id,
            doc_type=batch.doc_type,
            doc_id=batch.doc_id,
            posted_at=batch.posted_at,
            status=JournalBatchStatus(batch.status),
            reversal_of_id=batch.reversal_of_id,
            lines=tuple(
                BatchLineView(
                    line_no=line.line_no,
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                )
                for line in sorted(batch.lines, key=lambda l: l.line_no)
            ),
        )


@dataclass(frozen=True)
class BatchSummary:
    """One row of the batch list: header plus totals."""

    id: UUID
    doc_type: str
    doc_id: UUID
    outlet_id: UUID | None
    posted_at: datetime
    status: JournalBatchStatus
    total_debit: Decimal
    total_credit: Decimal
    line_count: int


class JournalSelector(BaseSelector[JournalBatch]):
    """Queries over ``journal_batches`` and ``journal_lines``."""

    def get_batch(self, batch_id: UUID) -> BatchView:
        batch = self.session.get(JournalBatch, batch_id)
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        return BatchView.from_model(batch)

    def batches_for_document(
        self,
        company_id: UUID,
        doc_type: str,
        doc_id: UUID,
    ) -> list[BatchView]:
        """Original batch first, compensating batch (if any) after it."""
        stmt = (
            select(JournalBatch)
            .where(
                JournalBatch.company_id == company_id,
                JournalBatch.doc_type == doc_type,
                JournalBatch.doc_id == doc_id,
            )
            .order_by(JournalBatch.posted_at, JournalBatch.reversal_of_id.is_not(None))
        )
        return [BatchView.from_model(b) for b in self.session.execute(stmt).scalars()]

    def count_batches(self, company_id: UUID, doc_type: str | None = None) -> int:
        stmt = select(func.count(JournalBatch.id)).where(JournalBatch.company_id == company_id)
        if doc_type is not None:
            stmt = stmt.where(JournalBatch.doc_type == doc_type)
        return int(self.session.execute(stmt).scalar_one())

    def list_batches(
        self,
        company_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        doc_type: str | None = None,
        account_id: UUID | None = None,
        outlet_ids: list[UUID] | None = None,
        include_unassigned: bool = True,
        limit: int = 100,
        offset: int = 0,
    ) -> list[BatchSummary]:
        """
        Newest first: ``posted_at DESC, id DESC``.

        ``outlet_ids=[]`` returns nothing; ``None`` means every outlet.
        """
        if outlet_ids is not None and len(outlet_ids) == 0:
            return []

        stmt = (
            select(
                JournalBatch,
                func.coalesce(func.sum(JournalLine.debit), 0).label("total_debit"),
                func.coalesce(func.sum(JournalLine.credit), 0).label("total_credit"),
                func.count(JournalLine.id).label("line_count"),
            )
            .join(JournalLine, JournalLine.journal_batch_id == JournalBatch.id)
            .where(JournalBatch.company_id == company_id)
            .group_by(JournalBatch.id)
            .order_by(JournalBatch.posted_at.desc(), JournalBatch.id.desc())
            .limit(limit)
            .offset(offset)
        )
        if date_from is not None:
            stmt = stmt.where(JournalLine.line_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(JournalLine.line_date <= date_to)
        if doc_type is not None:
            stmt = stmt.where(JournalBatch.doc_type == doc_type)
        if account_id is not None:
            touching = aliased(JournalLine)
            stmt = stmt.where(
                exists().where(
                    touching.journal_batch_id == JournalBatch.id,
                    touching.account_id == account_id,
                )
            )
        if outlet_ids is not None:
            if include_unassigned:
                stmt = stmt.where(
                    or_(JournalBatch.outlet_id.is_(None), JournalBatch.outlet_id.in_(outlet_ids))
                )
            else:
                stmt = stmt.where(JournalBatch.outlet_id.in_(outlet_ids))

        return [
            BatchSummary(
                id=batch.id,
                doc_type=batch.doc_type,
                doc_id=batch.doc_id,
                outlet_id=batch.outlet_id,
                posted_at=batch.posted_at,
                status=JournalBatchStatus(batch.status),
                total_debit=to_decimal(total_debit),
                total_credit=to_decimal(total_credit),
                line_count=int(line_count),
            )
            for batch, total_debit, total_credit, line_count in self.session.execute(stmt)
        ]
