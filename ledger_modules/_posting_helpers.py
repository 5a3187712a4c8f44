"""
Shared helpers for module posting flows.

Used by ledger_modules/*/service.py to build posting timestamps and to
report the outcome of a document post in one shape.

Architecture: Modules layer. Imports only from ledger_kernel.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from uuid import UUID

from ledger_kernel.domain.lifecycle import DocumentStatus
from ledger_kernel.services.journal_poster import PostingResult


@dataclass(frozen=True)
class DocumentPostResult:
    """
    Outcome of posting a document (invoice, payment, manual journal).

    ``duplicate`` is True when the document was already POSTED; the
    existing batch id is returned and nothing new is written.
    """

    doc_type: str
    doc_id: UUID
    status: DocumentStatus
    journal_batch_id: UUID | None
    duplicate: bool = False

    @classmethod
    def already_posted(
        cls,
        doc_type: str,
        doc_id: UUID,
        journal_batch_id: UUID | None,
    ) -> DocumentPostResult:
        return cls(
            doc_type=doc_type,
            doc_id=doc_id,
            status=DocumentStatus.POSTED,
            journal_batch_id=journal_batch_id,
            duplicate=True,
        )

    @classmethod
    def from_posting(
        cls,
        doc_type: str,
        doc_id: UUID,
        posting: PostingResult,
    ) -> DocumentPostResult:
        return cls(
            doc_type=doc_type,
            doc_id=doc_id,
            status=DocumentStatus.POSTED,
            journal_batch_id=posting.batch_id,
            duplicate=posting.is_duplicate,
        )


def posting_timestamp(value: date) -> datetime:
    """Midnight UTC on ``value``: the ``posted_at`` of a dated document."""
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def period_label(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"
