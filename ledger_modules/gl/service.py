"""
Manual Journal Service (``ledger_modules.gl.service``).

Responsibility
--------------
Lifecycle of manual journal entries (DRAFT -> POSTED -> VOID).  A draft's
lines are stored as entered; posting re-validates them exactly as a fresh
``JournalPoster.post`` would and writes a ``MANUAL`` batch dated
``entry_date``.

Invariants enforced
-------------------
* Drafts may be saved unbalanced; nothing reaches the ledger until
  ``post_manual_journal`` succeeds.
* A draft that fails validation on post stays DRAFT.
* POSTED and VOID entries are immutable.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_settings
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import PostingRequest
from ledger_kernel.domain.lifecycle import DocumentStatus, assert_editable, assert_transition
from ledger_kernel.exceptions import DocumentNotFoundError, InvalidDocumentError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.journal_poster import JournalPoster
from ledger_modules._posting_helpers import DocumentPostResult, posting_timestamp
from ledger_modules.gl.models import ManualJournal, ManualJournalLine
from ledger_modules.gl.orm import ManualJournalLineModel, ManualJournalModel

logger = get_logger("modules.gl.service")

DOC_TYPE = "MANUAL"


class ManualJournalService:
    """Manual journal entries; owns the transaction boundary of every mutation."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()

        # Kernel posting (auto_commit=False -- we own the boundary)
        self._poster = JournalPoster(
            session,
            clock=self._clock,
            settings=self._settings,
            auto_commit=False,
        )

    def create_manual_journal(
        self,
        company_id: UUID,
        entry_date: date,
        description: str,
        lines: Sequence[ManualJournalLine],
        actor_id: UUID,
        outlet_id: UUID | None = None,
        reference: str | None = None,
    ) -> ManualJournal:
        try:
            journal = ManualJournalModel(
                company_id=company_id,
                outlet_id=outlet_id,
                entry_date=entry_date,
                reference=reference,
                description=description,
                status=DocumentStatus.DRAFT.value,
                created_by_id=actor_id,
            )
            self._replace_lines(journal, lines, actor_id)
            self._session.add(journal)
            self._session.flush()

            logger.info(
                "manual_journal_created",
                extra={"journal_id": str(journal.id), "line_count": len(lines)},
            )
            self._session.commit()
            return journal.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def update_manual_journal(
        self,
        journal_id: UUID,
        actor_id: UUID,
        lines: Sequence[ManualJournalLine] | None = None,
        entry_date: date | None = None,
        description: str | None = None,
        reference: str | None = None,
    ) -> ManualJournal:
        """Edit a DRAFT entry.  ``lines``, when given, replace all lines."""
        try:
            journal = self._load(journal_id, for_update=True)
            assert_editable(DOC_TYPE, journal.id, journal.status)

            if entry_date is not None:
                journal.entry_date = entry_date
            if description is not None:
                journal.description = description
            if reference is not None:
                journal.reference = reference
            if lines is not None:
                journal.lines.clear()
                self._session.flush()
                self._replace_lines(journal, lines, actor_id)
            journal.updated_by_id = actor_id
            self._session.flush()

            logger.info("manual_journal_updated", extra={"journal_id": str(journal_id)})
            self._session.commit()
            return journal.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def post_manual_journal(self, journal_id: UUID, actor_id: UUID) -> DocumentPostResult:
        """
        DRAFT -> POSTED.

        Raises:
            DocumentVoidError: the entry is VOID.
            EmptyBatchError, InvalidLineError, UnbalancedEntryError,
            InvalidAccountError: the entry stays DRAFT.
        """
        with LogContext.bind(doc_id=journal_id, actor_id=actor_id):
            try:
                journal = self._load(journal_id, for_update=True)
                if journal.status == DocumentStatus.POSTED.value:
                    self._session.commit()
                    return DocumentPostResult.already_posted(
                        DOC_TYPE, journal.id, journal.journal_batch_id
                    )
                assert_transition(DOC_TYPE, journal.id, journal.status, DocumentStatus.POSTED)

                dto = journal.to_dto()
                posting = self._poster.post(
                    PostingRequest(
                        company_id=journal.company_id,
                        outlet_id=journal.outlet_id,
                        doc_type=DOC_TYPE,
                        doc_id=journal.id,
                        lines=tuple(line.to_posting_line() for line in dto.lines),
                        actor_id=actor_id,
                        posted_at=posting_timestamp(journal.entry_date),
                    )
                )
                journal.status = DocumentStatus.POSTED.value
                journal.journal_batch_id = posting.batch_id
                journal.posted_at = self._clock.now()
                journal.updated_by_id = actor_id
                self._session.flush()

                logger.info(
                    "manual_journal_posted",
                    extra={
                        "journal_batch_id": str(posting.batch_id),
                        "total_debit": str(posting.total_debit),
                    },
                )
                self._session.commit()
                return DocumentPostResult.from_posting(DOC_TYPE, journal.id, posting)
            except Exception:
                self._session.rollback()
                logger.warning("manual_journal_post_rolled_back", exc_info=True)
                raise

    def void_manual_journal(
        self,
        journal_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> ManualJournal:
        try:
            journal = self._load(journal_id, for_update=True)
            assert_transition(DOC_TYPE, journal.id, journal.status, DocumentStatus.VOID)
            if journal.status == DocumentStatus.POSTED.value:
                self._poster.void(journal.journal_batch_id, actor_id, reason)
            journal.status = DocumentStatus.VOID.value
            journal.voided_at = self._clock.now()
            journal.updated_by_id = actor_id
            self._session.flush()

            logger.info("manual_journal_voided", extra={"journal_id": str(journal_id)})
            self._session.commit()
            return journal.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def get_manual_journal(self, journal_id: UUID) -> ManualJournal:
        return self._load(journal_id).to_dto()

    def _replace_lines(
        self,
        journal: ManualJournalModel,
        lines: Sequence[ManualJournalLine],
        actor_id: UUID,
    ) -> None:
        for line_no, line in enumerate(lines, start=1):
            if line.debit < 0 or line.credit < 0:
                raise InvalidDocumentError(
                    DOC_TYPE, f"line {line_no}: amounts must be non-negative"
                )
            journal.lines.append(
                ManualJournalLineModel(
                    line_no=line_no,
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                    created_by_id=actor_id,
                )
            )

    def _load(self, journal_id: UUID, for_update: bool = False) -> ManualJournalModel:
        stmt = select(ManualJournalModel).where(ManualJournalModel.id == journal_id)
        if for_update:
            stmt = stmt.with_for_update()
        journal = self._session.execute(stmt).scalar_one_or_none()
        if journal is None:
            raise DocumentNotFoundError(DOC_TYPE, str(journal_id))
        return journal
