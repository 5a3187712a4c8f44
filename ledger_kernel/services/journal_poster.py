"""
JournalPoster -- atomic, idempotent posting of balanced journal batches.

Responsibility:
    The only code path that INSERTs into ``journal_batches`` and
    ``journal_lines``.  Document services and the depreciation engine hand
    it a ``PostingRequest``; reversal goes through ``void()``, which writes a
    compensating batch instead of touching the original lines.

Architecture position:
    Kernel > Services.  Flushes within the caller's transaction unless
    constructed with ``auto_commit=True``.

Invariants enforced:
    - Balance: |sum(debit) - sum(credit)| < settings.balance_tolerance,
      checked before anything is written.
    - Postability is re-checked under row locks inside the transaction,
      not only by the caller beforehand.
    - Idempotency: the UNIQUE idempotency_key makes a second post of the
      same (company, doc_type, doc_id) return the existing batch.  A
      concurrent duplicate that loses the insert race is resolved the same
      way via a savepoint rollback.
    - Atomicity: lines are inserted together with the batch in one
      savepoint; on any error nothing is left behind.

Failure modes:
    - EmptyBatchError, InvalidLineError, UnbalancedEntryError (validation).
    - InvalidAccountError family from AccountService.assert_postable.
    - BatchNotFoundError / BatchAlreadyVoidError from void().
    - PostingStorageError if an insert conflict cannot be resolved.
"""

import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_settings
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import PostingLine, PostingRequest, reversal_key
from ledger_kernel.domain.validation import validate_posting_lines
from ledger_kernel.exceptions import (
    BatchAlreadyVoidError,
    BatchNotFoundError,
    PostingStorageError,
    UnbalancedEntryError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.journal import JournalBatch, JournalBatchStatus, JournalLine
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.base import BaseService

logger = get_logger("services.journal_poster")


class PostingStatus(str, Enum):
    """Outcome of a post or void command."""

    POSTED = "POSTED"
    ALREADY_POSTED = "ALREADY_POSTED"


@dataclass(frozen=True)
class PostingResult:
    """
    Result of ``JournalPoster.post()`` or ``void()``.

    ``ALREADY_POSTED`` is a success: the batch for this idempotency key was
    committed earlier and is returned unchanged.
    """

    status: PostingStatus
    batch_id: UUID
    idempotency_key: str
    posted_at: datetime
    total_debit: Decimal
    total_credit: Decimal
    line_count: int

    @classmethod
    def posted(cls, batch: JournalBatch) -> "PostingResult":
        return cls._from_batch(PostingStatus.POSTED, batch)

    @classmethod
    def already_posted(cls, batch: JournalBatch) -> "PostingResult":
        return cls._from_batch(PostingStatus.ALREADY_POSTED, batch)

    @classmethod
    def _from_batch(cls, status: PostingStatus, batch: JournalBatch) -> "PostingResult":
        return cls(
            status=status,
            batch_id=batch.id,
            idempotency_key=batch.idempotency_key,
            posted_at=batch.posted_at,
            total_debit=batch.total_debit,
            total_credit=batch.total_credit,
            line_count=len(batch.lines),
        )

    @property
    def is_duplicate(self) -> bool:
        return self.status == PostingStatus.ALREADY_POSTED


class JournalPoster(BaseService[JournalBatch]):
    """
    Journal posting engine.

    Contract:
        ``post()`` either writes one new batch with all its lines, returns the
        batch already stored under the same idempotency key, or raises and
        writes nothing.

    Non-goals:
        - Does NOT know about invoices, payments, or depreciation plans.
        - Does NOT own the transaction unless ``auto_commit=True``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
        auto_commit: bool = False,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        self._auto_commit = auto_commit
        self._accounts = AccountService(session)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def post(self, request: PostingRequest) -> PostingResult:
        """
        Post one balanced batch.

        Raises:
            EmptyBatchError, InvalidLineError, UnbalancedEntryError,
            InvalidAccountError (and subclasses), PostingStorageError.
        """
        try:
            result = self._post(request)
            if self._auto_commit:
                self.session.commit()
            return result
        except Exception:
            if self._auto_commit:
                self.session.rollback()
            raise

    def void(
        self,
        batch_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> PostingResult:
        """
        Void a batch by writing its compensating batch.

        The original keeps its lines and flips to VOID; the compensating
        batch has every side swapped, references the original through
        ``reversal_of_id``, and is posted at the clock's current time.
        Postability is not re-checked: the reversal restores a state the
        ledger was already in.
        """
        try:
            result = self._void(batch_id, actor_id, reason)
            if self._auto_commit:
                self.session.commit()
            return result
        except Exception:
            if self._auto_commit:
                self.session.rollback()
            raise

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _post(self, request: PostingRequest) -> PostingResult:
        t0 = time.monotonic()
        key = request.idempotency_key
        logger.info(
            "journal_post_started",
            extra={
                "doc_type": request.doc_type,
                "doc_id": str(request.doc_id),
                "line_count": len(request.lines),
            },
        )

        # Balance is checked on the amounts as stored, at money precision
        lines = tuple(
            line.quantized(self._settings.money_decimal_places) for line in request.lines
        )
        try:
            total_debit, total_credit = validate_posting_lines(
                lines, self._settings.balance_tolerance
            )
        except UnbalancedEntryError as exc:
            logger.warning(
                "unbalanced_entry_rejected",
                extra={
                    "doc_type": request.doc_type,
                    "doc_id": str(request.doc_id),
                    "sum_debit": exc.debits,
                    "sum_credit": exc.credits,
                },
            )
            raise

        existing = self._get_by_key(key)
        if existing is not None:
            logger.info(
                "journal_post_idempotent",
                extra={"batch_id": str(existing.id), "idempotency_key": key},
            )
            return PostingResult.already_posted(existing)

        # Re-check inside the transaction, under row locks
        self._accounts.lock_postable_accounts(
            (line.account_id for line in request.lines), request.company_id
        )

        posted_at = request.posted_at or self._clock.now()
        try:
            batch = self._insert_batch(
                company_id=request.company_id,
                outlet_id=request.outlet_id,
                doc_type=request.doc_type,
                doc_id=request.doc_id,
                key=key,
                posted_at=posted_at,
                lines=lines,
                actor_id=request.actor_id,
            )
        except IntegrityError as exc:
            logger.warning(
                "concurrent_insert_conflict",
                extra={"idempotency_key": key},
            )
            existing = self._get_by_key(key)
            if existing is None:
                raise PostingStorageError("journal_post", str(exc.orig)) from exc
            return PostingResult.already_posted(existing)

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        with LogContext.bind(batch_id=batch.id):
            logger.info(
                "journal_post_completed",
                extra={
                    "doc_type": request.doc_type,
                    "doc_id": str(request.doc_id),
                    "total_debit": str(total_debit),
                    "total_credit": str(total_credit),
                    "duration_ms": duration_ms,
                },
            )
        return PostingResult.posted(batch)

    def _void(self, batch_id: UUID, actor_id: UUID, reason: str | None) -> PostingResult:
        logger.info("journal_void_started", extra={"batch_id": str(batch_id)})

        batch = self.session.execute(
            select(JournalBatch).where(JournalBatch.id == batch_id).with_for_update()
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(str(batch_id))
        if batch.is_void:
            raise BatchAlreadyVoidError(str(batch_id))

        compensating_lines = tuple(
            PostingLine(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            ).swapped()
            for line in batch.lines
        )
        now = self._clock.now()
        key = reversal_key(batch.idempotency_key)
        try:
            reversal = self._insert_batch(
                company_id=batch.company_id,
                outlet_id=batch.outlet_id,
                doc_type=batch.doc_type,
                doc_id=batch.doc_id,
                key=key,
                posted_at=now,
                lines=compensating_lines,
                actor_id=actor_id,
                reversal_of_id=batch.id,
            )
        except IntegrityError as exc:
            # Another session already voided this batch
            raise BatchAlreadyVoidError(str(batch_id)) from exc

        batch.status = JournalBatchStatus.VOID.value
        batch.voided_at = now
        batch.void_reason = reason
        batch.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "journal_void_completed",
            extra={
                "batch_id": str(batch_id),
                "reversal_batch_id": str(reversal.id),
                "reason": reason,
            },
        )
        return PostingResult.posted(reversal)

    def _insert_batch(
        self,
        company_id: UUID,
        outlet_id: UUID | None,
        doc_type: str,
        doc_id: UUID,
        key: str,
        posted_at: datetime,
        lines: tuple[PostingLine, ...],
        actor_id: UUID,
        reversal_of_id: UUID | None = None,
    ) -> JournalBatch:
        """Insert batch + lines in a savepoint so a key conflict rolls back only them."""
        batch = JournalBatch(
            company_id=company_id,
            outlet_id=outlet_id,
            doc_type=doc_type,
            doc_id=doc_id,
            idempotency_key=key,
            posted_at=posted_at,
            status=JournalBatchStatus.POSTED.value,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
        )
        line_date = posted_at.date()
        for line_no, spec in enumerate(lines, start=1):
            batch.lines.append(
                JournalLine(
                    line_no=line_no,
                    company_id=company_id,
                    outlet_id=outlet_id,
                    account_id=spec.account_id,
                    line_date=line_date,
                    debit=spec.debit,
                    credit=spec.credit,
                    description=spec.description,
                    created_by_id=actor_id,
                )
            )

        with self.session.begin_nested():
            self.session.add(batch)
            self.session.flush()
        return batch

    def _get_by_key(self, key: str) -> JournalBatch | None:
        return self.session.execute(
            select(JournalBatch).where(JournalBatch.idempotency_key == key)
        ).scalar_one_or_none()
