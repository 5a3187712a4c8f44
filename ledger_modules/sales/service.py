"""
Sales Module Service (``ledger_modules.sales.service``).

Responsibility
--------------
Lifecycle of sales invoices and sales payments (DRAFT -> POSTED -> VOID)
and their journal postings, plus the outlet account mappings those
postings resolve through.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``SalesService`` composes the kernel
``JournalPoster`` (``auto_commit=False``) and owns the transaction
boundary of every public mutating method.

Invariants enforced
-------------------
* Only DRAFT documents accept edits; VOID is terminal.
* ``post_*`` re-derives totals and resolves accounts from scratch, so a
  draft that fails validation stays DRAFT and nothing is written.
* Posting an already POSTED document is a no-op flagged ``duplicate``.
* A payment never exceeds the invoice's outstanding amount; the invoice
  row is locked while ``paid_total`` changes.
* An invoice with posted payments cannot be voided.

Journal shapes
--------------
SALES_INVOICE::

    Dr  AR              grand_total
    Cr  SALES_REVENUE   subtotal
    Cr  SALES_TAX       tax_amount      (only when tax_amount > 0)

SALES_PAYMENT_IN::

    Dr  <method account: CASH | QRIS | CARD>   amount
    Cr  AR                                     amount
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_settings
from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import PostingLine, PostingRequest
from ledger_kernel.domain.lifecycle import (
    DocumentStatus,
    assert_editable,
    assert_transition,
    derive_payment_status,
)
from ledger_kernel.exceptions import (
    AccountMappingMissingError,
    DocumentNotFoundError,
    DocumentVoidError,
    InvalidDocumentError,
    InvoiceHasPaymentsError,
    InvoiceNotPostedError,
    PaymentExceedsOutstandingError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_poster import JournalPoster
from ledger_modules._posting_helpers import DocumentPostResult, posting_timestamp
from ledger_modules.sales.models import (
    InvoiceLineInput,
    MappingKey,
    SalesInvoice,
    SalesPayment,
    compute_invoice_totals,
    normalize_payment_method,
)
from ledger_modules.sales.orm import (
    OutletAccountMappingModel,
    SalesInvoiceLineModel,
    SalesInvoiceModel,
    SalesPaymentModel,
)

logger = get_logger("modules.sales.service")

INVOICE_DOC_TYPE = "SALES_INVOICE"
PAYMENT_DOC_TYPE = "SALES_PAYMENT_IN"


class SalesService:
    """
    Sales invoices, sales payments, and outlet account mappings.

    Guarantees
    ----------
    * Document row changes and journal writes share one transaction.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT render, print, or number documents.
    * Does NOT manage customers or price lists.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        self._places = self._settings.money_decimal_places
        self._accounts = AccountService(session)

        # Kernel posting (auto_commit=False -- we own the boundary)
        self._poster = JournalPoster(
            session,
            clock=self._clock,
            settings=self._settings,
            auto_commit=False,
        )

    # =========================================================================
    # Outlet account mappings
    # =========================================================================

    def set_account_mapping(
        self,
        company_id: UUID,
        mapping_key: MappingKey | str,
        account_id: UUID,
        actor_id: UUID,
        outlet_id: UUID | None = None,
    ) -> None:
        """Assign (or reassign) the account for a key; ``outlet_id=None`` sets the company default."""
        key = MappingKey(mapping_key).value
        try:
            self._accounts.assert_postable(account_id, company_id)
            row = self._session.execute(
                select(OutletAccountMappingModel).where(
                    OutletAccountMappingModel.company_id == company_id,
                    _outlet_matches(OutletAccountMappingModel.outlet_id, outlet_id),
                    OutletAccountMappingModel.mapping_key == key,
                )
            ).scalar_one_or_none()
            if row is None:
                self._session.add(
                    OutletAccountMappingModel(
                        company_id=company_id,
                        outlet_id=outlet_id,
                        mapping_key=key,
                        account_id=account_id,
                        created_by_id=actor_id,
                    )
                )
            else:
                row.account_id = account_id
                row.updated_by_id = actor_id
            self._session.flush()
            logger.info(
                "outlet_account_mapping_set",
                extra={
                    "outlet_id": str(outlet_id) if outlet_id else None,
                    "mapping_key": key,
                    "account_id": str(account_id),
                },
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    def resolve_account_mappings(
        self,
        company_id: UUID,
        outlet_id: UUID | None,
        keys: Iterable[MappingKey | str],
    ) -> dict[MappingKey, UUID]:
        """
        Account for each key.  An outlet's own mapping wins over the company
        default.

        Raises:
            AccountMappingMissingError: listing every key with no account.
        """
        wanted = [MappingKey(k) for k in keys]
        scope = OutletAccountMappingModel.outlet_id.is_(None)
        if outlet_id is not None:
            scope = or_(scope, OutletAccountMappingModel.outlet_id == outlet_id)
        rows = self._session.execute(
            select(OutletAccountMappingModel).where(
                OutletAccountMappingModel.company_id == company_id,
                OutletAccountMappingModel.mapping_key.in_([k.value for k in wanted]),
                scope,
            )
        ).scalars()

        resolved: dict[MappingKey, UUID] = {}
        # Company defaults first so outlet rows overwrite them
        for row in sorted(rows, key=lambda r: r.outlet_id is not None):
            resolved[MappingKey(row.mapping_key)] = row.account_id

        missing = [k.value for k in wanted if k not in resolved]
        if missing:
            raise AccountMappingMissingError(
                str(outlet_id) if outlet_id else None, missing
            )
        return resolved

    # =========================================================================
    # Invoices
    # =========================================================================

    def create_invoice(
        self,
        company_id: UUID,
        invoice_no: str,
        invoice_date: date,
        lines: Sequence[InvoiceLineInput],
        actor_id: UUID,
        outlet_id: UUID | None = None,
        tax_amount: Decimal = ZERO,
    ) -> SalesInvoice:
        try:
            logger.info(
                "sales_invoice_create_started",
                extra={"invoice_no": invoice_no, "line_count": len(lines)},
            )
            invoice = SalesInvoiceModel(
                company_id=company_id,
                outlet_id=outlet_id,
                invoice_no=invoice_no,
                invoice_date=invoice_date,
                status=DocumentStatus.DRAFT.value,
                payment_status=derive_payment_status(ZERO, ZERO).value,
                paid_total=ZERO,
                created_by_id=actor_id,
            )
            self._apply_lines(invoice, lines, to_decimal(tax_amount), actor_id)
            self._session.add(invoice)
            self._session.flush()

            logger.info(
                "sales_invoice_created",
                extra={
                    "invoice_id": str(invoice.id),
                    "grand_total": str(invoice.grand_total),
                },
            )
            self._session.commit()
            return invoice.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def update_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        lines: Sequence[InvoiceLineInput] | None = None,
        tax_amount: Decimal | None = None,
        invoice_date: date | None = None,
    ) -> SalesInvoice:
        """Edit a DRAFT invoice.  ``lines``, when given, replace all lines."""
        try:
            invoice = self._load_invoice(invoice_id, for_update=True)
            assert_editable(INVOICE_DOC_TYPE, invoice.id, invoice.status)

            if invoice_date is not None:
                invoice.invoice_date = invoice_date
            if lines is not None or tax_amount is not None:
                new_lines = (
                    lines
                    if lines is not None
                    else [
                        InvoiceLineInput(line.description, line.qty, line.unit_price)
                        for line in invoice.lines
                    ]
                )
                new_tax = to_decimal(tax_amount) if tax_amount is not None else invoice.tax_amount
                if lines is not None:
                    # Delete old rows before inserting renumbered ones
                    invoice.lines.clear()
                    self._session.flush()
                    self._apply_lines(invoice, new_lines, new_tax, actor_id)
                else:
                    self._apply_totals(invoice, new_lines, new_tax)
            invoice.updated_by_id = actor_id
            self._session.flush()

            logger.info("sales_invoice_updated", extra={"invoice_id": str(invoice_id)})
            self._session.commit()
            return invoice.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def post_invoice(self, invoice_id: UUID, actor_id: UUID) -> DocumentPostResult:
        """
        DRAFT -> POSTED, writing the SALES_INVOICE batch dated ``invoice_date``.

        Raises:
            DocumentVoidError: the invoice is VOID.
            InvalidDocumentError, AccountMappingMissingError, or any posting
            error: the invoice stays DRAFT.
        """
        with LogContext.bind(doc_id=invoice_id, actor_id=actor_id):
            try:
                invoice = self._load_invoice(invoice_id, for_update=True)
                if invoice.status == DocumentStatus.POSTED.value:
                    logger.info(
                        "sales_invoice_post_duplicate",
                        extra={"journal_batch_id": str(invoice.journal_batch_id)},
                    )
                    self._session.commit()
                    return DocumentPostResult.already_posted(
                        INVOICE_DOC_TYPE, invoice.id, invoice.journal_batch_id
                    )
                assert_transition(
                    INVOICE_DOC_TYPE, invoice.id, invoice.status, DocumentStatus.POSTED
                )

                # Re-derive from lines; stored totals are not trusted
                self._apply_totals(
                    invoice,
                    [
                        InvoiceLineInput(line.description, line.qty, line.unit_price)
                        for line in invoice.lines
                    ],
                    invoice.tax_amount,
                )
                has_tax = invoice.tax_amount > 0
                keys = [MappingKey.AR, MappingKey.SALES_REVENUE]
                if has_tax:
                    keys.append(MappingKey.SALES_TAX)
                accounts = self.resolve_account_mappings(
                    invoice.company_id, invoice.outlet_id, keys
                )

                lines = [
                    PostingLine.dr(
                        accounts[MappingKey.AR],
                        invoice.grand_total,
                        f"Invoice {invoice.invoice_no} - AR",
                    ),
                    PostingLine.cr(
                        accounts[MappingKey.SALES_REVENUE],
                        invoice.subtotal,
                        f"Invoice {invoice.invoice_no} - Revenue",
                    ),
                ]
                if has_tax:
                    lines.append(
                        PostingLine.cr(
                            accounts[MappingKey.SALES_TAX],
                            invoice.tax_amount,
                            f"Invoice {invoice.invoice_no} - Tax",
                        )
                    )

                posting = self._poster.post(
                    PostingRequest(
                        company_id=invoice.company_id,
                        outlet_id=invoice.outlet_id,
                        doc_type=INVOICE_DOC_TYPE,
                        doc_id=invoice.id,
                        lines=tuple(lines),
                        actor_id=actor_id,
                        posted_at=posting_timestamp(invoice.invoice_date),
                    )
                )
                invoice.status = DocumentStatus.POSTED.value
                invoice.journal_batch_id = posting.batch_id
                invoice.posted_at = self._clock.now()
                invoice.updated_by_id = actor_id
                self._session.flush()

                logger.info(
                    "sales_invoice_posted",
                    extra={
                        "journal_batch_id": str(posting.batch_id),
                        "grand_total": str(invoice.grand_total),
                    },
                )
                self._session.commit()
                return DocumentPostResult.from_posting(INVOICE_DOC_TYPE, invoice.id, posting)
            except Exception:
                self._session.rollback()
                logger.warning("sales_invoice_post_rolled_back", exc_info=True)
                raise

    def void_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> SalesInvoice:
        """
        Move an invoice to VOID.  A POSTED invoice gets a compensating batch;
        one with posted payments is rejected until those are voided.
        """
        try:
            invoice = self._load_invoice(invoice_id, for_update=True)
            assert_transition(
                INVOICE_DOC_TYPE, invoice.id, invoice.status, DocumentStatus.VOID
            )
            if self._posted_payment_count(invoice.id) > 0:
                raise InvoiceHasPaymentsError(str(invoice_id))

            if invoice.status == DocumentStatus.POSTED.value:
                self._poster.void(invoice.journal_batch_id, actor_id, reason)
            invoice.status = DocumentStatus.VOID.value
            invoice.voided_at = self._clock.now()
            invoice.updated_by_id = actor_id
            self._session.flush()

            logger.info("sales_invoice_voided", extra={"invoice_id": str(invoice_id)})
            self._session.commit()
            return invoice.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def get_invoice(self, invoice_id: UUID) -> SalesInvoice:
        return self._load_invoice(invoice_id).to_dto()

    # =========================================================================
    # Payments
    # =========================================================================

    def create_payment(
        self,
        invoice_id: UUID,
        payment_no: str,
        payment_date: date,
        method: str,
        amount: Decimal,
        actor_id: UUID,
    ) -> SalesPayment:
        """Record a DRAFT payment against an invoice; company and outlet come from it."""
        try:
            invoice = self._load_invoice(invoice_id)
            if invoice.status == DocumentStatus.VOID.value:
                raise DocumentVoidError(INVOICE_DOC_TYPE, str(invoice_id))
            payment = SalesPaymentModel(
                company_id=invoice.company_id,
                outlet_id=invoice.outlet_id,
                invoice_id=invoice.id,
                payment_no=payment_no,
                payment_date=payment_date,
                method=normalize_payment_method(method).value,
                amount=self._positive_amount(amount),
                status=DocumentStatus.DRAFT.value,
                created_by_id=actor_id,
            )
            self._session.add(payment)
            self._session.flush()

            logger.info(
                "sales_payment_created",
                extra={"payment_id": str(payment.id), "invoice_id": str(invoice_id)},
            )
            self._session.commit()
            return payment.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def update_payment(
        self,
        payment_id: UUID,
        actor_id: UUID,
        method: str | None = None,
        amount: Decimal | None = None,
        payment_date: date | None = None,
    ) -> SalesPayment:
        try:
            payment = self._load_payment(payment_id, for_update=True)
            assert_editable(PAYMENT_DOC_TYPE, payment.id, payment.status)
            if method is not None:
                payment.method = normalize_payment_method(method).value
            if amount is not None:
                payment.amount = self._positive_amount(amount)
            if payment_date is not None:
                payment.payment_date = payment_date
            payment.updated_by_id = actor_id
            self._session.flush()

            logger.info("sales_payment_updated", extra={"payment_id": str(payment_id)})
            self._session.commit()
            return payment.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def post_payment(self, payment_id: UUID, actor_id: UUID) -> DocumentPostResult:
        """
        DRAFT -> POSTED, writing the SALES_PAYMENT_IN batch and raising the
        invoice's ``paid_total`` in the same transaction.

        Raises:
            DocumentVoidError: the payment or its invoice is VOID.
            InvoiceNotPostedError: the invoice is still DRAFT.
            PaymentExceedsOutstandingError, AccountMappingMissingError, or
            any posting error: the payment stays DRAFT.
        """
        with LogContext.bind(doc_id=payment_id, actor_id=actor_id):
            try:
                payment = self._load_payment(payment_id, for_update=True)
                if payment.status == DocumentStatus.POSTED.value:
                    logger.info(
                        "sales_payment_post_duplicate",
                        extra={"journal_batch_id": str(payment.journal_batch_id)},
                    )
                    self._session.commit()
                    return DocumentPostResult.already_posted(
                        PAYMENT_DOC_TYPE, payment.id, payment.journal_batch_id
                    )
                assert_transition(
                    PAYMENT_DOC_TYPE, payment.id, payment.status, DocumentStatus.POSTED
                )

                invoice = self._load_invoice(payment.invoice_id, for_update=True)
                if invoice.status == DocumentStatus.VOID.value:
                    raise DocumentVoidError(INVOICE_DOC_TYPE, str(invoice.id))
                if invoice.status != DocumentStatus.POSTED.value:
                    raise InvoiceNotPostedError(str(invoice.id), invoice.status)

                amount = round_money(payment.amount, self._places)
                outstanding = round_money(invoice.grand_total - invoice.paid_total, self._places)
                if outstanding <= 0 or amount > outstanding:
                    raise PaymentExceedsOutstandingError(
                        str(invoice.id), str(amount), str(outstanding)
                    )

                method = normalize_payment_method(payment.method)
                method_key = MappingKey(method.value)
                accounts = self.resolve_account_mappings(
                    payment.company_id, payment.outlet_id, [method_key, MappingKey.AR]
                )

                posting = self._poster.post(
                    PostingRequest(
                        company_id=payment.company_id,
                        outlet_id=payment.outlet_id,
                        doc_type=PAYMENT_DOC_TYPE,
                        doc_id=payment.id,
                        lines=(
                            PostingLine.dr(
                                accounts[method_key],
                                amount,
                                f"Payment {payment.payment_no} - {method.value}",
                            ),
                            PostingLine.cr(
                                accounts[MappingKey.AR],
                                amount,
                                f"Payment {payment.payment_no} - AR",
                            ),
                        ),
                        actor_id=actor_id,
                        posted_at=posting_timestamp(payment.payment_date),
                    )
                )

                payment.status = DocumentStatus.POSTED.value
                payment.journal_batch_id = posting.batch_id
                payment.posted_at = self._clock.now()
                payment.updated_by_id = actor_id
                self._settle(invoice, invoice.paid_total + amount, actor_id)
                self._session.flush()

                logger.info(
                    "sales_payment_posted",
                    extra={
                        "journal_batch_id": str(posting.batch_id),
                        "invoice_id": str(invoice.id),
                        "amount": str(amount),
                        "payment_status": invoice.payment_status,
                    },
                )
                self._session.commit()
                return DocumentPostResult.from_posting(PAYMENT_DOC_TYPE, payment.id, posting)
            except Exception:
                self._session.rollback()
                logger.warning("sales_payment_post_rolled_back", exc_info=True)
                raise

    def void_payment(
        self,
        payment_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> SalesPayment:
        """VOID a payment; a POSTED one is reversed and taken off the invoice's paid total."""
        try:
            payment = self._load_payment(payment_id, for_update=True)
            assert_transition(
                PAYMENT_DOC_TYPE, payment.id, payment.status, DocumentStatus.VOID
            )
            if payment.status == DocumentStatus.POSTED.value:
                invoice = self._load_invoice(payment.invoice_id, for_update=True)
                self._poster.void(payment.journal_batch_id, actor_id, reason)
                self._settle(invoice, invoice.paid_total - payment.amount, actor_id)
            payment.status = DocumentStatus.VOID.value
            payment.voided_at = self._clock.now()
            payment.updated_by_id = actor_id
            self._session.flush()

            logger.info("sales_payment_voided", extra={"payment_id": str(payment_id)})
            self._session.commit()
            return payment.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def get_payment(self, payment_id: UUID) -> SalesPayment:
        return self._load_payment(payment_id).to_dto()

    def list_payments(self, invoice_id: UUID) -> list[SalesPayment]:
        rows = self._session.execute(
            select(SalesPaymentModel)
            .where(SalesPaymentModel.invoice_id == invoice_id)
            .order_by(SalesPaymentModel.payment_date, SalesPaymentModel.payment_no)
        ).scalars()
        return [row.to_dto() for row in rows]

    # =========================================================================
    # Internals
    # =========================================================================

    def _apply_lines(
        self,
        invoice: SalesInvoiceModel,
        lines: Sequence[InvoiceLineInput],
        tax_amount: Decimal,
        actor_id: UUID,
    ) -> None:
        totals = self._apply_totals(invoice, lines, tax_amount)
        for line_no, (line, line_total) in enumerate(
            zip(lines, totals.line_totals), start=1
        ):
            invoice.lines.append(
                SalesInvoiceLineModel(
                    line_no=line_no,
                    description=line.description,
                    qty=line.qty,
                    unit_price=line.unit_price,
                    line_total=line_total,
                    created_by_id=actor_id,
                )
            )

    def _apply_totals(
        self,
        invoice: SalesInvoiceModel,
        lines: Sequence[InvoiceLineInput],
        tax_amount: Decimal,
    ):
        self._validate_lines(lines, tax_amount)
        totals = compute_invoice_totals(lines, tax_amount, self._places)
        invoice.subtotal = totals.subtotal
        invoice.tax_amount = totals.tax_amount
        invoice.grand_total = totals.grand_total
        return totals

    def _validate_lines(self, lines: Sequence[InvoiceLineInput], tax_amount: Decimal) -> None:
        if not lines:
            raise InvalidDocumentError(INVOICE_DOC_TYPE, "at least one line is required")
        for line_no, line in enumerate(lines, start=1):
            if line.qty <= 0:
                raise InvalidDocumentError(
                    INVOICE_DOC_TYPE, f"line {line_no}: quantity must be positive"
                )
            if line.unit_price < 0:
                raise InvalidDocumentError(
                    INVOICE_DOC_TYPE, f"line {line_no}: unit price must be non-negative"
                )
        if tax_amount < 0:
            raise InvalidDocumentError(INVOICE_DOC_TYPE, "tax amount must be non-negative")

    def _positive_amount(self, amount: Decimal) -> Decimal:
        value = round_money(to_decimal(amount), self._places)
        if value <= 0:
            raise InvalidDocumentError(PAYMENT_DOC_TYPE, "amount must be positive")
        return value

    def _settle(self, invoice: SalesInvoiceModel, paid_total: Decimal, actor_id: UUID) -> None:
        invoice.paid_total = round_money(paid_total, self._places)
        invoice.payment_status = derive_payment_status(
            invoice.grand_total, invoice.paid_total
        ).value
        invoice.updated_by_id = actor_id

    def _posted_payment_count(self, invoice_id: UUID) -> int:
        return int(
            self._session.execute(
                select(func.count(SalesPaymentModel.id)).where(
                    SalesPaymentModel.invoice_id == invoice_id,
                    SalesPaymentModel.status == DocumentStatus.POSTED.value,
                )
            ).scalar_one()
        )

    def _load_invoice(self, invoice_id: UUID, for_update: bool = False) -> SalesInvoiceModel:
        stmt = select(SalesInvoiceModel).where(SalesInvoiceModel.id == invoice_id)
        if for_update:
            stmt = stmt.with_for_update()
        invoice = self._session.execute(stmt).scalar_one_or_none()
        if invoice is None:
            raise DocumentNotFoundError(INVOICE_DOC_TYPE, str(invoice_id))
        return invoice

    def _load_payment(self, payment_id: UUID, for_update: bool = False) -> SalesPaymentModel:
        stmt = select(SalesPaymentModel).where(SalesPaymentModel.id == payment_id)
        if for_update:
            stmt = stmt.with_for_update()
        payment = self._session.execute(stmt).scalar_one_or_none()
        if payment is None:
            raise DocumentNotFoundError(PAYMENT_DOC_TYPE, str(payment_id))
        return payment


def _outlet_matches(column, outlet_id: UUID | None):
    return column.is_(None) if outlet_id is None else column == outlet_id

