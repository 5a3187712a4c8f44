"""
Sales ORM Models (``ledger_modules.sales.orm``).

Responsibility
--------------
SQLAlchemy persistence models for sales invoices with their lines, sales
payments, and outlet account mappings.  Maps frozen domain dataclasses
from ``models.py`` to database tables.

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
# SalesInvoiceModel
# ---------------------------------------------------------------------------

class SalesInvoiceModel(TrackedBase):
    """
    ORM model for ``SalesInvoice``.

    Table: ``sales_invoices``
    """

    __tablename__ = "sales_invoices"

    company_id: Mapped[UUID]
    outlet_id: Mapped[UUID | None]
    invoice_no: Mapped[str] = mapped_column(String(64))
    invoice_date: Mapped[date]
    status: Mapped[str] = mapped_column(String(20), default="DRAFT")
    payment_status: Mapped[str] = mapped_column(String(20), default="UNPAID")
    subtotal: Mapped[Decimal] = mapped_column(default=ZERO)
    tax_amount: Mapped[Decimal] = mapped_column(default=ZERO)
    grand_total: Mapped[Decimal] = mapped_column(default=ZERO)
    paid_total: Mapped[Decimal] = mapped_column(default=ZERO)
    journal_batch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_batches.id"), nullable=True,
    )
    posted_at: Mapped[datetime | None]
    voided_at: Mapped[datetime | None]

    lines: Mapped[list["SalesInvoiceLineModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="SalesInvoiceLineModel.line_no",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("company_id", "invoice_no", name="uq_sales_invoices_company_no"),
        Index("idx_sales_invoices_company_date", "company_id", "invoice_date"),
        Index("idx_sales_invoices_status", "status"),
    )

    def to_dto(self):
        from ledger_kernel.domain.lifecycle import DocumentStatus, PaymentStatus
        from ledger_modules.sales.models import SalesInvoice
        return SalesInvoice(
            id=self.id,
            company_id=self.company_id,
            outlet_id=self.outlet_id,
            invoice_no=self.invoice_no,
            invoice_date=self.invoice_date,
            status=DocumentStatus(self.status),
            payment_status=PaymentStatus(self.payment_status),
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            grand_total=self.grand_total,
            paid_total=self.paid_total,
            journal_batch_id=self.journal_batch_id,
            posted_at=self.posted_at,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return (
            f"<SalesInvoiceModel(id={self.id!r}, invoice_no={self.invoice_no!r}, "
            f"status={self.status!r})>"
        )


# ---------------------------------------------------------------------------
# SalesInvoiceLineModel
# ---------------------------------------------------------------------------

class SalesInvoiceLineModel(TrackedBase):
    """
    ORM model for ``SalesInvoiceLine``.

    Table: ``sales_invoice_lines``
    """

    __tablename__ = "sales_invoice_lines"

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("sales_invoices.id"))
    line_no: Mapped[int]
    description: Mapped[str] = mapped_column(String(500), default="")
    qty: Mapped[Decimal]
    unit_price: Mapped[Decimal]
    line_total: Mapped[Decimal]

    invoice: Mapped["SalesInvoiceModel"] = relationship(back_populates="lines")

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_no", name="uq_sales_invoice_lines_no"),
    )

    def to_dto(self):
        from ledger_modules.sales.models import SalesInvoiceLine
        return SalesInvoiceLine(
            line_no=self.line_no,
            description=self.description,
            qty=self.qty,
            unit_price=self.unit_price,
            line_total=self.line_total,
        )


# ---------------------------------------------------------------------------
# SalesPaymentModel
# ---------------------------------------------------------------------------

class SalesPaymentModel(TrackedBase):
    """
    ORM model for ``SalesPayment``.

    Table: ``sales_payments``
    """

    __tablename__ = "sales_payments"

    company_id: Mapped[UUID]
    outlet_id: Mapped[UUID | None]
    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("sales_invoices.id"))
    payment_no: Mapped[str] = mapped_column(String(64))
    payment_date: Mapped[date]
    method: Mapped[str] = mapped_column(String(20))
    amount: Mapped[Decimal]
    status: Mapped[str] = mapped_column(String(20), default="DRAFT")
    journal_batch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_batches.id"), nullable=True,
    )
    posted_at: Mapped[datetime | None]
    voided_at: Mapped[datetime | None]

    __table_args__ = (
        UniqueConstraint("company_id", "payment_no", name="uq_sales_payments_company_no"),
        Index("idx_sales_payments_invoice_id", "invoice_id"),
    )

    def to_dto(self):
        from ledger_kernel.domain.lifecycle import DocumentStatus
        from ledger_modules.sales.models import PaymentMethod, SalesPayment
        return SalesPayment(
            id=self.id,
            company_id=self.company_id,
            outlet_id=self.outlet_id,
            invoice_id=self.invoice_id,
            payment_no=self.payment_no,
            payment_date=self.payment_date,
            method=PaymentMethod(self.method),
            amount=self.amount,
            status=DocumentStatus(self.status),
            journal_batch_id=self.journal_batch_id,
            posted_at=self.posted_at,
        )

    def __repr__(self) -> str:
        return (
            f"<SalesPaymentModel(id={self.id!r}, payment_no={self.payment_no!r}, "
            f"status={self.status!r})>"
        )


# ---------------------------------------------------------------------------
# OutletAccountMappingModel
# ---------------------------------------------------------------------------

class OutletAccountMappingModel(TrackedBase):
    """
    Account assigned to a mapping key for an outlet.

    ``outlet_id`` NULL is the company-wide default for that key.

    Table: ``outlet_account_mappings``
    """

    __tablename__ = "outlet_account_mappings"

    company_id: Mapped[UUID]
    outlet_id: Mapped[UUID | None]
    mapping_key: Mapped[str] = mapped_column(String(50))
    account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"))

    __table_args__ = (
        UniqueConstraint(
            "company_id", "outlet_id", "mapping_key",
            name="uq_outlet_account_mappings_key",
        ),
    )
