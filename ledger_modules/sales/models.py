"""
Sales Domain Models.

The nouns of sales documents -- invoices, invoice lines, payments, and the
outlet account mapping keys -- plus the pure totals arithmetic shared by
create, update, and post.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.domain.lifecycle import DocumentStatus, PaymentStatus
from ledger_kernel.exceptions import UnsupportedPaymentMethodError


class PaymentMethod(str, Enum):
    CASH = "CASH"
    QRIS = "QRIS"
    CARD = "CARD"


class MappingKey(str, Enum):
    """Roles an outlet maps to concrete accounts."""
    CASH = "CASH"
    QRIS = "QRIS"
    CARD = "CARD"
    SALES_REVENUE = "SALES_REVENUE"
    SALES_TAX = "SALES_TAX"
    AR = "AR"


@dataclass(frozen=True)
class InvoiceLineInput:
    """A line as submitted by the caller, before totals are derived."""
    description: str
    qty: Decimal
    unit_price: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "qty", to_decimal(self.qty))
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))


@dataclass(frozen=True)
class SalesInvoiceLine:
    line_no: int
    description: str
    qty: Decimal
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class SalesInvoice:
    id: UUID
    company_id: UUID
    outlet_id: UUID | None
    invoice_no: str
    invoice_date: date
    status: DocumentStatus
    payment_status: PaymentStatus
    subtotal: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    paid_total: Decimal
    journal_batch_id: UUID | None
    posted_at: datetime | None
    lines: tuple[SalesInvoiceLine, ...] = ()

    @property
    def outstanding(self) -> Decimal:
        return self.grand_total - self.paid_total


@dataclass(frozen=True)
class SalesPayment:
    id: UUID
    company_id: UUID
    outlet_id: UUID | None
    invoice_id: UUID
    payment_no: str
    payment_date: date
    method: PaymentMethod
    amount: Decimal
    status: DocumentStatus
    journal_batch_id: UUID | None
    posted_at: datetime | None


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    line_totals: tuple[Decimal, ...]


def compute_invoice_totals(
    lines: Iterable[InvoiceLineInput],
    tax_amount: Decimal,
    decimal_places: int = 2,
) -> InvoiceTotals:
    """
    ``line_total = qty * unit_price``, ``subtotal = sum(line_total)``,
    ``grand_total = subtotal + tax_amount``; each rounded to money precision.
    """
    line_totals = tuple(
        round_money(line.qty * line.unit_price, decimal_places) for line in lines
    )
    subtotal = round_money(sum(line_totals, ZERO), decimal_places)
    tax = round_money(to_decimal(tax_amount), decimal_places)
    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax,
        grand_total=round_money(subtotal + tax, decimal_places),
        line_totals=line_totals,
    )


def normalize_payment_method(method: str) -> PaymentMethod:
    """Case-insensitive; anything outside CASH/QRIS/CARD is rejected."""
    try:
        return PaymentMethod(method.strip().upper())
    except ValueError:
        raise UnsupportedPaymentMethodError(method) from None
