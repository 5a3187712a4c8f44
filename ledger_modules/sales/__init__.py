"""Sales invoices and payments, posted through outlet account mappings."""

from ledger_modules.sales.models import (
    InvoiceLineInput,
    MappingKey,
    PaymentMethod,
    SalesInvoice,
    SalesInvoiceLine,
    SalesPayment,
)
from ledger_modules.sales.service import SalesService

__all__ = [
    "InvoiceLineInput",
    "MappingKey",
    "PaymentMethod",
    "SalesInvoice",
    "SalesInvoiceLine",
    "SalesPayment",
    "SalesService",
]
