"""
Tests for sales document arithmetic and payment method normalization.
"""

from decimal import Decimal

import pytest

from ledger_kernel.exceptions import UnsupportedPaymentMethodError
from ledger_modules.sales.models import (
    InvoiceLineInput,
    PaymentMethod,
    compute_invoice_totals,
    normalize_payment_method,
)


class TestComputeInvoiceTotals:

    def test_lines_and_tax(self):
        totals = compute_invoice_totals(
            [
                InvoiceLineInput("Coffee", 2, 50000),
                InvoiceLineInput("Pastry", 1, 30000),
            ],
            Decimal("13000"),
        )
        assert totals.line_totals == (Decimal("100000.00"), Decimal("30000.00"))
        assert totals.subtotal == Decimal("130000.00")
        assert totals.tax_amount == Decimal("13000.00")
        assert totals.grand_total == Decimal("143000.00")

    def test_line_total_rounds_half_up(self):
        totals = compute_invoice_totals(
            [InvoiceLineInput("Syrup", Decimal("0.5"), Decimal("0.25"))], Decimal("0")
        )
        assert totals.line_totals == (Decimal("0.13"),)

    def test_no_tax(self):
        totals = compute_invoice_totals([InvoiceLineInput("Tea", 3, "10.10")], 0)
        assert totals.subtotal == Decimal("30.30")
        assert totals.grand_total == Decimal("30.30")

    def test_inputs_coerced_to_decimal(self):
        line = InvoiceLineInput("Tea", "2", 7)
        assert line.qty == Decimal("2")
        assert line.unit_price == Decimal("7")


class TestNormalizePaymentMethod:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("cash", PaymentMethod.CASH),
            (" Qris ", PaymentMethod.QRIS),
            ("CARD", PaymentMethod.CARD),
        ],
    )
    def test_case_insensitive(self, raw, expected):
        assert normalize_payment_method(raw) is expected

    def test_unsupported(self):
        with pytest.raises(UnsupportedPaymentMethodError) as exc_info:
            normalize_payment_method("cheque")
        assert exc_info.value.method == "cheque"
        assert exc_info.value.category == "VALIDATION"
