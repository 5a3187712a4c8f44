"""
Tests for LedgerSelector -- trial balance, general ledger, worksheet.

Fixture books (all amounts in whole currency units):

    2025-01-10  capital      Dr Cash 1000  / Cr Equity 1000   (company-wide)
    2025-02-05  cash sale    Dr Cash  500  / Cr Revenue 500   (outlet A)
    2025-02-20  rent         Dr Rent  200  / Cr Cash    200   (outlet B)
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.dtos import PostingLine, PostingRequest
from ledger_kernel.exceptions import AccountNotFoundError, ReportParameterError
from ledger_kernel.models.account import NormalBalance, ReportGroup

JAN_1 = date(2025, 1, 1)
JAN_31 = date(2025, 1, 31)
FEB_1 = date(2025, 2, 1)
FEB_28 = date(2025, 2, 28)


@pytest.fixture
def post_entry(poster, standard_accounts, company_id, test_actor_id):
    def _post(amount, on, debit, credit, outlet_id=None, description=""):
        return poster.post(
            PostingRequest(
                company_id=company_id,
                outlet_id=outlet_id,
                doc_type="MANUAL",
                doc_id=uuid4(),
                lines=(
                    PostingLine.dr(standard_accounts[debit].id, Decimal(amount), description),
                    PostingLine.cr(standard_accounts[credit].id, Decimal(amount), description),
                ),
                actor_id=test_actor_id,
                posted_at=datetime(on.year, on.month, on.day, tzinfo=timezone.utc),
            )
        )

    return _post


@pytest.fixture
def outlets():
    return {"a": uuid4(), "b": uuid4()}


@pytest.fixture
def books(post_entry, outlets):
    return {
        "capital": post_entry("1000", date(2025, 1, 10), "cash", "equity", description="Capital"),
        "sale": post_entry("500", date(2025, 2, 5), "cash", "revenue", outlets["a"], "Cash sale"),
        "rent": post_entry("200", date(2025, 2, 20), "rent_expense", "cash", outlets["b"], "Rent"),
    }


def _by_code(rows, attr="account_code"):
    return {getattr(r, attr): r for r in rows}


# ---------------------------------------------------------------------------
# Trial balance
# ---------------------------------------------------------------------------


class TestTrialBalance:

    def test_period_rows_and_totals(self, books, ledger_selector, company_id):
        tb = ledger_selector.trial_balance(company_id, FEB_1, FEB_28)
        rows = _by_code(tb.rows)

        assert list(rows) == ["1101", "4000", "6200"]
        assert rows["1101"].total_debit == Decimal("500")
        assert rows["1101"].total_credit == Decimal("200")
        assert rows["1101"].balance == Decimal("300")
        assert rows["4000"].balance == Decimal("-500")
        assert tb.is_balanced
        assert tb.totals.total_debit == Decimal("700")
        assert tb.totals.balance == Decimal("0")

    def test_as_of_cuts_the_range(self, books, ledger_selector, company_id):
        tb = ledger_selector.trial_balance(
            company_id, JAN_1, date(2025, 12, 31), as_of=datetime(2025, 1, 31, 18, 0)
        )
        assert [r.account_code for r in tb.rows] == ["1101", "3000"]
        assert tb.totals.total_debit == Decimal("1000")

    def test_empty_range(self, books, ledger_selector, company_id):
        tb = ledger_selector.trial_balance(company_id, date(2024, 1, 1), date(2024, 12, 31))
        assert tb.rows == ()
        assert tb.is_balanced

    def test_rounds_half_up_on_output(self, post_entry, ledger_selector, company_id):
        post_entry("10.55", date(2025, 3, 1), "cash", "revenue")

        tb = ledger_selector.trial_balance(company_id, JAN_1, date(2025, 3, 31), round_to=1)
        assert _by_code(tb.rows)["1101"].total_debit == Decimal("10.6")

        tb = ledger_selector.trial_balance(company_id, JAN_1, date(2025, 3, 31), round_to=0)
        assert _by_code(tb.rows)["1101"].total_debit == Decimal("11")
        assert str(_by_code(tb.rows)["1101"].total_debit) == "11"

    def test_sub_cent_posting_still_balances(
        self, poster, ledger_selector, standard_accounts, company_id, test_actor_id
    ):
        poster.post(
            PostingRequest(
                company_id=company_id,
                doc_type="MANUAL",
                doc_id=uuid4(),
                lines=(
                    PostingLine.dr(standard_accounts["cash"].id, Decimal("100.004")),
                    PostingLine.cr(standard_accounts["revenue"].id, Decimal("100.00")),
                ),
                actor_id=test_actor_id,
                posted_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
            )
        )
        tb = ledger_selector.trial_balance(company_id, JAN_1, date(2025, 3, 31), round_to=6)
        assert tb.totals.total_debit == Decimal("100.00")
        assert tb.totals.total_debit == tb.totals.total_credit
        assert tb.totals.balance == Decimal("0")

    def test_other_company_not_included(self, books, ledger_selector):
        tb = ledger_selector.trial_balance(uuid4(), JAN_1, FEB_28)
        assert tb.rows == ()


class TestOutletScoping:

    def test_none_means_all_outlets(self, books, ledger_selector, company_id):
        tb = ledger_selector.trial_balance(company_id, JAN_1, FEB_28)
        assert tb.totals.total_debit == Decimal("1700")

    def test_empty_list_means_nothing(self, books, ledger_selector, company_id):
        tb = ledger_selector.trial_balance(company_id, JAN_1, FEB_28, outlet_ids=[])
        assert tb.rows == ()
        assert ledger_selector.general_ledger(company_id, JAN_1, FEB_28, outlet_ids=[]) == []
        assert ledger_selector.worksheet(company_id, JAN_1, FEB_28, outlet_ids=[]).rows == ()

    def test_outlet_with_company_wide_lines(self, books, ledger_selector, company_id, outlets):
        tb = ledger_selector.trial_balance(company_id, JAN_1, FEB_28, outlet_ids=[outlets["a"]])
        rows = _by_code(tb.rows)
        assert rows["1101"].total_debit == Decimal("1500")
        assert "6200" not in rows
        assert tb.is_balanced

    def test_outlet_only(self, books, ledger_selector, company_id, outlets):
        tb = ledger_selector.trial_balance(
            company_id, JAN_1, FEB_28, outlet_ids=[outlets["a"]], include_unassigned=False
        )
        assert [r.account_code for r in tb.rows] == ["1101", "4000"]
        assert tb.totals.total_debit == Decimal("500")


# ---------------------------------------------------------------------------
# General ledger
# ---------------------------------------------------------------------------


class TestGeneralLedger:

    def test_opening_period_ending(self, books, ledger_selector, company_id):
        rows = _by_code(ledger_selector.general_ledger(company_id, FEB_1, FEB_28))

        cash = rows["1101"]
        assert cash.normal_balance == NormalBalance.DEBIT
        assert cash.opening_debit == Decimal("1000")
        assert cash.opening_balance == Decimal("1000")
        assert cash.period_debit == Decimal("500")
        assert cash.period_credit == Decimal("200")
        assert cash.ending_balance == Decimal("1300")
        assert cash.lines == ()

        equity = rows["3000"]
        assert equity.opening_balance == Decimal("1000")
        assert equity.ending_balance == Decimal("1000")

        revenue = rows["4000"]
        assert revenue.opening_balance == Decimal("0")
        assert revenue.ending_balance == Decimal("500")

    def test_ending_is_opening_plus_signed_period(self, books, ledger_selector, company_id):
        for row in ledger_selector.general_ledger(company_id, FEB_1, FEB_28):
            sign = 1 if row.normal_balance == NormalBalance.DEBIT else -1
            assert row.ending_balance == (
                row.opening_balance + (row.period_debit - row.period_credit) * sign
            )

    def test_account_lines_carry_running_balance(self, books, ledger_selector, company_id, standard_accounts):
        row = ledger_selector.account_ledger(
            company_id, standard_accounts["cash"].id, JAN_1, FEB_28
        )
        assert [line.balance for line in row.lines] == [
            Decimal("1000"), Decimal("1500"), Decimal("1300"),
        ]
        assert [line.description for line in row.lines] == ["Capital", "Cash sale", "Rent"]
        assert row.lines[-1].balance == row.ending_balance

    def test_running_balance_continues_across_pages(self, books, ledger_selector, company_id, standard_accounts):
        cash_id = standard_accounts["cash"].id
        first = ledger_selector.account_ledger(
            company_id, cash_id, JAN_1, FEB_28, line_limit=2
        )
        second = ledger_selector.account_ledger(
            company_id, cash_id, JAN_1, FEB_28, line_limit=2, line_offset=2
        )
        assert [line.balance for line in first.lines] == [Decimal("1000"), Decimal("1500")]
        assert [line.balance for line in second.lines] == [Decimal("1300")]

    def test_credit_normal_account_runs_positive(self, books, ledger_selector, company_id, standard_accounts):
        row = ledger_selector.account_ledger(
            company_id, standard_accounts["revenue"].id, JAN_1, FEB_28
        )
        assert [line.balance for line in row.lines] == [Decimal("500")]

    def test_account_without_activity(self, books, ledger_selector, company_id, standard_accounts):
        row = ledger_selector.account_ledger(
            company_id, standard_accounts["qris"].id, JAN_1, FEB_28
        )
        assert row.account_code == "1102"
        assert row.ending_balance == Decimal("0")
        assert row.lines == ()

    def test_foreign_account_rejected(self, books, ledger_selector, standard_accounts):
        with pytest.raises(AccountNotFoundError):
            ledger_selector.general_ledger(
                uuid4(), JAN_1, FEB_28, account_id=standard_accounts["cash"].id
            )


class TestVoidInReports:

    def test_void_nets_to_zero_once_in_range(self, post_entry, poster, ledger_selector, company_id, test_actor_id):
        sale = post_entry("500", date(2025, 2, 5), "cash", "revenue")
        # Compensating batch lands on the clock date, 2026-01-01
        poster.void(sale.batch_id, test_actor_id, "keyed twice")

        through_void = ledger_selector.trial_balance(company_id, JAN_1, date(2026, 12, 31))
        for row in through_void.rows:
            assert row.total_debit == Decimal("500")
            assert row.balance == Decimal("0")

        before_void = ledger_selector.trial_balance(company_id, JAN_1, date(2025, 12, 31))
        assert _by_code(before_void.rows)["1101"].balance == Decimal("500")


# ---------------------------------------------------------------------------
# Worksheet
# ---------------------------------------------------------------------------


class TestWorksheet:

    def test_columns_and_net_profit(self, books, ledger_selector, company_id):
        sheet = ledger_selector.worksheet(company_id, JAN_1, FEB_28)
        rows = _by_code(sheet.rows)

        assert rows["1101"].bs_debit == Decimal("1300")
        assert rows["3000"].bs_credit == Decimal("1000")
        assert rows["3000"].ending_balance == Decimal("1000")
        assert rows["4000"].report_group == ReportGroup.PROFIT_LOSS
        assert rows["4000"].pl_credit == Decimal("500")
        assert rows["6200"].pl_debit == Decimal("200")

        summary = sheet.summary
        assert summary.net_profit == Decimal("300")
        assert summary.bs_debit - summary.bs_credit == summary.pl_credit - summary.pl_debit
        assert summary.ending_debit == summary.ending_credit

    def test_opening_rolls_into_ending(self, books, ledger_selector, company_id):
        rows = _by_code(ledger_selector.worksheet(company_id, FEB_1, FEB_28).rows)
        cash = rows["1101"]
        assert cash.opening_debit == Decimal("1000")
        assert cash.period_debit == Decimal("500")
        assert cash.total_debit == Decimal("1500")
        assert cash.ending_debit == Decimal("1300")
        assert cash.ending_credit == Decimal("0")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------


class TestParameterValidation:

    @pytest.mark.parametrize("round_to", [-1, 7])
    def test_round_out_of_range(self, ledger_selector, company_id, round_to):
        with pytest.raises(ReportParameterError):
            ledger_selector.trial_balance(company_id, JAN_1, JAN_31, round_to=round_to)

    @pytest.mark.parametrize("line_limit", [0, 501])
    def test_line_limit_out_of_range(self, ledger_selector, company_id, line_limit):
        with pytest.raises(ReportParameterError):
            ledger_selector.general_ledger(company_id, JAN_1, JAN_31, line_limit=line_limit)

    def test_negative_offset(self, ledger_selector, company_id):
        with pytest.raises(ReportParameterError):
            ledger_selector.general_ledger(company_id, JAN_1, JAN_31, line_offset=-1)

    def test_inverted_range(self, ledger_selector, company_id):
        with pytest.raises(ReportParameterError) as exc_info:
            ledger_selector.worksheet(company_id, FEB_1, JAN_1)
        assert exc_info.value.category == "VALIDATION"


# ---------------------------------------------------------------------------
# Properties over random books
# ---------------------------------------------------------------------------

LEAF_KEYS = [
    "cash", "qris", "card", "ar", "equipment", "accum_depr",
    "tax_payable", "equity", "revenue", "depr_expense", "rent_expense",
]

random_entries = st.lists(
    st.tuples(
        st.decimals(
            min_value=Decimal("0.01"),
            max_value=Decimal("9999999.99"),
            places=2,
            allow_nan=False,
            allow_infinity=False,
        ),
        st.integers(min_value=0, max_value=364),
        st.sampled_from(LEAF_KEYS),
        st.sampled_from(LEAF_KEYS),
        st.sampled_from([None, "a", "b"]),
    ),
    min_size=1,
    max_size=6,
)


class TestReportProperties:
    """Books accumulate across examples; the invariants hold for any state."""

    @given(entries=random_entries, window=st.tuples(st.integers(0, 364), st.integers(0, 364)))
    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_reports_stay_balanced(
        self, post_entry, ledger_selector, outlets, company_id, entries, window
    ):
        for amount, day, debit, credit, outlet in entries:
            post_entry(
                str(amount),
                JAN_1 + timedelta(days=day),
                debit,
                credit,
                outlets[outlet] if outlet else None,
            )

        start = JAN_1 + timedelta(days=min(window))
        end = JAN_1 + timedelta(days=max(window))
        for scope in (None, [outlets["a"]], [outlets["b"]]):
            tb = ledger_selector.trial_balance(company_id, start, end, outlet_ids=scope)
            assert tb.totals.total_debit == tb.totals.total_credit

            for row in ledger_selector.general_ledger(company_id, start, end, outlet_ids=scope):
                sign = 1 if row.normal_balance == NormalBalance.DEBIT else -1
                assert row.ending_balance == (
                    row.opening_balance + (row.period_debit - row.period_credit) * sign
                )

            summary = ledger_selector.worksheet(company_id, start, end, outlet_ids=scope).summary
            assert summary.bs_debit - summary.bs_credit == summary.pl_credit - summary.pl_debit
