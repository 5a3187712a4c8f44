"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Report queries over journal lines -- trial balance, general
    ledger with running balances, and the P&L / balance-sheet worksheet.
    The ledger is a derived view; there are no stored balances anywhere.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Trial balance totals balance (total_debit == total_credit) for any
      date range and outlet scope, because every batch balances.
    - General ledger: ending_balance == opening_balance
      + (period_debit - period_credit) * sign(normal_balance).
    - Determinism: ledger lines are ordered by
      (posted_at, journal_batch_id, line_no), so running balances are
      reproducible across queries and pages.
    - Rounding happens once, on output.  Aggregation and running balances
      use unrounded Decimals, so displayed rows and totals never diverge
      through double rounding.

Scope rules:
    - Every committed batch counts, including VOID originals.  A void is
      expressed by the compensating batch, which keeps reports for dates
      before the void reproducible.
    - outlet_ids=None covers all outlets; an empty list yields no rows;
      otherwise lines for those outlets, plus company-wide lines when
      include_unassigned is true.
"""

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence, TypeVar
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_settings
from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.exceptions import AccountNotFoundError, ReportParameterError
from ledger_kernel.models.account import Account, NormalBalance, ReportGroup
from ledger_kernel.models.journal import JournalBatch, JournalLine
from ledger_kernel.selectors.base import BaseSelector

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Report DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: UUID
    account_code: str
    account_name: str
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class TrialBalanceTotals:
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class TrialBalance:
    rows: tuple[TrialBalanceRow, ...]
    totals: TrialBalanceTotals

    @property
    def is_balanced(self) -> bool:
        return self.totals.total_debit == self.totals.total_credit


@dataclass(frozen=True)
class LedgerLine:
    """One posting in the general ledger with its running balance."""

    line_id: UUID
    journal_batch_id: UUID
    line_no: int
    posted_at: datetime
    line_date: date
    doc_type: str
    doc_id: UUID
    outlet_id: UUID | None
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class GeneralLedgerRow:
    account_id: UUID
    account_code: str
    account_name: str
    normal_balance: NormalBalance
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    opening_balance: Decimal
    ending_balance: Decimal
    lines: tuple[LedgerLine, ...] = ()


@dataclass(frozen=True)
class WorksheetRow:
    account_id: UUID
    account_code: str
    account_name: str
    report_group: ReportGroup
    normal_balance: NormalBalance
    opening_debit: Decimal
    opening_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    total_debit: Decimal
    total_credit: Decimal
    balance: Decimal
    ending_balance: Decimal
    ending_debit: Decimal
    ending_credit: Decimal
    bs_debit: Decimal
    bs_credit: Decimal
    pl_debit: Decimal
    pl_credit: Decimal


@dataclass(frozen=True)
class WorksheetSummary:
    opening_debit: Decimal = ZERO
    opening_credit: Decimal = ZERO
    period_debit: Decimal = ZERO
    period_credit: Decimal = ZERO
    ending_debit: Decimal = ZERO
    ending_credit: Decimal = ZERO
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO
    balance: Decimal = ZERO
    bs_debit: Decimal = ZERO
    bs_credit: Decimal = ZERO
    pl_debit: Decimal = ZERO
    pl_credit: Decimal = ZERO

    @property
    def net_profit(self) -> Decimal:
        """Period profit (negative for a loss)."""
        return self.pl_credit - self.pl_debit


@dataclass(frozen=True)
class Worksheet:
    rows: tuple[WorksheetRow, ...]
    summary: WorksheetSummary = field(default_factory=WorksheetSummary)


def round_decimals(obj: T, places: int) -> T:
    """Return a copy of a report dataclass with every Decimal field rounded."""
    changes = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, Decimal):
            changes[f.name] = round_money(value, places)
    return replace(obj, **changes)


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------


class LedgerSelector(BaseSelector[JournalLine]):
    """
    Ledger query engine.

    Contract:
        All methods are read-only and side-effect-free.  ``round_to`` (0-6,
        default from settings) applies only to the returned values.
    """

    def __init__(self, session: Session, settings: LedgerSettings | None = None):
        super().__init__(session)
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Trial balance
    # ------------------------------------------------------------------

    def trial_balance(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        outlet_ids: Sequence[UUID] | None = None,
        include_unassigned: bool = True,
        as_of: date | datetime | None = None,
        round_to: int | None = None,
    ) -> TrialBalance:
        """
        Per-account debit/credit totals for lines dated in
        ``[date_from, as_of or date_to]``, ordered by account code.
        """
        places = self._check_round(round_to)
        end = self._resolve_end(date_to, as_of)
        self._check_range(date_from, end)
        if outlet_ids is not None and len(outlet_ids) == 0:
            return TrialBalance(rows=(), totals=TrialBalanceTotals(ZERO, ZERO, ZERO))

        total_debit = func.coalesce(func.sum(JournalLine.debit), 0)
        total_credit = func.coalesce(func.sum(JournalLine.credit), 0)
        stmt = (
            select(Account.id, Account.code, Account.name, total_debit, total_credit)
            .join(Account, Account.id == JournalLine.account_id)
            .where(
                JournalLine.company_id == company_id,
                JournalLine.line_date >= date_from,
                JournalLine.line_date <= end,
            )
            .group_by(Account.id, Account.code, Account.name)
            .order_by(Account.code)
        )
        stmt = self._scope_outlets(stmt, outlet_ids, include_unassigned)

        rows: list[TrialBalanceRow] = []
        sum_debit = ZERO
        sum_credit = ZERO
        for account_id, code, name, debit, credit in self.session.execute(stmt):
            debit = to_decimal(debit)
            credit = to_decimal(credit)
            sum_debit += debit
            sum_credit += credit
            rows.append(
                TrialBalanceRow(
                    account_id=account_id,
                    account_code=code,
                    account_name=name,
                    total_debit=debit,
                    total_credit=credit,
                    balance=debit - credit,
                )
            )

        totals = TrialBalanceTotals(sum_debit, sum_credit, sum_debit - sum_credit)
        return TrialBalance(
            rows=tuple(round_decimals(r, places) for r in rows),
            totals=round_decimals(totals, places),
        )

    # ------------------------------------------------------------------
    # General ledger
    # ------------------------------------------------------------------

    def general_ledger(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        account_id: UUID | None = None,
        outlet_ids: Sequence[UUID] | None = None,
        include_unassigned: bool = True,
        round_to: int | None = None,
        line_limit: int | None = None,
        line_offset: int = 0,
    ) -> list[GeneralLedgerRow]:
        """
        Opening, period, and ending balances per account.

        With ``account_id`` the result is that account's single row and its
        lines are paged chronologically; ``len(lines) == line_limit`` means
        another page may exist.  Without it, one row per account with any
        activity up to ``date_to`` and no lines.
        """
        places = self._check_round(round_to)
        self._check_range(date_from, date_to)
        limit = self._check_line_limit(line_limit)
        if line_offset < 0:
            raise ReportParameterError("line_offset", line_offset, "must be >= 0")

        if account_id is not None:
            account = self.session.get(Account, account_id)
            if account is None or account.company_id != company_id:
                raise AccountNotFoundError(str(account_id))

        if outlet_ids is not None and len(outlet_ids) == 0:
            return []

        totals = self._account_totals(
            company_id, date_from, date_to, outlet_ids, include_unassigned, account_id
        )

        if account_id is not None and not totals:
            totals = [(account, ZERO, ZERO, ZERO, ZERO)]

        rows: list[GeneralLedgerRow] = []
        for account, opening_debit, opening_credit, period_debit, period_credit in totals:
            sign = account.balance_sign
            opening_balance = (opening_debit - opening_credit) * sign
            ending_balance = opening_balance + (period_debit - period_credit) * sign

            lines: tuple[LedgerLine, ...] = ()
            if account_id is not None:
                lines = self._ledger_lines(
                    account,
                    date_from,
                    date_to,
                    outlet_ids,
                    include_unassigned,
                    opening_balance,
                    limit,
                    line_offset,
                )

            row = GeneralLedgerRow(
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                normal_balance=NormalBalance(account.normal_balance),
                opening_debit=opening_debit,
                opening_credit=opening_credit,
                period_debit=period_debit,
                period_credit=period_credit,
                opening_balance=opening_balance,
                ending_balance=ending_balance,
                lines=tuple(round_decimals(line, places) for line in lines),
            )
            rows.append(round_decimals(row, places))
        return rows

    def account_ledger(
        self,
        company_id: UUID,
        account_id: UUID,
        date_from: date,
        date_to: date,
        **kwargs,
    ) -> GeneralLedgerRow:
        """Single-account general ledger; see ``general_ledger``."""
        rows = self.general_ledger(
            company_id, date_from, date_to, account_id=account_id, **kwargs
        )
        if not rows:
            account = self.session.get(Account, account_id)
            return GeneralLedgerRow(
                account_id=account.id,
                account_code=account.code,
                account_name=account.name,
                normal_balance=NormalBalance(account.normal_balance),
                opening_debit=ZERO,
                opening_credit=ZERO,
                period_debit=ZERO,
                period_credit=ZERO,
                opening_balance=ZERO,
                ending_balance=ZERO,
            )
        return rows[0]

    # ------------------------------------------------------------------
    # Worksheet
    # ------------------------------------------------------------------

    def worksheet(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        outlet_ids: Sequence[UUID] | None = None,
        include_unassigned: bool = True,
        round_to: int | None = None,
    ) -> Worksheet:
        """
        Trial balance split into balance-sheet and profit/loss columns.

        Each account's ending net (opening + period, debit-positive) is
        placed in bs_* or pl_* by its report_group.  With balanced books,
        ``bs_debit - bs_credit == pl_credit - pl_debit``: the balance sheet's
        net debit equals the period profit that closes into equity.
        """
        places = self._check_round(round_to)
        self._check_range(date_from, date_to)
        if outlet_ids is not None and len(outlet_ids) == 0:
            return Worksheet(rows=())

        totals = self._account_totals(
            company_id, date_from, date_to, outlet_ids, include_unassigned
        )

        rows: list[WorksheetRow] = []
        for account, opening_debit, opening_credit, period_debit, period_credit in totals:
            total_debit = opening_debit + period_debit
            total_credit = opening_credit + period_credit
            balance = total_debit - total_credit
            ending_debit = balance if balance > ZERO else ZERO
            ending_credit = -balance if balance < ZERO else ZERO
            is_bs = ReportGroup(account.report_group) == ReportGroup.BALANCE_SHEET
            rows.append(
                WorksheetRow(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    report_group=ReportGroup(account.report_group),
                    normal_balance=NormalBalance(account.normal_balance),
                    opening_debit=opening_debit,
                    opening_credit=opening_credit,
                    period_debit=period_debit,
                    period_credit=period_credit,
                    total_debit=total_debit,
                    total_credit=total_credit,
                    balance=balance,
                    ending_balance=balance * account.balance_sign,
                    ending_debit=ending_debit,
                    ending_credit=ending_credit,
                    bs_debit=ending_debit if is_bs else ZERO,
                    bs_credit=ending_credit if is_bs else ZERO,
                    pl_debit=ZERO if is_bs else ending_debit,
                    pl_credit=ZERO if is_bs else ending_credit,
                )
            )

        summary = WorksheetSummary(
            **{
                f.name: sum((getattr(r, f.name) for r in rows), ZERO)
                for f in fields(WorksheetSummary)
            }
        )
        return Worksheet(
            rows=tuple(round_decimals(r, places) for r in rows),
            summary=round_decimals(summary, places),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _account_totals(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        outlet_ids: Sequence[UUID] | None,
        include_unassigned: bool,
        account_id: UUID | None = None,
    ) -> list[tuple[Account, Decimal, Decimal, Decimal, Decimal]]:
        """Opening (before date_from) and period sums per account, by code."""
        before = JournalLine.line_date < date_from
        opening_debit = func.sum(case((before, JournalLine.debit), else_=ZERO))
        opening_credit = func.sum(case((before, JournalLine.credit), else_=ZERO))
        period_debit = func.sum(case((before, ZERO), else_=JournalLine.debit))
        period_credit = func.sum(case((before, ZERO), else_=JournalLine.credit))

        sums = (
            select(
                JournalLine.account_id.label("account_id"),
                opening_debit.label("opening_debit"),
                opening_credit.label("opening_credit"),
                period_debit.label("period_debit"),
                period_credit.label("period_credit"),
            )
            .where(
                JournalLine.company_id == company_id,
                JournalLine.line_date <= date_to,
            )
            .group_by(JournalLine.account_id)
        )
        if account_id is not None:
            sums = sums.where(JournalLine.account_id == account_id)
        sums = self._scope_outlets(sums, outlet_ids, include_unassigned).subquery()

        stmt = (
            select(
                Account,
                sums.c.opening_debit,
                sums.c.opening_credit,
                sums.c.period_debit,
                sums.c.period_credit,
            )
            .join(sums, sums.c.account_id == Account.id)
            .order_by(Account.code)
        )
        return [
            (account, to_decimal(od), to_decimal(oc), to_decimal(pd), to_decimal(pc))
            for account, od, oc, pd, pc in self.session.execute(stmt)
        ]

    def _ledger_lines(
        self,
        account: Account,
        date_from: date,
        date_to: date,
        outlet_ids: Sequence[UUID] | None,
        include_unassigned: bool,
        opening_balance: Decimal,
        limit: int,
        offset: int,
    ) -> list[LedgerLine]:
        base = (
            select(
                JournalLine.id,
                JournalLine.journal_batch_id,
                JournalLine.line_no,
                JournalBatch.posted_at,
                JournalLine.line_date,
                JournalBatch.doc_type,
                JournalBatch.doc_id,
                JournalLine.outlet_id,
                JournalLine.description,
                JournalLine.debit,
                JournalLine.credit,
            )
            .join(JournalBatch, JournalBatch.id == JournalLine.journal_batch_id)
            .where(
                JournalLine.company_id == account.company_id,
                JournalLine.account_id == account.id,
                JournalLine.line_date >= date_from,
                JournalLine.line_date <= date_to,
            )
            .order_by(
                JournalBatch.posted_at,
                JournalLine.journal_batch_id,
                JournalLine.line_no,
            )
        )
        base = self._scope_outlets(base, outlet_ids, include_unassigned)

        # Carry the running balance across pages
        running = opening_balance
        sign = account.balance_sign
        if offset > 0:
            skipped = base.limit(offset).subquery()
            prior_debit, prior_credit = self.session.execute(
                select(func.sum(skipped.c.debit), func.sum(skipped.c.credit))
            ).one()
            running += (to_decimal(prior_debit) - to_decimal(prior_credit)) * sign

        lines: list[LedgerLine] = []
        for row in self.session.execute(base.limit(limit).offset(offset)):
            debit = to_decimal(row.debit)
            credit = to_decimal(row.credit)
            running += (debit - credit) * sign
            lines.append(
                LedgerLine(
                    line_id=row.id,
                    journal_batch_id=row.journal_batch_id,
                    line_no=row.line_no,
                    posted_at=row.posted_at,
                    line_date=row.line_date,
                    doc_type=row.doc_type,
                    doc_id=row.doc_id,
                    outlet_id=row.outlet_id,
                    description=row.description,
                    debit=debit,
                    credit=credit,
                    balance=running,
                )
            )
        return lines

    @staticmethod
    def _scope_outlets(stmt, outlet_ids: Sequence[UUID] | None, include_unassigned: bool):
        if outlet_ids is None:
            return stmt
        ids = list(outlet_ids)
        if include_unassigned:
            return stmt.where(
                or_(JournalLine.outlet_id.is_(None), JournalLine.outlet_id.in_(ids))
            )
        return stmt.where(JournalLine.outlet_id.in_(ids))

    def _check_round(self, round_to: int | None) -> int:
        if round_to is None:
            return self._settings.report_round_default
        if not 0 <= round_to <= self._settings.report_round_max:
            raise ReportParameterError(
                "round", round_to, f"must be between 0 and {self._settings.report_round_max}"
            )
        return round_to

    def _check_line_limit(self, line_limit: int | None) -> int:
        if line_limit is None:
            return self._settings.line_limit_default
        if not 1 <= line_limit <= self._settings.line_limit_max:
            raise ReportParameterError(
                "line_limit", line_limit, f"must be between 1 and {self._settings.line_limit_max}"
            )
        return line_limit

    @staticmethod
    def _resolve_end(date_to: date, as_of: date | datetime | None) -> date:
        if as_of is None:
            return date_to
        if isinstance(as_of, datetime):
            return as_of.date()
        return as_of

    @staticmethod
    def _check_range(date_from: date, date_to: date) -> None:
        if date_from > date_to:
            raise ReportParameterError(
                "date_from", date_from.isoformat(), "must not be after date_to"
            )
