"""
Depreciation Helpers (``ledger_modules.assets.helpers``).

Responsibility
--------------
Pure calculation functions for monthly depreciation: straight-line,
declining balance, and sum-of-the-years'-digits, plus the period
arithmetic the depreciation service needs (period index, last day of a
month) and a full schedule projection.

Architecture position
---------------------
**Modules layer** -- pure helper functions.  No I/O, no session, no
clock, no database access.  Called by ``DepreciationService`` or from
tests.

Invariants enforced
-------------------
* All numeric inputs and outputs use ``Decimal`` -- NEVER ``float``.
* Every amount is rounded through ``round_money`` (ROUND_HALF_UP).
* ``period_amount`` never takes the book value below salvage, whatever
  order periods are run in, and the run that closes the last open period
  brings it exactly to salvage, so the amounts of a complete schedule sum
  to ``cost - salvage``.

Failure modes
-------------
* Zero or negative useful life  -> amount is ``Decimal("0")``.
* Period outside the useful life  -> amount is ``Decimal("0")``.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_kernel.db.types import ZERO, round_money
from ledger_modules.assets.models import DepreciationMethod


@dataclass(frozen=True)
class ScheduleLine:
    """One projected period of a depreciation schedule."""

    period_index: int
    period_year: int
    period_month: int
    amount: Decimal
    accumulated: Decimal
    book_value: Decimal


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def period_index(start_date: date, year: int, month: int) -> int:
    """
    1-based position of ``(year, month)`` in a plan starting ``start_date``.

    The start month is period 1 regardless of the start day.  Periods
    before the start month yield values below 1.
    """
    return (year * 12 + month) - (start_date.year * 12 + start_date.month) + 1


def straight_line(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_months: int,
    decimal_places: int = 2,
) -> Decimal:
    """
    Monthly straight-line depreciation: ``(cost - salvage) / months``.

    Postconditions:
        - Returns the same amount for every period of the useful life.
        - Returns ``Decimal("0")`` if ``useful_life_months`` <= 0.
    """
    if useful_life_months <= 0:
        return ZERO
    return round_money((cost - salvage_value) / useful_life_months, decimal_places)


def declining_balance(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_months: int,
    accumulated: Decimal,
    decimal_places: int = 2,
) -> Decimal:
    """
    Monthly double-declining-balance depreciation.

    The monthly rate is ``2 / useful_life_months`` applied to the current
    book value (``cost - accumulated``).  The result is capped so the book
    value never drops below ``salvage_value``.
    """
    if useful_life_months <= 0:
        return ZERO
    book_value = cost - accumulated
    headroom = book_value - salvage_value
    if headroom <= 0:
        return ZERO
    rate = Decimal("2") / Decimal(useful_life_months)
    return min(round_money(book_value * rate, decimal_places), headroom)


def sum_of_years_digits(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_months: int,
    period: int,
    decimal_places: int = 2,
) -> Decimal:
    """
    Sum-of-the-years'-digits depreciation on a monthly basis.

    With ``n = useful_life_months`` the digits are the months themselves:
    period ``k`` receives ``(cost - salvage) * (n - k + 1) / (n(n+1)/2)``.
    """
    if useful_life_months <= 0 or period < 1 or period > useful_life_months:
        return ZERO
    n = useful_life_months
    digits_total = Decimal(n * (n + 1)) / 2
    remaining_life = Decimal(n - period + 1)
    return round_money(
        (cost - salvage_value) * remaining_life / digits_total, decimal_places
    )


def period_amount(
    method: DepreciationMethod | str,
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_months: int,
    period: int,
    accumulated: Decimal = ZERO,
    decimal_places: int = 2,
    posted_total: Decimal | None = None,
    completes_life: bool | None = None,
) -> Decimal:
    """
    Depreciation for one period of a plan.

    ``accumulated`` is the total of non-VOID runs for earlier periods and
    drives the declining-balance book value.  ``posted_total`` is the total
    of every non-VOID run of the plan, whichever period it belongs to; the
    amount never exceeds ``cost - salvage - posted_total``.  The run that
    fills the last open period of the useful life (``completes_life``) takes
    exactly that remainder, absorbing rounding differences.

    Both default to running in period order: ``posted_total`` to
    ``accumulated`` and ``completes_life`` to the final period.
    """
    if posted_total is None:
        posted_total = accumulated
    if completes_life is None:
        completes_life = period == useful_life_months

    remaining = cost - salvage_value - posted_total
    if remaining <= 0 or period < 1 or period > useful_life_months:
        return ZERO
    if completes_life:
        return round_money(remaining, decimal_places)

    method = DepreciationMethod(method)
    if method is DepreciationMethod.STRAIGHT_LINE:
        amount = straight_line(cost, salvage_value, useful_life_months, decimal_places)
    elif method is DepreciationMethod.DECLINING_BALANCE:
        amount = declining_balance(
            cost, salvage_value, useful_life_months, accumulated, decimal_places
        )
    else:
        amount = sum_of_years_digits(
            cost, salvage_value, useful_life_months, period, decimal_places
        )
    return max(min(amount, remaining), ZERO)



def build_schedule(
    method: DepreciationMethod | str,
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_months: int,
    start_date: date,
    decimal_places: int = 2,
) -> list[ScheduleLine]:
    """Project every period of a plan, assuming each month is run in order."""
    schedule: list[ScheduleLine] = []
    accumulated = ZERO
    year, month = start_date.year, start_date.month
    for index in range(1, useful_life_months + 1):
        amount = period_amount(
            method,
            cost,
            salvage_value,
            useful_life_months,
            index,
            accumulated,
            decimal_places,
        )
        accumulated += amount
        schedule.append(
            ScheduleLine(
                period_index=index,
                period_year=year,
                period_month=month,
                amount=amount,
                accumulated=accumulated,
                book_value=cost - accumulated,
            )
        )
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return schedule
