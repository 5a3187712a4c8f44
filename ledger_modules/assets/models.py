"""
Fixed Assets Domain Models.

The nouns of depreciation: assets, plans, and period runs.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class DepreciationMethod(str, Enum):
    """Supported depreciation methods."""
    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"
    SUM_OF_YEARS = "SUM_OF_YEARS"


class PlanStatus(str, Enum):
    """
    Plan lifecycle: DRAFT --activate--> ACTIVE --void--> VOID.

    A DRAFT plan may also be voided directly.  VOID is terminal.
    """
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    VOID = "VOID"


class RunStatus(str, Enum):
    POSTED = "POSTED"
    VOID = "VOID"


@dataclass(frozen=True)
class FixedAsset:
    """An asset that depreciation plans are attached to."""
    id: UUID
    company_id: UUID
    outlet_id: UUID | None
    name: str
    purchase_date: date | None
    purchase_cost: Decimal | None
    is_active: bool = True


@dataclass(frozen=True)
class DepreciationPlan:
    """How an asset depreciates and which accounts carry it."""
    id: UUID
    company_id: UUID
    asset_id: UUID
    outlet_id: UUID | None
    method: DepreciationMethod
    start_date: date
    useful_life_months: int
    salvage_value: Decimal
    purchase_cost_snapshot: Decimal
    expense_account_id: UUID
    accum_depr_account_id: UUID
    status: PlanStatus

    @property
    def depreciable_base(self) -> Decimal:
        return self.purchase_cost_snapshot - self.salvage_value


@dataclass(frozen=True)
class DepreciationRun:
    """One executed period of a plan."""
    id: UUID
    plan_id: UUID
    period_year: int
    period_month: int
    run_date: date
    amount: Decimal
    journal_batch_id: UUID | None
    status: RunStatus

    @property
    def period(self) -> str:
        return f"{self.period_year:04d}-{self.period_month:02d}"


@dataclass(frozen=True)
class DepreciationRunResult:
    """
    Result of ``DepreciationService.run_period``.

    ``duplicate`` is True when a non-VOID run already existed for the
    period; ``run`` is that existing run and nothing was posted.
    """
    duplicate: bool
    run: DepreciationRun
