"""
Fixed Assets ORM Models (``ledger_modules.assets.orm``).

Responsibility
--------------
SQLAlchemy persistence models for fixed assets, depreciation plans, and
depreciation runs.  Maps frozen domain dataclasses from ``models.py`` to
database tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``ledger_kernel.db.base``
and sibling ``models.py``.  MUST NOT be imported by ``ledger_kernel``.

Invariants enforced
-------------------
* At most one ACTIVE plan per asset (partial unique index).
* At most one non-VOID run per ``(plan_id, period_year, period_month)``
  (partial unique index).  This index, not a read before write, is what
  makes ``run_period`` race-free.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.db.types import ZERO


# ---------------------------------------------------------------------------
# FixedAssetModel
# ---------------------------------------------------------------------------

class FixedAssetModel(TrackedBase):
    """
    ORM model for ``FixedAsset``.

    Table: ``fixed_assets``
    """

    __tablename__ = "fixed_assets"

    company_id: Mapped[UUID]
    outlet_id: Mapped[UUID | None]
    name: Mapped[str] = mapped_column(String(200))
    purchase_date: Mapped[date | None]
    purchase_cost: Mapped[Decimal | None]
    is_active: Mapped[bool] = mapped_column(default=True)

    __table_args__ = (
        Index("idx_fixed_assets_company_id", "company_id"),
    )

    def to_dto(self):
        from ledger_modules.assets.models import FixedAsset
        return FixedAsset(
            id=self.id,
            company_id=self.company_id,
            outlet_id=self.outlet_id,
            name=self.name,
            purchase_date=self.purchase_date,
            purchase_cost=self.purchase_cost,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<FixedAssetModel(id={self.id!r}, name={self.name!r})>"


# ---------------------------------------------------------------------------
# DepreciationPlanModel
# ---------------------------------------------------------------------------

class DepreciationPlanModel(TrackedBase):
    """
    ORM model for ``DepreciationPlan``.

    Table: ``depreciation_plans``
    """

    __tablename__ = "depreciation_plans"

    company_id: Mapped[UUID]
    asset_id: Mapped[UUID] = mapped_column(ForeignKey("fixed_assets.id"))
    outlet_id: Mapped[UUID | None]
    method: Mapped[str] = mapped_column(String(50))
    start_date: Mapped[date]
    useful_life_months: Mapped[int]
    salvage_value: Mapped[Decimal] = mapped_column(default=ZERO)
    purchase_cost_snapshot: Mapped[Decimal]
    expense_account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"))
    accum_depr_account_id: Mapped[UUID] = mapped_column(ForeignKey("accounts.id"))
    status: Mapped[str] = mapped_column(String(20), default="DRAFT")

    __table_args__ = (
        Index("idx_depreciation_plans_asset_id", "asset_id"),
        Index(
            "uq_depreciation_plans_active_asset",
            "asset_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    def to_dto(self):
        from ledger_modules.assets.models import (
            DepreciationMethod,
            DepreciationPlan,
            PlanStatus,
        )
        return DepreciationPlan(
            id=self.id,
            company_id=self.company_id,
            asset_id=self.asset_id,
            outlet_id=self.outlet_id,
            method=DepreciationMethod(self.method),
            start_date=self.start_date,
            useful_life_months=self.useful_life_months,
            salvage_value=self.salvage_value,
            purchase_cost_snapshot=self.purchase_cost_snapshot,
            expense_account_id=self.expense_account_id,
            accum_depr_account_id=self.accum_depr_account_id,
            status=PlanStatus(self.status),
        )

    def __repr__(self) -> str:
        return (
            f"<DepreciationPlanModel(id={self.id!r}, asset_id={self.asset_id!r}, "
            f"status={self.status!r})>"
        )


# ---------------------------------------------------------------------------
# DepreciationRunModel
# ---------------------------------------------------------------------------

class DepreciationRunModel(TrackedBase):
    """
    ORM model for ``DepreciationRun``.

    Table: ``depreciation_runs``
    """

    __tablename__ = "depreciation_runs"

    plan_id: Mapped[UUID] = mapped_column(ForeignKey("depreciation_plans.id"))
    period_year: Mapped[int]
    period_month: Mapped[int]
    run_date: Mapped[date]
    amount: Mapped[Decimal] = mapped_column(default=ZERO)
    journal_batch_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("journal_batches.id"), nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), default="POSTED")

    __table_args__ = (
        Index("idx_depreciation_runs_plan_id", "plan_id"),
        Index(
            "uq_depreciation_runs_plan_period",
            "plan_id",
            "period_year",
            "period_month",
            unique=True,
            postgresql_where=text("status <> 'VOID'"),
            sqlite_where=text("status <> 'VOID'"),
        ),
    )

    def to_dto(self):
        from ledger_modules.assets.models import DepreciationRun, RunStatus
        return DepreciationRun(
            id=self.id,
            plan_id=self.plan_id,
            period_year=self.period_year,
            period_month=self.period_month,
            run_date=self.run_date,
            amount=self.amount,
            journal_batch_id=self.journal_batch_id,
            status=RunStatus(self.status),
        )

    def __repr__(self) -> str:
        return (
            f"<DepreciationRunModel(plan_id={self.plan_id!r}, "
            f"period={self.period_year}-{self.period_month:02d}, "
            f"status={self.status!r})>"
        )
