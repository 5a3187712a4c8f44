"""
Depreciation Module Service (``ledger_modules.assets.service``).

Responsibility
--------------
Orchestrates fixed assets, depreciation plans, and monthly depreciation
runs.  Pure amount computation is delegated to ``helpers``; journal
persistence to ``ledger_kernel.services.journal_poster``.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``DepreciationService`` is the sole
public entry point for depreciation.  It composes the kernel
``JournalPoster`` (``auto_commit=False``) and ``AccountService``.

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` and re-raise on exception).
* Only ACTIVE plans accept runs; at most one ACTIVE plan per asset.
* ``run_period`` is idempotent per ``(plan_id, year, month)``: the second
  call returns ``duplicate=True`` with the stored run.  The partial unique
  index on ``depreciation_runs`` settles concurrent first calls.
* The run row and its journal batch are written in one transaction.
* Non-VOID runs of a plan never total more than ``cost - salvage``, in
  whatever order periods are run; a skipped month stays open until it is
  run, and the run that closes the last open period takes the remainder.

Failure modes
-------------
* ``PlanNotFoundError``, ``RunNotFoundError``, ``DocumentNotFoundError``
  (asset) -- NOT_FOUND.
* ``PlanNotActiveError``, ``ActivePlanExistsError``,
  ``PlanHasPostedRunsError``, ``DocumentVoidError`` -- CONFLICT.
* ``InvalidPeriodError``, ``InvalidPlanAmountsError`` -- VALIDATION.
* Posting errors (inactive account, ...) propagate unchanged after
  rollback.

Usage::

    service = DepreciationService(session, clock=clock)
    result = service.run_period(plan_id, 2026, 1, actor_id=actor_id)
    if result.duplicate:
        ...
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_settings
from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import PostingLine, PostingRequest
from ledger_kernel.exceptions import (
    ActivePlanExistsError,
    DocumentNotFoundError,
    DocumentVoidError,
    InvalidPeriodError,
    InvalidPlanAmountsError,
    PlanHasPostedRunsError,
    PlanNotActiveError,
    PlanNotFoundError,
    RunNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_poster import JournalPoster
from ledger_modules._posting_helpers import period_label, posting_timestamp
from ledger_modules.assets.helpers import (
    ScheduleLine,
    build_schedule,
    last_day_of_month,
    period_amount,
    period_index,
)
from ledger_modules.assets.models import (
    DepreciationMethod,
    DepreciationPlan,
    DepreciationRun,
    DepreciationRunResult,
    FixedAsset,
    PlanStatus,
    RunStatus,
)
from ledger_modules.assets.orm import (
    DepreciationPlanModel,
    DepreciationRunModel,
    FixedAssetModel,
)

logger = get_logger("modules.assets.service")

DOC_TYPE = "DEPRECIATION_RUN"
ASSET_DOC_TYPE = "FIXED_ASSET"
PLAN_DOC_TYPE = "DEPRECIATION_PLAN"


def _period_key():
    """``year * 12 + month`` of a run, ordered across year ends."""
    return DepreciationRunModel.period_year * 12 + DepreciationRunModel.period_month


class DepreciationService:
    """
    Depreciation plans and period runs.

    Contract
    --------
    * ``run_period`` returns ``DepreciationRunResult``; a duplicate is a
      successful result, never an exception.
    * Plan and asset methods return frozen domain records.

    Guarantees
    ----------
    * Run rows and journal writes share a single transaction
      (``JournalPoster`` runs with ``auto_commit=False``).
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT schedule runs; callers decide which periods to run.
    * Does NOT track disposals or revaluations.
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
        self._accounts = AccountService(session)

        # Kernel posting (auto_commit=False -- we own the boundary)
        self._poster = JournalPoster(
            session,
            clock=self._clock,
            settings=self._settings,
            auto_commit=False,
        )

    # =========================================================================
    # Assets
    # =========================================================================

    def create_asset(
        self,
        company_id: UUID,
        name: str,
        actor_id: UUID,
        purchase_date: date | None = None,
        purchase_cost: Decimal | None = None,
        outlet_id: UUID | None = None,
    ) -> FixedAsset:
        """Register an asset that plans can be attached to."""
        try:
            if purchase_cost is not None and to_decimal(purchase_cost) < 0:
                raise InvalidPlanAmountsError("purchase cost must be non-negative")
            asset = FixedAssetModel(
                company_id=company_id,
                outlet_id=outlet_id,
                name=name,
                purchase_date=purchase_date,
                purchase_cost=(
                    to_decimal(purchase_cost) if purchase_cost is not None else None
                ),
                created_by_id=actor_id,
            )
            self._session.add(asset)
            self._session.flush()
            logger.info(
                "fixed_asset_created",
                extra={"asset_id": str(asset.id), "company_id": str(company_id)},
            )
            self._session.commit()
            return asset.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def get_asset(self, asset_id: UUID) -> FixedAsset:
        return self._load_asset(asset_id).to_dto()

    # =========================================================================
    # Plans
    # =========================================================================

    def create_plan(
        self,
        asset_id: UUID,
        method: DepreciationMethod | str,
        useful_life_months: int,
        expense_account_id: UUID,
        accum_depr_account_id: UUID,
        actor_id: UUID,
        salvage_value: Decimal = ZERO,
        purchase_cost_snapshot: Decimal | None = None,
        start_date: date | None = None,
    ) -> DepreciationPlan:
        """
        Create a DRAFT plan for an asset.

        ``start_date`` defaults to the asset's purchase date and
        ``purchase_cost_snapshot`` to its purchase cost.  Both accounts must
        be postable now; they are checked again when each run posts.
        """
        try:
            logger.info(
                "depreciation_plan_create_started",
                extra={"asset_id": str(asset_id), "method": DepreciationMethod(method).value},
            )
            asset = self._load_asset(asset_id)

            cost = (
                to_decimal(purchase_cost_snapshot)
                if purchase_cost_snapshot is not None
                else asset.purchase_cost
            )
            if cost is None:
                raise InvalidPlanAmountsError("purchase cost snapshot is required")
            start = start_date or asset.purchase_date
            if start is None:
                raise InvalidPlanAmountsError("start date is required")
            salvage = to_decimal(salvage_value)
            self._validate_amounts(cost, salvage, useful_life_months)

            self._accounts.assert_postable(expense_account_id, asset.company_id)
            self._accounts.assert_postable(accum_depr_account_id, asset.company_id)

            plan = DepreciationPlanModel(
                company_id=asset.company_id,
                asset_id=asset.id,
                outlet_id=asset.outlet_id,
                method=DepreciationMethod(method).value,
                start_date=start,
                useful_life_months=useful_life_months,
                salvage_value=salvage,
                purchase_cost_snapshot=cost,
                expense_account_id=expense_account_id,
                accum_depr_account_id=accum_depr_account_id,
                status=PlanStatus.DRAFT.value,
                created_by_id=actor_id,
            )
            self._session.add(plan)
            self._session.flush()

            logger.info(
                "depreciation_plan_created",
                extra={
                    "plan_id": str(plan.id),
                    "asset_id": str(asset_id),
                    "useful_life_months": useful_life_months,
                    "cost": str(cost),
                    "salvage": str(salvage),
                },
            )
            self._session.commit()
            return plan.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def update_plan(
        self,
        plan_id: UUID,
        actor_id: UUID,
        method: DepreciationMethod | str | None = None,
        useful_life_months: int | None = None,
        salvage_value: Decimal | None = None,
        purchase_cost_snapshot: Decimal | None = None,
        start_date: date | None = None,
        expense_account_id: UUID | None = None,
        accum_depr_account_id: UUID | None = None,
    ) -> DepreciationPlan:
        """
        Change plan terms.

        Allowed while the plan has no POSTED runs.  Once a run is posted the
        only remaining change is ``void_plan``.
        """
        try:
            plan = self._load_plan(plan_id, for_update=True)
            if plan.status == PlanStatus.VOID.value:
                raise DocumentVoidError(PLAN_DOC_TYPE, str(plan_id))
            if self._has_posted_runs(plan.id):
                raise PlanHasPostedRunsError(str(plan_id))

            cost = (
                to_decimal(purchase_cost_snapshot)
                if purchase_cost_snapshot is not None
                else plan.purchase_cost_snapshot
            )
            salvage = (
                to_decimal(salvage_value) if salvage_value is not None else plan.salvage_value
            )
            months = (
                useful_life_months
                if useful_life_months is not None
                else plan.useful_life_months
            )
            self._validate_amounts(cost, salvage, months)

            if expense_account_id is not None:
                self._accounts.assert_postable(expense_account_id, plan.company_id)
                plan.expense_account_id = expense_account_id
            if accum_depr_account_id is not None:
                self._accounts.assert_postable(accum_depr_account_id, plan.company_id)
                plan.accum_depr_account_id = accum_depr_account_id
            if method is not None:
                plan.method = DepreciationMethod(method).value
            if start_date is not None:
                plan.start_date = start_date
            plan.purchase_cost_snapshot = cost
            plan.salvage_value = salvage
            plan.useful_life_months = months
            plan.updated_by_id = actor_id
            self._session.flush()

            logger.info("depreciation_plan_updated", extra={"plan_id": str(plan_id)})
            self._session.commit()
            return plan.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def activate_plan(self, plan_id: UUID, actor_id: UUID) -> DepreciationPlan:
        """DRAFT -> ACTIVE.  Activating an ACTIVE plan is a no-op."""
        try:
            plan = self._load_plan(plan_id, for_update=True)
            if plan.status == PlanStatus.VOID.value:
                raise DocumentVoidError(PLAN_DOC_TYPE, str(plan_id))
            if plan.status == PlanStatus.ACTIVE.value:
                self._session.commit()
                return plan.to_dto()

            if self._other_active_plan(plan) is not None:
                raise ActivePlanExistsError(str(plan.asset_id))

            try:
                with self._session.begin_nested():
                    plan.status = PlanStatus.ACTIVE.value
                    plan.updated_by_id = actor_id
                    self._session.flush()
            except IntegrityError as exc:
                raise ActivePlanExistsError(str(plan.asset_id)) from exc

            logger.info(
                "depreciation_plan_activated",
                extra={"plan_id": str(plan_id), "asset_id": str(plan.asset_id)},
            )
            self._session.commit()
            return plan.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def void_plan(self, plan_id: UUID, actor_id: UUID) -> DepreciationPlan:
        """
        Move a plan to VOID (terminal).  No further runs are accepted.

        Runs already posted stay in the ledger; void them individually with
        ``void_run`` to reverse their batches.
        """
        try:
            plan = self._load_plan(plan_id, for_update=True)
            if plan.status != PlanStatus.VOID.value:
                plan.status = PlanStatus.VOID.value
                plan.updated_by_id = actor_id
                self._session.flush()
                logger.info("depreciation_plan_voided", extra={"plan_id": str(plan_id)})
            self._session.commit()
            return plan.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def get_plan(self, plan_id: UUID) -> DepreciationPlan:
        return self._load_plan(plan_id).to_dto()

    def get_latest_plan(self, asset_id: UUID) -> DepreciationPlan | None:
        """Most recently created non-VOID plan for the asset."""
        plan = self._session.execute(
            select(DepreciationPlanModel)
            .where(
                DepreciationPlanModel.asset_id == asset_id,
                DepreciationPlanModel.status != PlanStatus.VOID.value,
            )
            .order_by(
                DepreciationPlanModel.created_at.desc(),
                DepreciationPlanModel.id.desc(),
            )
            .limit(1)
        ).scalar_one_or_none()
        return plan.to_dto() if plan is not None else None

    def project_schedule(self, plan_id: UUID) -> list[ScheduleLine]:
        """Full period-by-period schedule of a plan, as if every month runs."""
        plan = self._load_plan(plan_id)
        return build_schedule(
            plan.method,
            plan.purchase_cost_snapshot,
            plan.salvage_value,
            plan.useful_life_months,
            plan.start_date,
            self._settings.money_decimal_places,
        )

    # =========================================================================
    # Runs
    # =========================================================================

    def run_period(
        self,
        plan_id: UUID,
        year: int,
        month: int,
        actor_id: UUID,
        run_date: date | None = None,
    ) -> DepreciationRunResult:
        """
        Depreciate one month of a plan.

        Debits the expense account and credits accumulated depreciation for
        the period amount, posted at ``run_date`` (default: last day of the
        month).  A zero amount still records the run, without a batch.
        """
        with LogContext.bind(actor_id=actor_id):
            try:
                result = self._run_period(plan_id, year, month, actor_id, run_date)
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                logger.warning(
                    "depreciation_run_rolled_back",
                    extra={"plan_id": str(plan_id), "period": f"{year}-{month}"},
                    exc_info=True,
                )
                raise

    def void_run(self, run_id: UUID, actor_id: UUID, reason: str | None = None) -> DepreciationRun:
        """
        Reverse a run: its batch is voided through the posting engine and the
        run turns VOID, so the period can be run again.
        """
        try:
            run = self._session.execute(
                select(DepreciationRunModel)
                .where(DepreciationRunModel.id == run_id)
                .with_for_update()
            ).scalar_one_or_none()
            if run is None:
                raise RunNotFoundError(str(run_id))
            if run.status == RunStatus.VOID.value:
                raise DocumentVoidError(DOC_TYPE, str(run_id))

            if run.journal_batch_id is not None:
                self._poster.void(run.journal_batch_id, actor_id, reason)
            run.status = RunStatus.VOID.value
            run.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "depreciation_run_voided",
                extra={"run_id": str(run_id), "plan_id": str(run.plan_id)},
            )
            self._session.commit()
            return run.to_dto()
        except Exception:
            self._session.rollback()
            raise

    def list_runs(self, plan_id: UUID, include_void: bool = False) -> list[DepreciationRun]:
        stmt = select(DepreciationRunModel).where(DepreciationRunModel.plan_id == plan_id)
        if not include_void:
            stmt = stmt.where(DepreciationRunModel.status != RunStatus.VOID.value)
        stmt = stmt.order_by(
            DepreciationRunModel.period_year,
            DepreciationRunModel.period_month,
            DepreciationRunModel.created_at,
        )
        return [run.to_dto() for run in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Internals
    # =========================================================================

    def _run_period(
        self,
        plan_id: UUID,
        year: int,
        month: int,
        actor_id: UUID,
        run_date: date | None,
    ) -> DepreciationRunResult:
        logger.info(
            "depreciation_run_started",
            extra={"plan_id": str(plan_id), "year": year, "month": month},
        )
        if not 1 <= month <= 12:
            raise InvalidPeriodError(year, month, "month must be between 1 and 12")

        plan = self._load_plan(plan_id, for_update=True)
        if plan.status != PlanStatus.ACTIVE.value:
            raise PlanNotActiveError(str(plan_id), plan.status)

        index = period_index(plan.start_date, year, month)
        if index < 1:
            raise InvalidPeriodError(year, month, "period is before plan start date")

        existing = self._active_run(plan.id, year, month)
        if existing is not None:
            logger.info(
                "depreciation_run_duplicate",
                extra={"plan_id": str(plan_id), "run_id": str(existing.id)},
            )
            return DepreciationRunResult(duplicate=True, run=existing.to_dto())

        places = self._settings.money_decimal_places
        posted_total = self._run_total(plan.id)
        completes_life = (
            index <= plan.useful_life_months and self._open_periods(plan) == 1
        )
        amount = round_money(
            period_amount(
                plan.method,
                plan.purchase_cost_snapshot,
                plan.salvage_value,
                plan.useful_life_months,
                index,
                self._run_total(plan.id, before=(year, month)),
                places,
                posted_total=posted_total,
                completes_life=completes_life,
            ),
            places,
        )
        run_date = run_date or last_day_of_month(year, month)

        run = DepreciationRunModel(
            plan_id=plan.id,
            period_year=year,
            period_month=month,
            run_date=run_date,
            amount=amount,
            status=RunStatus.POSTED.value,
            created_by_id=actor_id,
        )
        try:
            with self._session.begin_nested():
                self._session.add(run)
                self._session.flush()
        except IntegrityError:
            # Lost the race to a concurrent run of the same period
            winner = self._active_run(plan.id, year, month)
            if winner is None:
                raise
            logger.info(
                "depreciation_run_duplicate",
                extra={"plan_id": str(plan_id), "run_id": str(winner.id)},
            )
            return DepreciationRunResult(duplicate=True, run=winner.to_dto())

        if amount > 0:
            label = period_label(year, month)
            posting = self._poster.post(
                PostingRequest(
                    company_id=plan.company_id,
                    outlet_id=plan.outlet_id,
                    doc_type=DOC_TYPE,
                    doc_id=run.id,
                    lines=(
                        PostingLine.dr(
                            plan.expense_account_id,
                            amount,
                            f"Depreciation for period {label}",
                        ),
                        PostingLine.cr(
                            plan.accum_depr_account_id,
                            amount,
                            f"Accumulated depreciation for period {label}",
                        ),
                    ),
                    actor_id=actor_id,
                    posted_at=posting_timestamp(run_date),
                )
            )
            run.journal_batch_id = posting.batch_id
            self._session.flush()

        logger.info(
            "depreciation_run_completed",
            extra={
                "plan_id": str(plan_id),
                "run_id": str(run.id),
                "period_index": index,
                "amount": str(amount),
                "accumulated": str(posted_total + amount),
            },
        )
        return DepreciationRunResult(duplicate=False, run=run.to_dto())

    def _validate_amounts(self, cost: Decimal, salvage: Decimal, months: int) -> None:
        if cost < 0:
            raise InvalidPlanAmountsError("purchase cost must be non-negative")
        if salvage < 0:
            raise InvalidPlanAmountsError("salvage value must be non-negative")
        if salvage > cost:
            raise InvalidPlanAmountsError("salvage value exceeds purchase cost")
        if months <= 0:
            raise InvalidPlanAmountsError("useful life must be at least one month")

    def _load_asset(self, asset_id: UUID) -> FixedAssetModel:
        asset = self._session.get(FixedAssetModel, asset_id)
        if asset is None:
            raise DocumentNotFoundError(ASSET_DOC_TYPE, str(asset_id))
        return asset

    def _load_plan(self, plan_id: UUID, for_update: bool = False) -> DepreciationPlanModel:
        stmt = select(DepreciationPlanModel).where(DepreciationPlanModel.id == plan_id)
        if for_update:
            stmt = stmt.with_for_update()
        plan = self._session.execute(stmt).scalar_one_or_none()
        if plan is None:
            raise PlanNotFoundError(str(plan_id))
        return plan

    def _other_active_plan(self, plan: DepreciationPlanModel) -> UUID | None:
        return self._session.execute(
            select(DepreciationPlanModel.id).where(
                DepreciationPlanModel.asset_id == plan.asset_id,
                DepreciationPlanModel.status == PlanStatus.ACTIVE.value,
                DepreciationPlanModel.id != plan.id,
            )
        ).scalar_one_or_none()

    def _active_run(self, plan_id: UUID, year: int, month: int) -> DepreciationRunModel | None:
        return self._session.execute(
            select(DepreciationRunModel).where(
                DepreciationRunModel.plan_id == plan_id,
                DepreciationRunModel.period_year == year,
                DepreciationRunModel.period_month == month,
                DepreciationRunModel.status != RunStatus.VOID.value,
            )
        ).scalar_one_or_none()

    def _run_total(self, plan_id: UUID, before: tuple[int, int] | None = None) -> Decimal:
        """Sum of non-VOID run amounts, optionally only for periods before ``before``."""
        stmt = select(func.sum(DepreciationRunModel.amount)).where(
            DepreciationRunModel.plan_id == plan_id,
            DepreciationRunModel.status != RunStatus.VOID.value,
        )
        if before is not None:
            year, month = before
            stmt = stmt.where(_period_key() < year * 12 + month)
        total = self._session.execute(stmt).scalar_one()
        return round_money(to_decimal(total), self._settings.money_decimal_places)

    def _open_periods(self, plan: DepreciationPlanModel) -> int:
        """Periods of the useful life without a non-VOID run."""
        first = plan.start_date.year * 12 + plan.start_date.month
        last = first + plan.useful_life_months - 1
        run_count = self._session.execute(
            select(func.count(DepreciationRunModel.id)).where(
                DepreciationRunModel.plan_id == plan.id,
                DepreciationRunModel.status != RunStatus.VOID.value,
                _period_key().between(first, last),
            )
        ).scalar_one()
        return plan.useful_life_months - run_count

    def _has_posted_runs(self, plan_id: UUID) -> bool:
        return (
            self._session.execute(
                select(DepreciationRunModel.id)
                .where(
                    DepreciationRunModel.plan_id == plan_id,
                    DepreciationRunModel.status == RunStatus.POSTED.value,
                )
                .limit(1)
            ).first()
            is not None
        )
