"""
Fixed assets and depreciation.

Plans move DRAFT -> ACTIVE -> VOID; each ACTIVE plan is run one month at a
time, and every run posts a DEPRECIATION_RUN batch (debit expense, credit
accumulated depreciation).
"""

from ledger_modules.assets.models import (
    DepreciationMethod,
    DepreciationPlan,
    DepreciationRun,
    DepreciationRunResult,
    FixedAsset,
    PlanStatus,
    RunStatus,
)
from ledger_modules.assets.service import DepreciationService

__all__ = [
    "DepreciationMethod",
    "DepreciationPlan",
    "DepreciationRun",
    "DepreciationRunResult",
    "DepreciationService",
    "FixedAsset",
    "PlanStatus",
    "RunStatus",
]
