"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account, NormalBalance, ReportGroup
from ledger_kernel.models.journal import JournalBatch, JournalBatchStatus, JournalLine

__all__ = [
    "Account",
    "NormalBalance",
    "ReportGroup",
    "JournalBatch",
    "JournalBatchStatus",
    "JournalLine",
]
