"""Kernel services: chart-of-accounts mutations and journal posting."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_poster import JournalPoster, PostingResult, PostingStatus

__all__ = [
    "AccountService",
    "JournalPoster",
    "PostingResult",
    "PostingStatus",
]
