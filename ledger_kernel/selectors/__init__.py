"""Read-only selectors over the chart of accounts and the journal."""

from ledger_kernel.selectors.account_selector import AccountInfo, AccountNode, AccountSelector
from ledger_kernel.selectors.journal_selector import BatchSummary, BatchView, JournalSelector
from ledger_kernel.selectors.ledger_selector import (
    GeneralLedgerRow,
    LedgerSelector,
    TrialBalance,
    Worksheet,
)

__all__ = [
    "AccountInfo",
    "AccountNode",
    "AccountSelector",
    "BatchSummary",
    "BatchView",
    "JournalSelector",
    "GeneralLedgerRow",
    "LedgerSelector",
    "TrialBalance",
    "Worksheet",
]
