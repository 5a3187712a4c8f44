"""
Ledger Kernel

Double-entry ledger core for a multi-outlet back office:
- Chart of accounts with postability checks
- Atomic, idempotent posting of balanced journal batches
- Reversal by compensating batch
- General ledger, trial balance, and worksheet reports
"""

__version__ = "0.1.0"
