"""Manual journal entries (doc_type ``MANUAL``)."""

from ledger_modules.gl.models import ManualJournal, ManualJournalLine
from ledger_modules.gl.service import ManualJournalService

__all__ = ["ManualJournal", "ManualJournalLine", "ManualJournalService"]
