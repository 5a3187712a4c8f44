"""
Ledger modules -- document-level services built on the ledger kernel.

    assets  Fixed assets, depreciation plans, and period runs.
    sales   Sales invoices, payments, and outlet account mappings.
    gl      Manual journal entries.

Each module owns its own tables (``orm.py``), frozen domain records
(``models.py``), and a service that owns the transaction boundary and hands
balanced ``PostingRequest`` objects to ``JournalPoster``.
"""
