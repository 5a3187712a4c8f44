"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy model is imported so that
``Base.metadata`` contains its table before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``ledger_kernel.db.engine.create_tables`` and ``drop_tables``; the kernel
never imports module code at import time.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Kernel tables come first because module tables carry foreign keys to
    ``accounts`` and ``journal_batches``.  Idempotent.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.assets.orm  # noqa: F401
    import ledger_modules.gl.orm  # noqa: F401
    import ledger_modules.sales.orm  # noqa: F401
