"""
Fixtures for multi-connection concurrency tests.

These sessions perform real commits, so data isolation comes from TRUNCATE
at teardown instead of the rolled-back outer transaction.
"""

import threading

import pytest
from sqlalchemy import text

from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import get_session_factory, is_postgres


def _truncate_all_tables(engine):
    table_names = [t.name for t in reversed(Base.metadata.sorted_tables)]
    if table_names:
        with engine.connect() as conn:
            conn.execute(text("TRUNCATE " + ", ".join(table_names) + " CASCADE"))
            conn.commit()


@pytest.fixture(scope="function")
def pg_session_factory(db_engine, db_tables):
    """
    Session factory for worker threads; each thread opens its own session.

    On teardown, blocks new sessions, closes the tracked ones, and truncates
    every table.
    """
    if not is_postgres():
        pytest.skip("requires PostgreSQL (set DATABASE_URL)")

    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()
    closed = False

    def tracked_factory():
        with lock:
            if closed:
                raise RuntimeError("pg_session_factory closed (fixture teardown)")
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    with lock:
        closed = True
    for s in created_sessions:
        if s.is_active:
            s.rollback()
        s.close()
    _truncate_all_tables(db_engine)
