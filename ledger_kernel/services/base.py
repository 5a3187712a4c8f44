"""
BaseService -- abstract base for kernel services.

Kernel services receive a SQLAlchemy ``Session`` from the caller and use
``session.flush()`` -- never ``session.commit()``.  The caller (a module
service, ``session_scope()``, or a test) owns commit and rollback so that
several kernel calls can share one atomic transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle.
        - Does NOT provide report queries; those live in ``selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
