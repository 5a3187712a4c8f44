"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique per company (uq_accounts_company_code).
    - Only leaf (is_group = false), active accounts receive postings
      (checked by AccountService.assert_postable inside the posting
      transaction, not by this model).
    - Accounts are never hard-deleted while referenced; they are
      deactivated instead.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class NormalBalance(str, Enum):
    """Side on which an account naturally increases."""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class ReportGroup(str, Enum):
    """Financial statement an account closes into."""

    BALANCE_SHEET = "BALANCE_SHEET"
    PROFIT_LOSS = "PROFIT_LOSS"


class Account(TrackedBase):
    """
    Chart of Accounts entry -- one node of a company's account tree.

    Contract:
        (company_id, code) is unique.  code does not change after creation.
        parent_account_id forms a tree; AccountService rejects cycles.

    Non-goals:
        - Does NOT check postability itself; see AccountService.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_accounts_company_code"),
        Index("idx_accounts_company_active", "company_id", "is_active"),
        Index("idx_accounts_parent", "parent_account_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    parent_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # Group accounts only aggregate children
    is_group: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    account_type_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    normal_balance: Mapped[NormalBalance] = mapped_column(
        String(10),
        nullable=False,
    )

    report_group: Mapped[ReportGroup] = mapped_column(
        String(20),
        nullable=False,
    )

    is_payable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return NormalBalance(self.normal_balance) == NormalBalance.DEBIT

    @property
    def balance_sign(self) -> int:
        """+1 for debit-normal accounts, -1 for credit-normal."""
        return 1 if self.is_debit_normal else -1

    @property
    def is_postable(self) -> bool:
        return self.is_active and not self.is_group
