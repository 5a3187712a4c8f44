"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only views of the chart of accounts -- single account
    lookup, filtered listing, and the nested account tree.
"""

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import func, or_, select

from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account, NormalBalance, ReportGroup
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AccountInfo:
    """Immutable snapshot of an account row."""

    id: UUID
    company_id: UUID
    code: str
    name: str
    parent_account_id: UUID | None
    is_group: bool
    account_type_id: UUID | None
    normal_balance: NormalBalance
    report_group: ReportGroup
    is_payable: bool
    is_active: bool

    @classmethod
    def from_model(cls, account: Account) -> "AccountInfo":
        return cls(
            id=account.id,
            company_id=account.company_id,
            code=account.code,
            name=account.name,
            parent_account_id=account.parent_account_id,
            is_group=account.is_group,
            account_type_id=account.account_type_id,
            normal_balance=NormalBalance(account.normal_balance),
            report_group=ReportGroup(account.report_group),
            is_payable=account.is_payable,
            is_active=account.is_active,
        )


@dataclass
class AccountNode:
    """An account with its children, for tree rendering."""

    account: AccountInfo
    children: list["AccountNode"] = field(default_factory=list)


class AccountSelector(BaseSelector[Account]):
    """Queries over ``accounts``.  Results are ordered by code."""

    def get_account(self, account_id: UUID, company_id: UUID | None = None) -> AccountInfo:
        account = self.session.get(Account, account_id)
        if account is None or (company_id is not None and account.company_id != company_id):
            raise AccountNotFoundError(str(account_id))
        return AccountInfo.from_model(account)

    def get_by_code(self, company_id: UUID, code: str) -> AccountInfo | None:
        account = self.session.execute(
            select(Account).where(Account.company_id == company_id, Account.code == code)
        ).scalar_one_or_none()
        return AccountInfo.from_model(account) if account is not None else None

    def list_accounts(
        self,
        company_id: UUID,
        is_active: bool | None = None,
        is_payable: bool | None = None,
        report_group: ReportGroup | str | None = None,
        parent_account_id: UUID | None = None,
        search: str | None = None,
    ) -> list[AccountInfo]:
        """
        List a company's accounts.

        ``search`` matches code or name, case-insensitively.
        """
        stmt = select(Account).where(Account.company_id == company_id)
        if is_active is not None:
            stmt = stmt.where(Account.is_active.is_(is_active))
        if is_payable is not None:
            stmt = stmt.where(Account.is_payable.is_(is_payable))
        if report_group is not None:
            stmt = stmt.where(Account.report_group == ReportGroup(report_group).value)
        if parent_account_id is not None:
            stmt = stmt.where(Account.parent_account_id == parent_account_id)
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Account.code).like(pattern),
                    func.lower(Account.name).like(pattern),
                )
            )
        stmt = stmt.order_by(Account.code)
        return [AccountInfo.from_model(a) for a in self.session.execute(stmt).scalars()]

    def get_account_tree(
        self,
        company_id: UUID,
        include_inactive: bool = False,
    ) -> list[AccountNode]:
        """
        Build the account hierarchy.

        An account whose parent is missing or filtered out (inactive) is
        placed at the root rather than dropped.
        """
        accounts = self.list_accounts(
            company_id, is_active=None if include_inactive else True
        )
        nodes = {a.id: AccountNode(account=a) for a in accounts}
        roots: list[AccountNode] = []
        for info in accounts:
            node = nodes[info.id]
            parent = nodes.get(info.parent_account_id) if info.parent_account_id else None
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots
