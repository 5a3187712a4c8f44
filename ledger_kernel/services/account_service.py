"""
AccountService -- chart-of-accounts mutations and postability checks.

Responsibility:
    The only write path for ``accounts``.  Creation enforces per-company code
    uniqueness and a valid parent; updates keep ``code`` fixed and reject
    cycles; deactivation is refused while the account is still referenced.

    ``resolve_account`` / ``assert_postable`` are the read contract the
    posting engine calls inside its own transaction, optionally taking a row
    lock so a concurrent deactivation cannot slip between check and insert.

Architecture position:
    Kernel > Services.  Flushes, never commits.

Failure modes:
    - AccountCodeExistsError on duplicate (company_id, code).
    - InvalidParentAccountError / CircularReferenceError on bad parents.
    - AccountInUseError when deactivating a referenced account.
    - AccountNotFoundError / GroupAccountError / InactiveAccountError from
      assert_postable.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.exceptions import (
    AccountCodeExistsError,
    AccountInUseError,
    AccountNotFoundError,
    CircularReferenceError,
    GroupAccountError,
    InactiveAccountError,
    InvalidParentAccountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, NormalBalance, ReportGroup
from ledger_kernel.models.journal import JournalBatch, JournalBatchStatus, JournalLine
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")

_UNSET = object()


class AccountService(BaseService[Account]):
    """
    Chart-of-accounts store.

    Guarantees:
        - Every mutation runs in the caller's transaction and is flushed, so
          unique-constraint violations surface immediately.
        - deactivate_account locks the row before checking usage.
    """

    # ------------------------------------------------------------------
    # Read contract
    # ------------------------------------------------------------------

    def resolve_account(
        self,
        account_id: UUID,
        company_id: UUID | None = None,
        for_update: bool = False,
    ) -> Account:
        """
        Load an account by id.

        An account belonging to another company is reported as not found.
        """
        stmt = select(Account).where(Account.id == account_id)
        if for_update:
            stmt = stmt.with_for_update()
        account = self.session.execute(stmt).scalar_one_or_none()
        if account is None or (company_id is not None and account.company_id != company_id):
            raise AccountNotFoundError(str(account_id))
        return account

    def assert_postable(
        self,
        account_id: UUID,
        company_id: UUID | None = None,
        for_update: bool = False,
    ) -> Account:
        """Raise unless the account exists, is a leaf, and is active."""
        account = self.resolve_account(account_id, company_id, for_update)
        if account.is_group:
            raise GroupAccountError(str(account_id))
        if not account.is_active:
            raise InactiveAccountError(str(account_id))
        return account

    def lock_postable_accounts(
        self,
        account_ids: Iterable[UUID],
        company_id: UUID,
    ) -> dict[UUID, Account]:
        """
        Lock and check every distinct account, in id order.

        A fixed lock order keeps two concurrent posts touching the same
        accounts from deadlocking.
        """
        resolved: dict[UUID, Account] = {}
        for account_id in sorted(set(account_ids), key=str):
            resolved[account_id] = self.assert_postable(
                account_id, company_id, for_update=True
            )
        return resolved

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_account(
        self,
        company_id: UUID,
        code: str,
        name: str,
        normal_balance: NormalBalance | str,
        report_group: ReportGroup | str,
        actor_id: UUID,
        parent_account_id: UUID | None = None,
        is_group: bool = False,
        is_payable: bool = False,
        account_type_id: UUID | None = None,
        is_active: bool = True,
    ) -> Account:
        code = code.strip()
        logger.info(
            "account_create_started",
            extra={"company_id": str(company_id), "code": code},
        )

        if self._code_exists(company_id, code):
            raise AccountCodeExistsError(str(company_id), code)

        if parent_account_id is not None:
            self._validate_parent(company_id, parent_account_id)

        account = Account(
            company_id=company_id,
            code=code,
            name=name,
            normal_balance=NormalBalance(normal_balance).value,
            report_group=ReportGroup(report_group).value,
            parent_account_id=parent_account_id,
            is_group=is_group,
            is_payable=is_payable,
            account_type_id=account_type_id,
            is_active=is_active,
            created_by_id=actor_id,
        )
        try:
            with self.session.begin_nested():
                self.session.add(account)
                self.session.flush()
        except IntegrityError as exc:
            # Concurrent create of the same code
            raise AccountCodeExistsError(str(company_id), code) from exc

        logger.info(
            "account_created",
            extra={"account_id": str(account.id), "code": code},
        )
        return account

    def update_account(
        self,
        account_id: UUID,
        company_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        parent_account_id: UUID | None | object = _UNSET,
        is_group: bool | None = None,
        is_payable: bool | None = None,
        report_group: ReportGroup | str | None = None,
        normal_balance: NormalBalance | str | None = None,
        account_type_id: UUID | None | object = _UNSET,
    ) -> Account:
        """
        Update mutable fields.  ``code`` is not updatable.

        ``parent_account_id=None`` detaches the account to the root; leaving
        it unset keeps the current parent.
        """
        account = self.resolve_account(account_id, company_id, for_update=True)

        if parent_account_id is not _UNSET:
            if parent_account_id is not None:
                self._validate_parent(company_id, parent_account_id, account_id)
            account.parent_account_id = parent_account_id
        if name is not None:
            account.name = name
        if is_group is not None:
            if is_group and not account.is_group and self._has_live_lines(account_id):
                raise AccountInUseError(str(account_id), "has posted journal lines")
            account.is_group = is_group
        if is_payable is not None:
            account.is_payable = is_payable
        if report_group is not None:
            account.report_group = ReportGroup(report_group).value
        if normal_balance is not None:
            account.normal_balance = NormalBalance(normal_balance).value
        if account_type_id is not _UNSET:
            account.account_type_id = account_type_id
        account.updated_by_id = actor_id

        self.session.flush()
        logger.info("account_updated", extra={"account_id": str(account_id)})
        return account

    def deactivate_account(
        self,
        account_id: UUID,
        company_id: UUID,
        actor_id: UUID,
    ) -> Account:
        """
        Soft-deactivate an account.

        The row lock taken here is the same one the posting engine takes,
        so a post and a deactivation of the same account serialize.
        """
        account = self.resolve_account(account_id, company_id, for_update=True)
        if not account.is_active:
            return account

        if self._has_live_lines(account_id):
            logger.warning(
                "account_deactivate_rejected",
                extra={"account_id": str(account_id), "reason": "journal_lines"},
            )
            raise AccountInUseError(str(account_id), "has posted journal lines")
        if self._has_active_children(account_id):
            logger.warning(
                "account_deactivate_rejected",
                extra={"account_id": str(account_id), "reason": "active_children"},
            )
            raise AccountInUseError(str(account_id), "has active child accounts")

        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_id": str(account_id)})
        return account

    def reactivate_account(
        self,
        account_id: UUID,
        company_id: UUID,
        actor_id: UUID,
    ) -> Account:
        account = self.resolve_account(account_id, company_id, for_update=True)
        account.is_active = True
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info("account_reactivated", extra={"account_id": str(account_id)})
        return account

    def is_account_in_use(self, account_id: UUID) -> bool:
        return self._has_live_lines(account_id) or self._has_active_children(account_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _code_exists(self, company_id: UUID, code: str) -> bool:
        stmt = select(
            exists().where(Account.company_id == company_id, Account.code == code)
        )
        return bool(self.session.execute(stmt).scalar())

    def _has_live_lines(self, account_id: UUID) -> bool:
        """
        True if a non-voided original batch has a line on the account.

        A voided batch and its compensating batch cancel out, so neither
        keeps the account in use.
        """
        stmt = select(
            exists()
            .where(JournalLine.account_id == account_id)
            .where(JournalLine.journal_batch_id == JournalBatch.id)
            .where(JournalBatch.status == JournalBatchStatus.POSTED.value)
            .where(JournalBatch.reversal_of_id.is_(None))
        )
        return bool(self.session.execute(stmt).scalar())

    def _has_active_children(self, account_id: UUID) -> bool:
        stmt = select(
            exists().where(
                Account.parent_account_id == account_id,
                Account.is_active.is_(True),
            )
        )
        return bool(self.session.execute(stmt).scalar())

    def _validate_parent(
        self,
        company_id: UUID,
        parent_account_id: UUID,
        account_id: UUID | None = None,
    ) -> None:
        parent = self.session.get(Account, parent_account_id)
        if parent is None:
            raise InvalidParentAccountError(str(parent_account_id), "not found")
        if parent.company_id != company_id:
            raise InvalidParentAccountError(
                str(parent_account_id), "belongs to another company"
            )
        if account_id is None:
            return
        if parent_account_id == account_id:
            raise CircularReferenceError(str(account_id), str(parent_account_id))

        # Walk up from the proposed parent; meeting account_id means a cycle
        seen: set[UUID] = set()
        current = parent
        while current is not None and current.parent_account_id is not None:
            if current.parent_account_id == account_id:
                raise CircularReferenceError(str(account_id), str(parent_account_id))
            if current.parent_account_id in seen:
                break
            seen.add(current.parent_account_id)
            current = self.session.get(Account, current.parent_account_id)
