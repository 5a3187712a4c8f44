"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger core (route handlers, batch jobs, offline sync) must
react to failures without parsing messages:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has a CATEGORY (VALIDATION, CONFLICT, NOT_FOUND,
     INTERNAL) that the API layer maps to an HTTP status
  4. Exceptions carry structured DATA as attributes

Duplicate submissions are NOT errors. Re-running a depreciation period or
re-posting an already POSTED document returns a result flagged
``duplicate=True``.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- PostingError
    |   +-- EmptyBatchError
    |   +-- InvalidLineError
    |   +-- UnbalancedEntryError
    |   +-- InvalidAccountError
    |       +-- AccountNotFoundError
    |       +-- GroupAccountError
    |       +-- InactiveAccountError
    |
    +-- AccountError
    |   +-- AccountCodeExistsError
    |   +-- CircularReferenceError
    |   +-- InvalidParentAccountError
    |   +-- AccountInUseError
    |
    +-- BatchError
    |   +-- BatchNotFoundError
    |   +-- BatchAlreadyVoidError
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- InvalidDocumentError
    |   +-- DocumentNotEditableError
    |   +-- DocumentVoidError
    |   +-- InvalidTransitionError
    |   +-- AccountMappingMissingError
    |   +-- UnsupportedPaymentMethodError
    |   +-- PaymentExceedsOutstandingError
    |   +-- InvoiceNotPostedError
    |   +-- InvoiceHasPaymentsError
    |
    +-- DepreciationError
    |   +-- PlanNotFoundError
    |   +-- PlanNotActiveError
    |   +-- PlanHasPostedRunsError
    |   +-- ActivePlanExistsError
    |   +-- InvalidPeriodError
    |   +-- InvalidPlanAmountsError
    |   +-- RunNotFoundError
    |
    +-- ReportParameterError
    |
    +-- PostingStorageError

===============================================================================
CATEGORY TABLE
===============================================================================

    Category   | HTTP | Meaning
    -----------+------+----------------------------------------------------
    VALIDATION | 400  | Malformed or missing input (unbalanced, bad period)
    CONFLICT   | 409  | State-machine violation (VOID document, in-use acct)
    NOT_FOUND  | 404  | Missing account, document, plan, or batch
    INTERNAL   | 500  | Storage or transaction failure

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH THE FAMILY OR THE REASON:

    try:
        poster.post(request)
    except GroupAccountError:
        ...                      # specific
    except InvalidAccountError as e:
        log.warning("bad account %s: %s", e.account_id, e.reason)

2. MAP TO A RESPONSE WITHOUT KNOWING EVERY CLASS:

    except LedgerError as e:
        return {"ok": False, "error": {"code": e.code}}, http_status_for(e)
"""

VALIDATION = "VALIDATION"
CONFLICT = "CONFLICT"
NOT_FOUND = "NOT_FOUND"
INTERNAL = "INTERNAL"

_HTTP_STATUS = {
    VALIDATION: 400,
    CONFLICT: 409,
    NOT_FOUND: 404,
    INTERNAL: 500,
}


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have ``code`` and ``category`` class attributes.
    """

    code: str = "LEDGER_ERROR"
    category: str = INTERNAL


def error_category(exc: BaseException) -> str:
    """Return the taxonomy category for any exception."""
    if isinstance(exc, LedgerError):
        return exc.category
    return INTERNAL


def http_status_for(exc: BaseException) -> int:
    """Map an exception to the HTTP status an API layer should return."""
    return _HTTP_STATUS[error_category(exc)]


# Posting-related exceptions


class PostingError(LedgerError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"
    category: str = VALIDATION


class EmptyBatchError(PostingError):
    """A batch needs at least two lines."""

    code: str = "EMPTY_BATCH"

    def __init__(self, line_count: int):
        self.line_count = line_count
        super().__init__(
            f"Journal batch requires at least 2 lines, got {line_count}"
        )


class InvalidLineError(PostingError):
    """A line must carry exactly one non-negative, nonzero side."""

    code: str = "INVALID_LINE"

    def __init__(self, line_no: int, reason: str):
        self.line_no = line_no
        self.reason = reason
        super().__init__(f"Line {line_no}: {reason}")


class UnbalancedEntryError(PostingError):
    """Batch debits do not equal credits within tolerance."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str, tolerance: str):
        self.debits = debits
        self.credits = credits
        self.tolerance = tolerance
        super().__init__(
            f"Unbalanced entry: debits={debits}, credits={credits} "
            f"(tolerance {tolerance})"
        )


class InvalidAccountError(PostingError):
    """Account cannot receive postings."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account {account_id}: {reason}")


class AccountNotFoundError(InvalidAccountError):
    """Account was not found."""

    code: str = "NOT_FOUND"
    category: str = NOT_FOUND

    def __init__(self, account_id: str):
        super().__init__(account_id, "not found")


class GroupAccountError(InvalidAccountError):
    """Group (non-leaf) accounts never receive postings."""

    code: str = "GROUP_ACCOUNT"

    def __init__(self, account_id: str):
        super().__init__(account_id, "group account")


class InactiveAccountError(InvalidAccountError):
    """Account is deactivated."""

    code: str = "INACTIVE_ACCOUNT"

    def __init__(self, account_id: str):
        super().__init__(account_id, "inactive account")


# Chart of accounts exceptions


class AccountError(LedgerError):
    """Base exception for chart-of-accounts mutations."""

    code: str = "ACCOUNT_ERROR"
    category: str = VALIDATION


class AccountCodeExistsError(AccountError):
    """Account code already used within the company."""

    code: str = "ACCOUNT_CODE_EXISTS"
    category: str = CONFLICT

    def __init__(self, company_id: str, account_code: str):
        self.company_id = company_id
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class CircularReferenceError(AccountError):
    """Parent assignment would create a cycle in the account tree."""

    code: str = "CIRCULAR_REFERENCE"

    def __init__(self, account_id: str, parent_account_id: str):
        self.account_id = account_id
        self.parent_account_id = parent_account_id
        super().__init__(
            f"Setting parent {parent_account_id} on {account_id} "
            "would create a circular reference"
        )


class InvalidParentAccountError(AccountError):
    """Parent account missing or belongs to another company."""

    code: str = "INVALID_PARENT_ACCOUNT"

    def __init__(self, parent_account_id: str, reason: str):
        self.parent_account_id = parent_account_id
        self.reason = reason
        super().__init__(f"Invalid parent account {parent_account_id}: {reason}")


class AccountInUseError(AccountError):
    """Account still referenced by journal lines or active children."""

    code: str = "ACCOUNT_IN_USE"
    category: str = CONFLICT

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Account {account_id} is in use: {reason}")


# Journal batch exceptions


class BatchError(LedgerError):
    code: str = "BATCH_ERROR"
    category: str = CONFLICT


class BatchNotFoundError(BatchError):
    code: str = "BATCH_NOT_FOUND"
    category: str = NOT_FOUND

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Journal batch not found: {batch_id}")


class BatchAlreadyVoidError(BatchError):
    """Batch has already been voided by a compensating batch."""

    code: str = "BATCH_ALREADY_VOID"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Journal batch {batch_id} is already void")


# Document lifecycle exceptions


class DocumentError(LedgerError):
    """Base exception for invoice, payment, and manual journal lifecycle."""

    code: str = "DOCUMENT_ERROR"
    category: str = CONFLICT


class DocumentNotFoundError(DocumentError):
    code: str = "DOCUMENT_NOT_FOUND"
    category: str = NOT_FOUND

    def __init__(self, doc_type: str, doc_id: str):
        self.doc_type = doc_type
        self.doc_id = doc_id
        super().__init__(f"{doc_type} not found: {doc_id}")


class InvalidDocumentError(DocumentError):
    """Document content is malformed (no lines, negative quantity, ...)."""

    code: str = "INVALID_DOCUMENT"
    category: str = VALIDATION

    def __init__(self, doc_type: str, reason: str):
        self.doc_type = doc_type
        self.reason = reason
        super().__init__(f"Invalid {doc_type}: {reason}")


class DocumentNotEditableError(DocumentError):
    """Only DRAFT documents accept line edits."""

    code: str = "DOCUMENT_NOT_EDITABLE"

    def __init__(self, doc_type: str, doc_id: str, status: str):
        self.doc_type = doc_type
        self.doc_id = doc_id
        self.status = status
        super().__init__(f"{doc_type} {doc_id} is not editable in status {status}")


class DocumentVoidError(DocumentError):
    """VOID is terminal."""

    code: str = "DOCUMENT_VOID"

    def __init__(self, doc_type: str, doc_id: str):
        self.doc_type = doc_type
        self.doc_id = doc_id
        super().__init__(f"{doc_type} {doc_id} is void")


class InvalidTransitionError(DocumentError):
    code: str = "INVALID_TRANSITION"

    def __init__(self, doc_type: str, current: str, target: str):
        self.doc_type = doc_type
        self.current = current
        self.target = target
        super().__init__(f"{doc_type} cannot move from {current} to {target}")


class AccountMappingMissingError(DocumentError):
    """Outlet has no account configured for one or more mapping keys."""

    code: str = "OUTLET_ACCOUNT_MAPPING_MISSING"
    category: str = VALIDATION

    def __init__(self, outlet_id: str | None, missing_keys: list[str]):
        self.outlet_id = outlet_id
        self.missing_keys = missing_keys
        super().__init__(
            f"Outlet {outlet_id} missing account mappings: {', '.join(missing_keys)}"
        )


class UnsupportedPaymentMethodError(DocumentError):
    code: str = "UNSUPPORTED_PAYMENT_METHOD"
    category: str = VALIDATION

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported payment method: {method}")


class PaymentExceedsOutstandingError(DocumentError):
    code: str = "PAYMENT_EXCEEDS_OUTSTANDING"
    category: str = VALIDATION

    def __init__(self, invoice_id: str, amount: str, outstanding: str):
        self.invoice_id = invoice_id
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Payment {amount} exceeds outstanding {outstanding} "
            f"on invoice {invoice_id}"
        )


class InvoiceNotPostedError(DocumentError):
    """Payments settle POSTED invoices only."""

    code: str = "INVOICE_NOT_POSTED"

    def __init__(self, invoice_id: str, status: str):
        self.invoice_id = invoice_id
        self.status = status
        super().__init__(f"Invoice {invoice_id} is {status}, not POSTED")


class InvoiceHasPaymentsError(DocumentError):
    code: str = "INVOICE_HAS_PAYMENTS"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} has posted payments")


# Depreciation exceptions


class DepreciationError(LedgerError):
    code: str = "DEPRECIATION_ERROR"
    category: str = VALIDATION


class PlanNotFoundError(DepreciationError):
    code: str = "PLAN_NOT_FOUND"
    category: str = NOT_FOUND

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Depreciation plan not found: {plan_id}")


class PlanNotActiveError(DepreciationError):
    """Only ACTIVE plans accept period runs."""

    code: str = "PLAN_NOT_ACTIVE"
    category: str = CONFLICT

    def __init__(self, plan_id: str, status: str):
        self.plan_id = plan_id
        self.status = status
        super().__init__(f"Depreciation plan {plan_id} is not active ({status})")


class PlanHasPostedRunsError(DepreciationError):
    code: str = "PLAN_HAS_POSTED_RUNS"
    category: str = CONFLICT

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Depreciation plan {plan_id} has posted runs")


class ActivePlanExistsError(DepreciationError):
    code: str = "ACTIVE_PLAN_EXISTS"
    category: str = CONFLICT

    def __init__(self, asset_id: str):
        self.asset_id = asset_id
        super().__init__(f"Asset {asset_id} already has an active plan")


class InvalidPeriodError(DepreciationError):
    code: str = "INVALID_PERIOD"

    def __init__(self, year: int, month: int, reason: str):
        self.year = year
        self.month = month
        self.reason = reason
        super().__init__(f"Invalid period {year}-{month:02d}: {reason}")


class InvalidPlanAmountsError(DepreciationError):
    code: str = "INVALID_PLAN_AMOUNTS"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid depreciation plan amounts: {reason}")


class RunNotFoundError(DepreciationError):
    code: str = "RUN_NOT_FOUND"
    category: str = NOT_FOUND

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Depreciation run not found: {run_id}")


# Report parameters


class ReportParameterError(LedgerError):
    code: str = "INVALID_REPORT_PARAMETER"
    category: str = VALIDATION

    def __init__(self, parameter: str, value: object, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {parameter}={value!r}: {reason}")


# Storage


class PostingStorageError(LedgerError):
    """Wraps a database failure raised while committing ledger data."""

    code: str = "STORAGE_ERROR"
    category: str = INTERNAL

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")
