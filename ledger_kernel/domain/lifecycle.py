"""
Document lifecycle state machine.

Invoices, payments, and manual journals share one shape::

    DRAFT --post--> POSTED --void--> VOID
      |                                ^
      +-------------void---------------+

VOID is terminal.  Every (current, target) pair is listed in
``_TRANSITIONS``; a pair missing from the table is a programming error and
raises ``KeyError`` instead of silently passing.
"""

from enum import Enum

from ledger_kernel.exceptions import (
    DocumentNotEditableError,
    DocumentVoidError,
    InvalidTransitionError,
)


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    VOID = "VOID"


class PaymentStatus(str, Enum):
    """Settlement state of an invoice."""

    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


_TRANSITIONS: dict[tuple[DocumentStatus, DocumentStatus], bool] = {
    (DocumentStatus.DRAFT, DocumentStatus.DRAFT): True,
    (DocumentStatus.DRAFT, DocumentStatus.POSTED): True,
    (DocumentStatus.DRAFT, DocumentStatus.VOID): True,
    (DocumentStatus.POSTED, DocumentStatus.DRAFT): False,
    (DocumentStatus.POSTED, DocumentStatus.POSTED): False,
    (DocumentStatus.POSTED, DocumentStatus.VOID): True,
    (DocumentStatus.VOID, DocumentStatus.DRAFT): False,
    (DocumentStatus.VOID, DocumentStatus.POSTED): False,
    (DocumentStatus.VOID, DocumentStatus.VOID): False,
}


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    return _TRANSITIONS[(DocumentStatus(current), DocumentStatus(target))]


def assert_transition(
    doc_type: str,
    doc_id: str,
    current: DocumentStatus,
    target: DocumentStatus,
) -> None:
    """
    Raise unless ``current -> target`` is allowed.

    Anything out of VOID raises ``DocumentVoidError`` so callers get the
    dedicated code; other illegal moves raise ``InvalidTransitionError``.
    DRAFT -> DRAFT is how line edits are expressed.
    """
    current = DocumentStatus(current)
    target = DocumentStatus(target)
    if can_transition(current, target):
        return
    if current is DocumentStatus.VOID:
        raise DocumentVoidError(doc_type, str(doc_id))
    raise InvalidTransitionError(doc_type, current.value, target.value)


def assert_editable(doc_type: str, doc_id: str, current: DocumentStatus) -> None:
    """
    Raise unless a document in ``current`` accepts edits.

    An edit is the DRAFT -> DRAFT move of the table.  A POSTED document
    raises ``DocumentNotEditableError``; a VOID one ``DocumentVoidError``.
    """
    try:
        assert_transition(doc_type, doc_id, current, DocumentStatus.DRAFT)
    except InvalidTransitionError as exc:
        raise DocumentNotEditableError(doc_type, str(doc_id), exc.current) from exc



def derive_payment_status(grand_total, paid_total) -> PaymentStatus:
    """PAID once fully settled, PARTIAL for any positive amount, else UNPAID."""
    if paid_total >= grand_total and grand_total > 0:
        return PaymentStatus.PAID
    if paid_total > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID
