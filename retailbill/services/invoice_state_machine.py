"""
Invoice and Credit Note State Machines

All status changes of invoices and credit notes are validated here.

Invoice:      DRAFT -> COMPLETED -> CANCELLED | RETURNED
Credit note:  DRAFT -> PENDING_APPROVAL -> APPROVED -> ISSUED -> APPLIED
              any non-terminal status -> CANCELLED
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

from retailbill.core.exceptions import IllegalStateError
from retailbill.models.credit_note import CreditNoteStatus
from retailbill.models.invoice import InvoiceStatus


# =============================================================================
# TRANSITION RULES
# =============================================================================

INVOICE_TRANSITIONS: Dict[str, List[str]] = {
    InvoiceStatus.DRAFT.value: [InvoiceStatus.COMPLETED.value],
    InvoiceStatus.COMPLETED.value: [
        InvoiceStatus.CANCELLED.value,
        InvoiceStatus.RETURNED.value,
    ],
    InvoiceStatus.CANCELLED.value: [],  # Terminal
    InvoiceStatus.RETURNED.value: [],   # Terminal
}

CREDIT_NOTE_TRANSITIONS: Dict[str, List[str]] = {
    CreditNoteStatus.DRAFT.value: [
        CreditNoteStatus.PENDING_APPROVAL.value,
        CreditNoteStatus.CANCELLED.value,
    ],
    CreditNoteStatus.PENDING_APPROVAL.value: [
        CreditNoteStatus.APPROVED.value,
        CreditNoteStatus.CANCELLED.value,
    ],
    CreditNoteStatus.APPROVED.value: [
        CreditNoteStatus.ISSUED.value,
        CreditNoteStatus.CANCELLED.value,
    ],
    CreditNoteStatus.ISSUED.value: [
        CreditNoteStatus.APPLIED.value,
        CreditNoteStatus.CANCELLED.value,
    ],
    CreditNoteStatus.APPLIED.value: [],    # Terminal
    CreditNoteStatus.CANCELLED.value: [],  # Terminal
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(transitions: Dict[str, List[str]], current_status: str, new_status: str) -> bool:
    return new_status in transitions.get(current_status, [])


def get_allowed_transitions(transitions: Dict[str, List[str]], current_status: str) -> List[str]:
    return transitions.get(current_status, [])


def validate_transition(
    transitions: Dict[str, List[str]],
    current_status: str,
    new_status: str,
    message: Optional[str] = None,
) -> None:
    """Raise IllegalStateError unless current_status may move to new_status."""
    if can_transition(transitions, current_status, new_status):
        return

    allowed = get_allowed_transitions(transitions, current_status)
    if message is None:
        if not allowed:
            message = f"Status '{current_status}' is terminal and cannot change"
        else:
            message = (
                f"Cannot change status from '{current_status}' to '{new_status}'. "
                f"Allowed transitions: {', '.join(allowed)}"
            )
    raise IllegalStateError(
        message,
        error_code="INVALID_STATUS_TRANSITION",
        details={
            "current_status": current_status,
            "requested_status": new_status,
            "allowed": allowed,
        },
    )


def is_terminal(transitions: Dict[str, List[str]], status: str) -> bool:
    return not transitions.get(status)


# =============================================================================
# TRANSITION EXECUTORS
# =============================================================================

def transition_invoice(invoice, new_status: InvoiceStatus, message: Optional[str] = None) -> None:
    validate_transition(INVOICE_TRANSITIONS, invoice.status, new_status.value, message)
    invoice.status = new_status.value


def transition_credit_note(credit_note, new_status: CreditNoteStatus, message: Optional[str] = None) -> None:
    """Move a credit note to new_status and stamp the matching timestamp."""
    validate_transition(CREDIT_NOTE_TRANSITIONS, credit_note.status, new_status.value, message)
    credit_note.status = new_status.value

    now = datetime.now(timezone.utc)
    if new_status == CreditNoteStatus.APPROVED:
        credit_note.approved_at = now
    elif new_status == CreditNoteStatus.ISSUED:
        credit_note.issued_at = now
    elif new_status == CreditNoteStatus.APPLIED:
        credit_note.applied_at = now
    elif new_status == CreditNoteStatus.CANCELLED:
        credit_note.cancelled_at = now
