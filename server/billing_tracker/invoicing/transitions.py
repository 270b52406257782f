from billing_tracker.exceptions import IllegalTransitionError, ValidationError
from billing_tracker.roles import is_privileged
from billing_tracker.statuses import INVOICE_STATUSES, InvoiceStatus


DRAFT = InvoiceStatus.DRAFT.value
SENT = InvoiceStatus.SENT.value
PARTIALLY_PAID = InvoiceStatus.PARTIALLY_PAID.value
PAID = InvoiceStatus.PAID.value
OVERDUE = InvoiceStatus.OVERDUE.value

# Manual status edits only. Automatic derivation lives in calculations.derive_status.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    DRAFT: frozenset({SENT, DRAFT}),
    SENT: frozenset({PARTIALLY_PAID, PAID, OVERDUE}),
    PARTIALLY_PAID: frozenset({PAID, OVERDUE}),
    OVERDUE: frozenset({PARTIALLY_PAID, PAID}),
    PAID: frozenset(),
}


def allowed_transitions(current_status: str) -> frozenset[str]:
    return ALLOWED_TRANSITIONS.get(current_status, frozenset({current_status}))


def guard_transition(current_status: str, requested_status: str, role: str | None) -> None:
    if requested_status not in INVOICE_STATUSES:
        raise ValidationError(f"Unknown invoice status '{requested_status}'.")
    if is_privileged(role):
        return
    allowed = allowed_transitions(current_status)
    if requested_status not in allowed:
        raise IllegalTransitionError(current_status, requested_status, allowed)
