from typing import Iterable


class BillingError(ValueError):
    pass


class ValidationError(BillingError):
    pass


class NotFoundError(BillingError):
    pass


class ConflictError(BillingError):
    pass


class PermissionDeniedError(BillingError):
    pass


class OverpaymentError(ConflictError):
    def __init__(self, amount, due):
        self.amount = amount
        self.due = due
        super().__init__("Payment amount exceeds invoice due amount.")


class NoBillableWorkLogsError(ConflictError):
    def __init__(self):
        super().__init__("No billable work logs found.")


class InvoicedWorkLogError(ConflictError):
    def __init__(self, action: str):
        super().__init__(f"Cannot {action} work log that is already invoiced.")


class IllegalTransitionError(ConflictError):
    def __init__(self, current_status: str, requested_status: str, allowed: Iterable[str]):
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = sorted(allowed)
        allowed_text = ", ".join(self.allowed) or "none (terminal state)"
        super().__init__(
            f"Cannot transition from {current_status} to {requested_status}. Allowed transitions: {allowed_text}"
        )
