from enum import Enum


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially-paid"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


INVOICE_STATUSES: list[str] = [status.value for status in InvoiceStatus]
PAYMENT_STATUSES: list[str] = [status.value for status in PaymentStatus]
PAYMENT_METHODS: list[str] = ["cash", "bank-transfer", "credit-card", "check", "other"]
CLIENT_STATUSES: list[str] = ["active", "inactive"]
PROJECT_STATUSES: list[str] = ["active", "completed", "on-hold"]


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


EXPENSE_STATUSES: list[str] = [status.value for status in ExpenseStatus]
EXPENSE_CATEGORIES: list[str] = [
    "software",
    "hardware",
    "labor",
    "utilities",
    "office-supplies",
    "travel",
    "marketing",
    "hosting",
    "subscription",
    "maintenance",
    "other",
]
