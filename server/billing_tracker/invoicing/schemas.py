from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal

from billing_tracker.timesheets.schemas import WorkLogResponse


DecimalValue = condecimal(max_digits=14, decimal_places=2)
PercentValue = condecimal(max_digits=5, decimal_places=2)

InvoiceStatusValue = Literal["draft", "sent", "partially-paid", "paid", "overdue"]
PaymentStatusValue = Literal["pending", "completed", "failed"]
PaymentMethodValue = Literal["cash", "bank-transfer", "credit-card", "check", "other"]


class InvoiceCreate(BaseModel):
    client_id: int
    project_id: Optional[int] = None
    work_log_ids: List[int] = Field(..., min_length=1)
    tax_percentage: PercentValue = Field(0, ge=0, le=100)
    tax_enabled: bool = False
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    status: Optional[InvoiceStatusValue] = None
    notes: Optional[str] = None
    due_date: Optional[date] = None
    tax_percentage: Optional[PercentValue] = Field(None, ge=0, le=100)
    tax_enabled: Optional[bool] = None


class InvoicePaymentCreate(BaseModel):
    amount: DecimalValue = Field(..., gt=0)


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    client_id: int
    project_id: Optional[int] = None
    status: str
    subtotal: Decimal
    tax_percentage: Decimal
    tax_enabled: bool
    tax: Decimal
    total: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    issue_date: date
    due_date: Optional[date] = None
    paid_date: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvoiceDetailResponse(InvoiceResponse):
    work_logs: List[WorkLogResponse] = []


class PaymentCreate(BaseModel):
    invoice_id: int
    client_id: int
    amount: DecimalValue = Field(..., gt=0)
    payment_method: PaymentMethodValue = "bank-transfer"
    payment_date: Optional[date] = None
    transaction_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    status: PaymentStatusValue = "completed"


class PaymentUpdate(BaseModel):
    status: Optional[PaymentStatusValue] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    invoice_id: Optional[int] = None
    client_id: int
    amount: Decimal
    payment_method: str
    payment_date: date
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    status: str
    applied: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientPaymentTotals(BaseModel):
    total_received: Decimal
    payment_count: int


class ClientPaymentSummary(BaseModel):
    payments: List[PaymentResponse]
    summary: ClientPaymentTotals
