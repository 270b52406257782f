from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)

ExpenseStatusValue = Literal["pending", "approved", "rejected", "paid"]
ExpenseCategoryValue = Literal[
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
PaymentMethodValue = Literal["cash", "bank-transfer", "credit-card", "check", "other"]


class ExpenseCreate(BaseModel):
    category: ExpenseCategoryValue
    description: str = Field(..., min_length=1)
    amount: DecimalValue = Field(..., gt=0)
    vendor: Optional[str] = Field(None, max_length=200)
    expense_date: Optional[date] = None
    status: ExpenseStatusValue = "pending"
    payment_method: Optional[PaymentMethodValue] = None
    receipt: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    tags: List[str] = []
    currency: str = Field("USD", min_length=3, max_length=3)
    tax_deductible: bool = False
    project_id: Optional[int] = None


class ExpenseUpdate(BaseModel):
    category: Optional[ExpenseCategoryValue] = None
    description: Optional[str] = Field(None, min_length=1)
    amount: Optional[DecimalValue] = Field(None, gt=0)
    vendor: Optional[str] = Field(None, max_length=200)
    expense_date: Optional[date] = None
    status: Optional[ExpenseStatusValue] = None
    payment_method: Optional[PaymentMethodValue] = None
    receipt: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    tax_deductible: Optional[bool] = None
    project_id: Optional[int] = None


class ExpenseResponse(BaseModel):
    id: int
    project_id: Optional[int] = None
    category: str
    description: str
    amount: Decimal
    vendor: Optional[str] = None
    expense_date: date
    status: str
    payment_method: Optional[str] = None
    receipt: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = []
    currency: str
    tax_deductible: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ExpenseSummary(BaseModel):
    total_expenses: Decimal
    count: int
    approved: Decimal
    pending: Decimal
    paid: Decimal
    rejected: Decimal
    tax_deductible: Decimal


class CategoryTotal(BaseModel):
    category: str
    total: Decimal
    count: int


class MonthTotal(BaseModel):
    year: int
    month: int
    total: Decimal
    count: int


class BulkStatusUpdate(BaseModel):
    expense_ids: List[int] = Field(..., min_length=1)
    status: ExpenseStatusValue


class BulkStatusResult(BaseModel):
    modified_count: int
    skipped_ids: List[int]
