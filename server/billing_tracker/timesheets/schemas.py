from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal


DecimalValue = condecimal(max_digits=14, decimal_places=2)
HoursValue = condecimal(max_digits=8, decimal_places=2)

ClientStatus = Literal["active", "inactive"]
ProjectStatus = Literal["active", "completed", "on-hold"]


class ClientBase(BaseModel):
    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=255)
    company: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    billing_rate: DecimalValue = Field(50, ge=0)
    status: ClientStatus = "active"


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    billing_rate: Optional[DecimalValue] = Field(None, ge=0)
    status: Optional[ClientStatus] = None


class ClientResponse(ClientBase):
    id: int
    billing_rate: Decimal
    outstanding_balance: Decimal
    total_billed: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClientBalanceResponse(BaseModel):
    client_id: int
    outstanding_balance: Decimal
    total_billed: Decimal


class ClientInvoiceStats(BaseModel):
    client_id: int
    total_invoiced: Decimal
    total_paid: Decimal
    total_due: Decimal
    invoice_count: int
    paid_count: int


class ProjectBase(BaseModel):
    client_id: int
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    hourly_rate: DecimalValue = Field(50, ge=0)
    budget: Optional[DecimalValue] = Field(None, ge=0)
    status: ProjectStatus = "active"
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    hourly_rate: Optional[DecimalValue] = Field(None, ge=0)
    budget: Optional[DecimalValue] = Field(None, ge=0)
    status: Optional[ProjectStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ProjectResponse(ProjectBase):
    id: int
    hourly_rate: Decimal
    budget: Optional[Decimal] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectSummary(BaseModel):
    project_id: int
    total_hours: Decimal
    total_earnings: Decimal
    work_log_count: int


class WorkLogCreate(BaseModel):
    project_id: int
    work_date: date
    hours: HoursValue = Field(..., ge=Decimal("0.25"))
    description: str = Field(..., min_length=1)
    billable: bool = True


class WorkLogUpdate(BaseModel):
    work_date: Optional[date] = None
    hours: Optional[HoursValue] = Field(None, ge=Decimal("0.25"))
    description: Optional[str] = Field(None, min_length=1)
    billable: Optional[bool] = None


class WorkLogResponse(BaseModel):
    id: int
    project_id: int
    client_id: int
    work_date: date
    hours: Decimal
    description: str
    billable: bool
    billable_amount: Decimal
    invoice_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
