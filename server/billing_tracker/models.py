from datetime import date
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .db import Base
from .roles import ROLE_VALUES
from .statuses import (
    CLIENT_STATUSES,
    EXPENSE_CATEGORIES,
    EXPENSE_STATUSES,
    INVOICE_STATUSES,
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    PROJECT_STATUSES,
    ExpenseStatus,
    InvoiceStatus,
    PaymentStatus,
)
from .utils import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(*ROLE_VALUES, name="user_role"), nullable=False, default="viewer")
    # portal users only; no FK because clients.user_id already points back here
    client_id = Column(Integer, nullable=True)
    company = Column(String(200), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False)
    company = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    billing_rate = Column(Numeric(14, 2), nullable=False, default=50)
    outstanding_balance = Column(Numeric(14, 2), nullable=False, default=0)
    total_billed = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(Enum(*CLIENT_STATUSES, name="client_status"), nullable=False, default="active")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    projects = relationship("Project", back_populates="client")
    invoices = relationship("Invoice", back_populates="client")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    hourly_rate = Column(Numeric(14, 2), nullable=False, default=50)
    budget = Column(Numeric(14, 2), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(Enum(*PROJECT_STATUSES, name="project_status"), nullable=False, default="active")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    client = relationship("Client", back_populates="projects")
    work_logs = relationship("WorkLog", back_populates="project")
    expenses = relationship("Expense", back_populates="project")


class WorkLog(Base):
    __tablename__ = "work_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    work_date = Column(Date, nullable=False, default=date.today)
    hours = Column(Numeric(8, 2), nullable=False)
    description = Column(Text, nullable=False)
    billable = Column(Boolean, nullable=False, default=True)
    billable_amount = Column(Numeric(14, 2), nullable=False, default=0)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    project = relationship("Project", back_populates="work_logs")
    client = relationship("Client")
    invoice = relationship("Invoice", back_populates="work_logs")


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    invoice_number = Column(String(20), nullable=False, unique=True)
    status = Column(
        Enum(*INVOICE_STATUSES, name="invoice_status"),
        nullable=False,
        default=InvoiceStatus.DRAFT.value,
    )
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    tax_enabled = Column(Boolean, nullable=False, default=False)
    tax = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(14, 2), nullable=False, default=0)
    amount_due = Column(Numeric(14, 2), nullable=False, default=0)
    issue_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)
    paid_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    client = relationship("Client", back_populates="invoices")
    project = relationship("Project")
    work_logs = relationship("WorkLog", back_populates="invoice")
    payments = relationship("Payment", back_populates="invoice")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_method = Column(Enum(*PAYMENT_METHODS, name="payment_method"), nullable=False, default="bank-transfer")
    payment_date = Column(Date, nullable=False, default=date.today)
    transaction_id = Column(String(100), nullable=True, unique=True)
    notes = Column(Text, nullable=True)
    status = Column(
        Enum(*PAYMENT_STATUSES, name="payment_status"),
        nullable=False,
        default=PaymentStatus.COMPLETED.value,
    )
    # set once the amount has been credited to the invoice ledger
    applied = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
    client = relationship("Client")


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    category = Column(Enum(*EXPENSE_CATEGORIES, name="expense_category"), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    vendor = Column(String(200), nullable=True)
    expense_date = Column(Date, nullable=False, default=date.today)
    status = Column(
        Enum(*EXPENSE_STATUSES, name="expense_status"),
        nullable=False,
        default=ExpenseStatus.PENDING.value,
    )
    payment_method = Column(Enum(*PAYMENT_METHODS, name="expense_payment_method"), nullable=True)
    receipt = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    currency = Column(String(3), nullable=False, default="USD")
    tax_deductible = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    project = relationship("Project", back_populates="expenses")
