from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from billing_tracker.db import Base
from billing_tracker.exceptions import NotFoundError, OverpaymentError, ValidationError
from billing_tracker.invoicing.service import apply_payment, delete_payment, record_payment, update_payment
from billing_tracker.models import Client, Invoice, Payment, User


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)()


def create_client(db):
    user = User(name="Owner", email="owner@billing.local", password_hash="x", role="admin")
    db.add(user)
    db.flush()
    client = Client(user_id=user.id, name="Acme", email="ap@acme.test")
    db.add(client)
    db.flush()
    return user, client


def create_invoice(db, user, client, total, amount_paid="0", amount_due=None, status="sent", due_date=None, number=1):
    invoice = Invoice(
        user_id=user.id,
        client_id=client.id,
        invoice_number=f"INV-{1000 + number}",
        status=status,
        issue_date=date(2024, 1, 1),
        due_date=due_date,
        subtotal=Decimal(total),
        total=Decimal(total),
        amount_paid=Decimal(amount_paid),
        amount_due=Decimal(total if amount_due is None else amount_due),
    )
    db.add(invoice)
    db.flush()
    return invoice


def test_partial_then_final_payment_marks_paid():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "400.00")

    apply_payment(db, invoice.id, Decimal("150.00"), now=datetime(2024, 1, 5, 12, 0))
    db.commit()
    db.refresh(invoice)
    assert invoice.status == "partially-paid"
    assert invoice.amount_paid == Decimal("150.00")
    assert invoice.amount_due == Decimal("250.00")
    assert invoice.paid_date is None

    apply_payment(db, invoice.id, Decimal("250.00"), now=datetime(2024, 1, 6, 12, 0))
    db.commit()
    db.refresh(invoice)
    db.refresh(client)
    assert invoice.status == "paid"
    assert invoice.amount_paid == Decimal("400.00")
    assert invoice.amount_due == Decimal("0.00")
    assert invoice.paid_date == datetime(2024, 1, 6, 12, 0)
    assert client.outstanding_balance == Decimal("0.00")
    assert client.total_billed == Decimal("400.00")


def test_overpayment_is_rejected_without_changes():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "100.00", amount_paid="60.00", amount_due="40.00")

    with pytest.raises(OverpaymentError) as exc_info:
        apply_payment(db, invoice.id, Decimal("40.01"))

    assert exc_info.value.due == Decimal("40.00")
    db.refresh(invoice)
    assert invoice.amount_paid == Decimal("60.00")
    assert invoice.amount_due == Decimal("40.00")
    assert invoice.status == "sent"


def test_payment_uses_reconciled_due_on_drifted_invoice():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "100.00", amount_paid="40.00", amount_due="70.00")

    with pytest.raises(OverpaymentError):
        apply_payment(db, invoice.id, Decimal("71.00"))

    apply_payment(db, invoice.id, Decimal("70.00"))
    assert invoice.amount_paid == Decimal("100.00")
    assert invoice.amount_due == Decimal("0.00")
    assert invoice.status == "paid"


def test_overdue_invoice_paid_in_full_becomes_paid():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "200.00", status="overdue", due_date=date(2024, 1, 31))

    apply_payment(db, invoice.id, Decimal("200.00"), now=datetime(2024, 3, 1, 9, 0))

    assert invoice.status == "paid"
    assert invoice.paid_date == datetime(2024, 3, 1, 9, 0)


def test_apply_payment_validation():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "100.00")

    with pytest.raises(ValidationError):
        apply_payment(db, invoice.id, Decimal("0"))
    with pytest.raises(ValidationError):
        apply_payment(db, invoice.id, Decimal("0.004"))
    with pytest.raises(NotFoundError):
        apply_payment(db, 9999, Decimal("10"))
    with pytest.raises(NotFoundError):
        apply_payment(db, invoice.id, Decimal("10"), tenant_id=user.id + 1)


def test_record_payment_applies_completed_payments():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "300.00")

    payment = record_payment(
        db,
        {"invoice_id": invoice.id, "client_id": client.id, "amount": Decimal("100.00"), "transaction_id": "tx-1"},
        user_id=user.id,
        tenant_id=user.id,
    )
    db.commit()
    db.refresh(client)

    assert payment.status == "completed"
    assert payment.payment_method == "bank-transfer"
    assert invoice.amount_due == Decimal("200.00")
    assert client.outstanding_balance == Decimal("200.00")


def test_record_payment_rejects_client_mismatch_and_overpayment():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "50.00")

    with pytest.raises(ValidationError):
        record_payment(
            db,
            {"invoice_id": invoice.id, "client_id": client.id + 1, "amount": Decimal("10.00")},
            user_id=user.id,
        )
    with pytest.raises(OverpaymentError):
        record_payment(
            db,
            {"invoice_id": invoice.id, "client_id": client.id, "amount": Decimal("50.01")},
            user_id=user.id,
        )
    assert db.query(Payment).count() == 0


def test_pending_payment_applies_once_when_completed():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "80.00")

    payment = record_payment(
        db,
        {"invoice_id": invoice.id, "client_id": client.id, "amount": Decimal("30.00"), "status": "pending"},
        user_id=user.id,
    )
    assert invoice.amount_due == Decimal("80.00")

    update_payment(db, payment, {"status": "completed"})
    assert invoice.amount_due == Decimal("50.00")

    update_payment(db, payment, {"status": "completed", "notes": "confirmed"})
    assert invoice.amount_due == Decimal("50.00")
    assert payment.notes == "confirmed"


def test_delete_payment_recomputes_client_balance():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "80.00")
    payment = record_payment(
        db,
        {"invoice_id": invoice.id, "client_id": client.id, "amount": Decimal("30.00")},
        user_id=user.id,
    )

    delete_payment(db, payment)
    db.commit()
    db.refresh(client)

    assert db.query(Payment).count() == 0
    assert client.outstanding_balance == Decimal("50.00")


def test_completed_payment_is_not_credited_again_after_status_round_trip():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "400.00")

    payment = record_payment(
        db,
        {"invoice_id": invoice.id, "client_id": client.id, "amount": Decimal("100.00")},
        user_id=user.id,
    )
    assert payment.applied is True

    update_payment(db, payment, {"status": "failed"})
    update_payment(db, payment, {"status": "completed"})
    update_payment(db, payment, {"status": "pending"})
    update_payment(db, payment, {"status": "completed"})
    db.commit()
    db.refresh(invoice)
    db.refresh(client)

    assert invoice.amount_paid == Decimal("100.00")
    assert invoice.amount_due == Decimal("300.00")
    assert invoice.status == "partially-paid"
    assert client.outstanding_balance == Decimal("300.00")


def test_pending_payment_marks_applied_only_once_completed():
    db = create_session()
    user, client = create_client(db)
    invoice = create_invoice(db, user, client, "400.00")

    payment = record_payment(
        db,
        {"invoice_id": invoice.id, "client_id": client.id, "amount": Decimal("100.00"), "status": "pending"},
        user_id=user.id,
    )
    assert payment.applied is False

    update_payment(db, payment, {"status": "failed"})
    assert payment.applied is False
    assert invoice.amount_paid == Decimal("0.00")

    update_payment(db, payment, {"status": "completed"})
    update_payment(db, payment, {"status": "failed"})
    update_payment(db, payment, {"status": "completed"})
    assert payment.applied is True
    assert invoice.amount_paid == Decimal("100.00")
