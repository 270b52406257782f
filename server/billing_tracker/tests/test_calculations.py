from datetime import date, datetime
from decimal import Decimal

import pytest

from billing_tracker.invoicing.calculations import (
    InvoiceFinancials,
    apply_financials,
    calculate_billable_amount,
    calculate_invoice_totals,
    derive_status,
    is_overdue,
    reconcile_financials,
)
from billing_tracker.models import Invoice


def test_calculate_billable_amount_rounds_to_cents():
    assert calculate_billable_amount(Decimal("3"), Decimal("50")) == Decimal("150.00")
    assert calculate_billable_amount("1.25", "33.33") == Decimal("41.66")
    assert calculate_billable_amount(None, 50) == Decimal("0.00")


def test_invoice_totals_with_and_without_tax():
    totals = calculate_invoice_totals([Decimal("150.00"), Decimal("250.00")])
    assert totals.subtotal == Decimal("400.00")
    assert totals.tax == Decimal("0.00")
    assert totals.tax_percentage == Decimal("0.00")
    assert totals.total == Decimal("400.00")

    taxed = calculate_invoice_totals([Decimal("400.00")], tax_percentage=Decimal("7.5"), tax_enabled=True)
    assert taxed.tax == Decimal("30.00")
    assert taxed.total == Decimal("430.00")


def test_tax_percentage_ignored_when_disabled():
    totals = calculate_invoice_totals([Decimal("100.00")], tax_percentage=Decimal("18"), tax_enabled=False)
    assert totals.tax_percentage == Decimal("0.00")
    assert totals.total == Decimal("100.00")


def test_reconcile_trusts_consistent_fields():
    financials = reconcile_financials({"total": "100", "amount_paid": "40", "amount_due": "60"})
    assert financials == InvoiceFinancials(Decimal("100.00"), Decimal("40.00"), Decimal("60.00"))


def test_reconcile_prefers_due_when_fields_disagree():
    financials = reconcile_financials({"total": 100, "amount_paid": 40, "amount_due": 70})
    assert financials.paid == Decimal("30.00")
    assert financials.due == Decimal("70.00")


def test_reconcile_falls_back_to_paid_when_due_invalid():
    financials = reconcile_financials({"total": 100, "amount_paid": 25, "amount_due": -5})
    assert financials.paid == Decimal("25.00")
    assert financials.due == Decimal("75.00")


def test_reconcile_treats_everything_invalid_as_unpaid():
    financials = reconcile_financials({"total": 100, "amount_paid": 500, "amount_due": "garbage"})
    assert financials.paid == Decimal("0.00")
    assert financials.due == Decimal("100.00")


def test_reconcile_clamps_negative_total():
    financials = reconcile_financials({"total": -20, "amount_paid": 0, "amount_due": 0})
    assert financials == InvoiceFinancials(Decimal("0.00"), Decimal("0.00"), Decimal("0.00"))


@pytest.mark.parametrize(
    "fields",
    [
        {"total": 100, "amount_paid": 40, "amount_due": 70},
        {"total": 99.99, "amount_paid": None, "amount_due": None},
        {"total": "250.50", "amount_paid": "300", "amount_due": "12.25"},
        {"total": 10, "amount_paid": 10.004, "amount_due": 0},
        {},
    ],
)
def test_reconciled_ledger_always_closes(fields):
    financials = reconcile_financials(fields)
    assert Decimal("0") <= financials.paid <= financials.total
    assert Decimal("0") <= financials.due <= financials.total
    assert abs(financials.total - (financials.paid + financials.due)) <= Decimal("0.01")


def test_apply_financials_reports_changes():
    invoice = Invoice(total=Decimal("100.00"), amount_paid=Decimal("40.00"), amount_due=Decimal("70.00"))
    assert apply_financials(invoice, reconcile_financials(invoice)) is True
    assert invoice.amount_paid == Decimal("30.00")
    assert apply_financials(invoice, reconcile_financials(invoice)) is False


def test_derive_status_paid_partial_and_sent():
    today = date(2024, 3, 1)
    assert derive_status({"total": 100, "amount_paid": 100, "amount_due": 0, "status": "sent"}, today) == "paid"
    assert (
        derive_status({"total": 100, "amount_paid": 10, "amount_due": 90, "status": "sent"}, today)
        == "partially-paid"
    )
    assert derive_status({"total": 100, "amount_paid": 0, "amount_due": 100, "status": "overdue"}, today) == "sent"


def test_derive_status_keeps_draft_until_money_moves():
    invoice = {"total": 100, "amount_paid": 0, "amount_due": 100, "status": "draft"}
    assert derive_status(invoice, date(2024, 3, 1)) == "draft"
    assert derive_status({"total": 100, "amount_paid": 0, "amount_due": 100}, date(2024, 3, 1)) == "draft"


def test_derive_status_overdue_beats_partial():
    invoice = {
        "total": 100,
        "amount_paid": 10,
        "amount_due": 90,
        "status": "partially-paid",
        "due_date": date(2024, 2, 1),
    }
    assert derive_status(invoice, date(2024, 3, 1)) == "overdue"
    assert derive_status(invoice, date(2024, 2, 1)) == "partially-paid"


def test_derive_status_is_deterministic():
    invoice = {"total": 100, "amount_paid": 40, "amount_due": 70, "status": "sent", "due_date": date(2024, 5, 1)}
    today = date(2024, 4, 1)
    assert {derive_status(invoice, today) for _ in range(5)} == {"partially-paid"}


def test_is_overdue_requires_due_date_and_balance():
    today = date(2024, 3, 1)
    assert is_overdue({"total": 100, "amount_due": 100, "due_date": None}, today) is False
    assert is_overdue({"total": 100, "amount_paid": 100, "amount_due": 0, "due_date": date(2024, 1, 1)}, today) is False
    assert is_overdue({"total": 100, "amount_due": 100, "due_date": datetime(2024, 1, 1, 9, 30)}, today) is True
