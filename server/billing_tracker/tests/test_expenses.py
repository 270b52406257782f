from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from billing_tracker.auth import get_current_user
from billing_tracker.db import Base, get_db
from billing_tracker.exceptions import IllegalTransitionError, NotFoundError, ValidationError
from billing_tracker.expenses.service import (
    bulk_update_status,
    create_expense,
    get_expense,
    get_expense_summary,
    get_expenses_by_category,
    get_expenses_by_month,
    list_expenses,
    update_expense,
)
from billing_tracker.main import app
from billing_tracker.models import Client, Project, User


def create_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)()


def seed(db):
    user = User(name="Owner", email="owner@billing.local", password_hash="x", role="staff")
    db.add(user)
    db.flush()
    client = Client(user_id=user.id, name="Acme", email="ap@acme.test")
    db.add(client)
    db.flush()
    project = Project(user_id=user.id, client_id=client.id, name="Audit", hourly_rate=Decimal("80.00"))
    db.add(project)
    db.flush()
    return user, project


def expense(category="software", amount="10.00", expense_date=date(2024, 1, 10), **extra):
    return {
        "category": category,
        "description": f"{category} purchase",
        "amount": Decimal(amount),
        "expense_date": expense_date,
        **extra,
    }


def test_create_defaults_and_validation():
    db = create_session()
    user, project = seed(db)

    created = create_expense(db, user.id, expense(amount="19.999", project_id=project.id, tags=["cloud"]))

    assert created.status == "pending"
    assert created.amount == Decimal("20.00")
    assert created.currency == "USD"
    assert created.tags == ["cloud"]
    assert created.tax_deductible is False

    with pytest.raises(ValidationError):
        create_expense(db, user.id, expense(amount="0"))
    with pytest.raises(NotFoundError):
        create_expense(db, user.id, expense(project_id=9999))
    with pytest.raises(NotFoundError):
        get_expense(db, created.id, tenant_id=user.id + 1)


def test_list_filters_and_ordering():
    db = create_session()
    user, project = seed(db)
    january = create_expense(db, user.id, expense("travel", expense_date=date(2024, 1, 5)))
    february = create_expense(db, user.id, expense("travel", expense_date=date(2024, 2, 5), project_id=project.id))
    create_expense(db, user.id, expense("hosting", expense_date=date(2024, 3, 5)))

    travel = list_expenses(db, user.id, category="travel")
    assert [item.id for item in travel] == [february.id, january.id]
    assert [item.id for item in list_expenses(db, user.id, project_id=project.id)] == [february.id]
    in_range = list_expenses(db, user.id, start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
    assert [item.id for item in in_range] == [january.id]


def test_approval_workflow_guards_staff():
    db = create_session()
    user, _ = seed(db)
    item = create_expense(db, user.id, expense())

    with pytest.raises(IllegalTransitionError) as exc_info:
        update_expense(db, item, {"status": "paid"}, role="staff")
    assert exc_info.value.allowed == ["approved", "rejected"]

    update_expense(db, item, {"status": "approved", "notes": "ok"}, role="staff")
    update_expense(db, item, {"status": "paid"}, role="staff")
    assert item.status == "paid"
    assert item.notes == "ok"

    with pytest.raises(IllegalTransitionError):
        update_expense(db, item, {"status": "pending"}, role="staff")

    update_expense(db, item, {"status": "pending"}, role="admin")
    assert item.status == "pending"


def test_bulk_status_skips_disallowed_and_foreign_rows():
    db = create_session()
    user, _ = seed(db)
    pending = create_expense(db, user.id, expense())
    paid = create_expense(db, user.id, expense(status="paid"))
    already = create_expense(db, user.id, expense(status="approved"))

    result = bulk_update_status(db, user.id, [pending.id, paid.id, already.id, 9999], "approved", role="staff")

    assert result == {"modified_count": 1, "skipped_ids": [paid.id, already.id, 9999]}
    assert pending.status == "approved"
    assert paid.status == "paid"

    with pytest.raises(ValidationError):
        bulk_update_status(db, user.id, [], "approved", role="staff")
    with pytest.raises(ValidationError):
        bulk_update_status(db, user.id, [pending.id], "archived", role="staff")


def test_summary_and_analytics():
    db = create_session()
    user, _ = seed(db)
    create_expense(db, user.id, expense("software", "100.10", date(2024, 1, 3), status="approved", tax_deductible=True))
    create_expense(db, user.id, expense("software", "0.20", date(2024, 1, 20)))
    create_expense(db, user.id, expense("travel", "300.00", date(2024, 2, 1), status="paid"))
    create_expense(db, user.id, expense("hosting", "5.00", date(2023, 12, 31), status="rejected"))

    summary = get_expense_summary(db, user.id)
    assert summary == {
        "total_expenses": Decimal("405.30"),
        "count": 4,
        "approved": Decimal("100.10"),
        "pending": Decimal("0.20"),
        "paid": Decimal("300.00"),
        "rejected": Decimal("5.00"),
        "tax_deductible": Decimal("100.10"),
    }
    assert get_expense_summary(db, user.id, start_date=date(2024, 1, 1))["count"] == 3

    by_category = get_expenses_by_category(db, user.id)
    assert [(row["category"], row["total"], row["count"]) for row in by_category] == [
        ("travel", Decimal("300.00"), 1),
        ("software", Decimal("100.30"), 2),
        ("hosting", Decimal("5.00"), 1),
    ]

    by_month = get_expenses_by_month(db, user.id)
    assert [(row["year"], row["month"], row["total"]) for row in by_month] == [
        (2023, 12, Decimal("5.00")),
        (2024, 1, Decimal("100.30")),
        (2024, 2, Decimal("300.00")),
    ]


@pytest.fixture()
def api():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestingSessionLocal() as db:
        db.add(User(id=1, name="Test Admin", email="admin@billing.local", password_hash="x", role="admin"))
        db.commit()

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    Base.metadata.drop_all(engine)


def test_expense_endpoints(api):
    created = api.post(
        "/api/expenses",
        json={"category": "hosting", "description": "VPS", "amount": "42.50", "expense_date": "2024-04-02"},
    )
    assert created.status_code == 201
    expense_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    assert api.post("/api/expenses", json={"category": "hosting", "description": "VPS", "amount": "0"}).status_code == 422
    assert api.post("/api/expenses", json={"category": "snacks", "description": "x", "amount": "1"}).status_code == 422

    updated = api.put(f"/api/expenses/{expense_id}", json={"vendor": "Linode", "status": "approved"})
    assert updated.status_code == 200
    assert updated.json()["vendor"] == "Linode"

    bulk = api.post("/api/expenses/bulk/update-status", json={"expense_ids": [expense_id], "status": "paid"})
    assert bulk.json() == {"modified_count": 1, "skipped_ids": []}

    summary = api.get("/api/expenses/summary/all").json()
    assert Decimal(summary["paid"]) == Decimal("42.50")
    assert summary["count"] == 1

    by_category = api.get("/api/expenses/analytics/by-category").json()
    assert by_category[0]["category"] == "hosting"
    by_month = api.get("/api/expenses/analytics/by-month").json()
    assert (by_month[0]["year"], by_month[0]["month"]) == (2024, 4)

    listed = api.get("/api/expenses", params={"status": "paid"})
    assert [item["id"] for item in listed.json()] == [expense_id]

    assert api.delete(f"/api/expenses/{expense_id}").status_code == 204
    assert api.get(f"/api/expenses/{expense_id}").status_code == 404


def test_viewer_cannot_record_expenses(api):
    app.dependency_overrides[get_current_user] = lambda: User(
        id=1, name="Viewer", email="viewer@billing.local", password_hash="x", role="viewer", is_active=True
    )

    assert api.get("/api/expenses").status_code == 200
    denied = api.post("/api/expenses", json={"category": "travel", "description": "Taxi", "amount": "12.00"})
    assert denied.status_code == 403
