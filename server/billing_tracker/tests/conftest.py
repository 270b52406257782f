import pytest

from billing_tracker.auth import get_current_user
from billing_tracker.main import app
from billing_tracker.models import User


@pytest.fixture(autouse=True)
def override_auth(request):
    if request.node.get_closest_marker("real_auth"):
        yield
        return

    app.dependency_overrides[get_current_user] = lambda: User(
        id=1,
        name="Test Admin",
        email="admin@billing.local",
        password_hash="x",
        role="admin",
        is_active=True,
    )
    yield
    app.dependency_overrides.pop(get_current_user, None)
