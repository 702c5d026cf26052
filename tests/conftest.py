"""
Shared pytest fixtures for the Accessibility Audit Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / auth_headers: identity mirror rows and bearer headers
    - admin_headers, customer_headers, tester_headers, other_tester_headers
    - project: a pending project submitted by the default customer
"""

import pytest

from app import create_app
from app.models import db as _db
from app.models.user import User
from app.services.jwt_service import generate_access_token

ADMIN_ID = "admin-1"
CUSTOMER_ID = "customer-1"
OTHER_CUSTOMER_ID = "customer-2"
TESTER_ID = "tester-1"
OTHER_TESTER_ID = "tester-2"

PROJECT_PAYLOAD = {
    "project_name": "Bank Portal Audit",
    "service_category": "website",
    "target_url": "https://bank.example.com",
    "accessibility_standard": "WCAG 2.1 AA",
    "service_package": "hybrid",
    "devices": ["desktop", "ios"],
    "price_amount": 1500000,
    "price_currency": "THB",
}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Identity helpers ─────────────────────────────────────────────────────


def _make_user(external_id, role, *, first_name=None, last_name=None, status="active"):
    user = User(
        external_id=external_id,
        role=role,
        role_assigned=role is not None,
        first_name=first_name,
        last_name=last_name,
        email=f"{external_id}@example.com",
        status=status,
    )
    _db.session.add(user)
    _db.session.commit()
    return user


def _auth_headers(user_id, role):
    return {"Authorization": f"Bearer {generate_access_token(user_id, role)}"}


@pytest.fixture()
def make_user():
    """Factory: create and commit a User mirror row."""
    return _make_user


@pytest.fixture()
def auth_headers():
    """Factory: bearer-token headers for an arbitrary (user_id, role)."""
    return _auth_headers


@pytest.fixture()
def admin_headers():
    _make_user(ADMIN_ID, "admin", first_name="Ada", last_name="Admin")
    return _auth_headers(ADMIN_ID, "admin")


@pytest.fixture()
def customer_headers():
    _make_user(CUSTOMER_ID, "customer", first_name="Cora", last_name="Customer")
    return _auth_headers(CUSTOMER_ID, "customer")


@pytest.fixture()
def tester_headers():
    _make_user(TESTER_ID, "tester", first_name="Tess", last_name="Tester")
    return _auth_headers(TESTER_ID, "tester")


@pytest.fixture()
def other_tester_headers():
    _make_user(OTHER_TESTER_ID, "tester", first_name="Theo", last_name="Tester")
    return _auth_headers(OTHER_TESTER_ID, "tester")


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def project(client, customer_headers):
    """Submit and return a pending project via the API."""
    res = client.post("/api/v1/projects", json=PROJECT_PAYLOAD, headers=customer_headers)
    assert res.status_code == 201
    return res.get_json()


@pytest.fixture()
def assigned_project(client, project, admin_headers, tester_headers):
    """Project with TESTER_ID assigned as lead (status auto-opened)."""
    res = client.post(
        f"/api/v1/admin/projects/{project['id']}/testers",
        json={"tester_id": TESTER_ID, "role": "lead"},
        headers=admin_headers,
    )
    assert res.status_code == 201
    return res.get_json()
