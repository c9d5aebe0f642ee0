"""
Pytest configuration and fixtures for tests.

Every test gets its own application and in-memory store, so nothing leaks
between tests.
"""

import os

# main builds a module-level app on import; keep it small and quiet
os.environ.setdefault("SEED_SAMPLE_DATA", "false")
os.environ.setdefault("JWT_SECRET", "test-module-secret")

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Database
from main import create_app
from schemas import Category, SweetCreate
from security import pwd_context

TEST_SECRET = "test-secret-0123456789abcdef"
PASSWORD = "password123"


@pytest.fixture(scope="session", autouse=True)
def fast_hashing():
    """Cheap bcrypt rounds; hashing cost is irrelevant to what is tested."""
    pwd_context.update(bcrypt__rounds=4)
    yield


@pytest.fixture
def settings():
    return Settings(environment="test", jwt_secret=TEST_SECRET, seed_sample_data=False)


@pytest.fixture
def db():
    return Database()


@pytest.fixture
def app(settings, db):
    return create_app(settings=settings, db=db)


@pytest.fixture
def client(app):
    return TestClient(app)


def register(client, username, email, role="customer", password=PASSWORD):
    """Register a user through the API and return the response body."""
    response = client.post(
        "/auth/register",
        json={"username": username, "email": email, "password": password, "role": role},
    )
    assert response.status_code == 200, response.text
    return response.json()


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token(client):
    return register(client, "admin", "admin@example.com", role="admin")["token"]


@pytest.fixture
def customer_token(client):
    return register(client, "customer", "customer@example.com")["token"]


@pytest.fixture
def admin_headers(admin_token):
    return auth_header(admin_token)


@pytest.fixture
def customer_headers(customer_token):
    return auth_header(customer_token)


@pytest.fixture
def make_sweet(db):
    """Insert a sweet straight into the store."""

    def _make(name="Gulab Jamun", category=Category.MITHAI, price="180.00", quantity=10,
              description="Milk-solid balls in sugar syrup"):
        return db.create_sweet(
            SweetCreate(name=name, category=category, description=description, price=price, quantity=quantity)
        )

    return _make
