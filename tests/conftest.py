from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from finanalyst.core.config import Settings
from finanalyst.core.security import get_password_hash
from finanalyst.db.memory import InMemoryTransactionStore, InMemoryUserStore
from finanalyst.main import create_app

TEST_SECRET = "test-secret"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def sample_transactions():
    return [
        {"id": 1, "date": datetime(2024, 1, 15), "amount": 5000.0, "category": "Salary", "status": "completed", "user_id": "user_001"},
        {"id": 2, "date": datetime(2024, 1, 20), "amount": 1200.0, "category": "Revenue", "status": "completed", "user_id": "user_001"},
        {"id": 3, "date": datetime(2024, 2, 3), "amount": 300.0, "category": "Expense", "status": "pending", "user_id": "user_001"},
        {"id": 4, "date": datetime(2024, 2, 10), "amount": 450.5, "category": "Expense", "status": "completed", "user_id": "user_001"},
        {"id": 5, "date": datetime(2024, 3, 1), "amount": 800.0, "category": "Revenue", "status": "pending", "user_id": "user_001"},
        {"id": 1, "date": datetime(2024, 1, 5), "amount": 75.25, "category": "Expense", "status": "failed", "user_id": "user_002"},
        {"id": 2, "date": datetime(2024, 2, 28), "amount": 2000.0, "category": "Revenue", "status": "completed", "user_id": "user_002"},
    ]


@pytest.fixture
def settings() -> Settings:
    return Settings(STORE_BACKEND="memory", JWT_SECRET_KEY=TEST_SECRET, LOG_LEVEL="WARNING")


@pytest.fixture
def transaction_store() -> InMemoryTransactionStore:
    return InMemoryTransactionStore(sample_transactions())


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def app(settings, transaction_store, user_store):
    return create_app(settings, transactions=transaction_store, users=user_store)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def register(client: TestClient, email: str, password: str = "secret123", name: str = "Test User") -> dict:
    response = client.post("/api/auth/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_token(client, user_store) -> str:
    user_store.put({
        "user_id": "admin-1",
        "name": "Admin",
        "email": "admin@example.com",
        "password_hash": get_password_hash("adminpass"),
        "role": "admin",
        "created_at": "2024-01-01T00:00:00",
    })
    response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "adminpass"})
    return response.json()["data"]["token"]
