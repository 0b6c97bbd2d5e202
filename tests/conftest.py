"""
Pytest fixtures for expense client tests.
"""
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from expense_client.config import Settings
from expense_client.integrations.token_storage import MemoryTokenStorage
from expense_client.main import ExpenseClient
from expense_client.models.user import Identity, TokenPair
from expense_client.services.session_service import SessionStore, reset_session_store

from fake_backend import BASE_URL, FakeBackend


@pytest.fixture(autouse=True)
def _reset_session_store():
    yield
    reset_session_store()


@pytest.fixture
def mock_identity():
    """Identity as returned by /auth/me/."""
    return Identity(
        id="user-1",
        email="test@example.com",
        first_name="Test",
        last_name="User",
        is_email_verified=True,
        theme_preference="dark",
        date_joined="2025-01-01T00:00:00Z",
    )


@pytest.fixture
def mock_tokens():
    return TokenPair(access="access-1", refresh="refresh-1")


@pytest.fixture
def storage():
    return MemoryTokenStorage()


@pytest.fixture
def refresher():
    """Refresh call that always succeeds with a new access token."""
    return AsyncMock(return_value=TokenPair(access="access-2"))


@pytest.fixture
def session_store(storage, refresher):
    return SessionStore(storage, refresher)


@pytest.fixture
def mock_expense_page():
    return {
        "count": 2,
        "results": [
            {
                "id": "exp-1",
                "title": "Groceries",
                "amount": "42.50",
                "currency": "USD",
                "category": "food",
                "expense_date": "2025-02-01",
            },
            {
                "id": "exp-2",
                "title": "Bus pass",
                "amount": "30.00",
                "currency": "USD",
                "category": "transport",
                "expense_date": "2025-02-02",
            },
        ],
    }


@pytest.fixture
def mock_api():
    """ApiClient stand-in whose send() returns canned responses."""
    api = MagicMock()
    api.send = AsyncMock()
    return api


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def logged_in_storage(backend):
    """Durable storage of a user who logged in earlier."""
    return MemoryTokenStorage({
        "access_token": backend.issue_access(),
        "refresh_token": backend.refresh_token,
    })


def make_client(backend: FakeBackend, storage) -> ExpenseClient:
    http = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=backend.app),
        base_url=BASE_URL,
    )
    settings = Settings(api_url=BASE_URL, page_size=20, cache_stale_seconds=60)
    return ExpenseClient(settings=settings, storage=storage, http=http)


@pytest.fixture
def client(backend, storage):
    """Client with no stored session."""
    return make_client(backend, storage)


@pytest.fixture
def logged_in_client(backend, logged_in_storage):
    """Client whose storage holds a valid session (identity not probed yet)."""
    return make_client(backend, logged_in_storage)
