"""
Pytest configuration and shared fixtures.

Test environment variables are set here before any app imports so the
module-level settings, engine and logging pick them up.
"""

import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_messaging.db")
os.environ.setdefault("LOG_LEVEL", "INFO")
os.environ.setdefault("JWT_SECRET", "test-secret-key-with-at-least-32-characters")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from messaging_api.config import get_settings  # noqa: E402

get_settings.cache_clear()

from messaging_api.auth import require_admin  # noqa: E402
from messaging_api.main import app  # noqa: E402
from messaging_api.models import ContactMessage, MessageStatus, Recipient  # noqa: E402
from messaging_api.publisher import Publisher, get_publisher  # noqa: E402
from messaging_api.repository import Repository  # noqa: E402
from messaging_api.storage import Base, engine, get_repository  # noqa: E402


# =============================================================================
# Test Doubles
# =============================================================================

class MockRepository(Repository):
    """
    Repository double with per-method behavior injection.

    Assign a callable to ``funcs[<method name>]`` to control what a method
    does; unset methods return None. Every call is recorded in ``calls``.
    """

    def __init__(self):
        self.funcs = {}
        self.calls = []

    def _call(self, name, *args):
        self.calls.append((name, args))
        func = self.funcs.get(name)
        if func is not None:
            return func(*args)
        return None

    def called(self, name) -> list:
        return [args for call, args in self.calls if call == name]

    def create_contact_message(self, message):
        return self._call("create_contact_message", message)

    def get_contact_messages(self):
        return self._call("get_contact_messages")

    def get_contact_message_by_id(self, message_id):
        return self._call("get_contact_message_by_id", message_id)

    def update_contact_message_status(self, message_id, status, last_error=None):
        return self._call("update_contact_message_status", message_id, status, last_error)

    def get_all_recipients(self):
        return self._call("get_all_recipients")

    def get_active_recipients(self):
        return self._call("get_active_recipients")

    def get_recipient_by_id(self, recipient_id):
        return self._call("get_recipient_by_id", recipient_id)

    def create_recipient(self, recipient):
        return self._call("create_recipient", recipient)

    def update_recipient(self, recipient):
        return self._call("update_recipient", recipient)

    def delete_recipient(self, recipient_id):
        return self._call("delete_recipient", recipient_id)


class MockPublisher(Publisher):
    """
    Publisher double recording events.

    Set ``publish_func`` to inject failures and ``delay`` to make each
    publish wait on the event loop before returning.
    """

    def __init__(self):
        self.publish_func = None
        self.delay = 0.0
        self.events = []
        self.healthy = True

    async def publish(self, event):
        self.events.append(event)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.publish_func is not None:
            self.publish_func(event)

    async def ping(self) -> bool:
        return self.healthy


def make_recipient(recipient_id=1, email="admin@example.com", name="Admin User", is_active=True) -> Recipient:
    now = datetime.now(timezone.utc)
    return Recipient(
        id=recipient_id,
        email=email,
        name=name,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )


def make_message(message_id=1, status=MessageStatus.PENDING.value, **fields) -> ContactMessage:
    now = datetime.now(timezone.utc)
    values = {
        "name": "John Doe",
        "email": "john@example.com",
        "subject": "Test Subject",
        "message": "Test message",
    }
    values.update(fields)
    return ContactMessage(
        id=message_id,
        status=status,
        attempts=0,
        created_at=now,
        updated_at=now,
        **values,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def repo() -> MockRepository:
    return MockRepository()


@pytest.fixture
def publisher() -> MockPublisher:
    return MockPublisher()


@pytest.fixture
def client(repo, publisher):
    """Test client wired to the mocks, with admin auth bypassed."""
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_publisher] = lambda: publisher
    app.dependency_overrides[require_admin] = lambda: {"sub": "admin"}

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def fresh_db():
    """Create tables before the test and drop them afterwards."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest_asyncio.fixture
async def async_client(repo, publisher):
    """Async client on the same mocks, for requests that must run concurrently."""
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_publisher] = lambda: publisher
    app.dependency_overrides[require_admin] = lambda: {"sub": "admin"}

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
