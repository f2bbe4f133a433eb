"""
Shared fixtures.

Store-level tests run against a fresh in-memory SQLite database per test.
HTTP tests build a full application with TestClient, which runs the
lifespan hook (schema creation and the bootstrap admin).
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from chatserver.core.config import Settings
from chatserver.core.security import PasswordHasher
from chatserver.db.session import Database
from chatserver.services.credential_store import CredentialStore
from chatserver.services.message_store import MessageStore
from chatserver.services.sync_engine import SyncQueryEngine

# sha512_crypt minimum; keeps the suite fast
TEST_HASH_ROUNDS = 1000

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "admin-secret"


class FakeClock:
    """Deterministic epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1) -> int:
        self.now += ms
        return self.now


def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        PASSWORD_HASH_ROUNDS=TEST_HASH_ROUNDS,
        ADMIN_USERNAME=ADMIN_USERNAME,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        TRUST_CLIENT_TIMESTAMPS=False,
        SYNC_INITIAL_LIMIT=100,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest_asyncio.fixture
async def database(settings):
    """Fresh in-memory database with the schema created."""
    db = Database(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def hasher():
    return PasswordHasher(TEST_HASH_ROUNDS)


@pytest.fixture
def credential_store(database, hasher):
    return CredentialStore(database, hasher)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def message_store(database, clock):
    return MessageStore(database, clock=clock)


@pytest.fixture
def sync_engine(database):
    return SyncQueryEngine(database)


@pytest.fixture
def client(settings):
    """TestClient with lifespan running; admin credentials are ADMIN_*."""
    from main import create_application

    with TestClient(create_application(settings)) as test_client:
        yield test_client
