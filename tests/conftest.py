"""
Pytest fixtures for identity service tests.

Settings come from environment variables, so they are set here before any
identity_core module is imported. Tests share one file-backed SQLite
database (in-memory SQLite is per-connection); tables are created and
dropped around each test that asks for the database.
"""

import os
import tempfile
from typing import AsyncGenerator

import bcrypt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name

TEST_SECRET_KEY = "test-secret-key-for-testing-only-0123456789"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass123!"
ADMIN_PASSWORD_HASH = bcrypt.hashpw(ADMIN_PASSWORD.encode(), bcrypt.gensalt(rounds=10)).decode()

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = TEST_SECRET_KEY
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["ADMIN_EMAIL"] = ADMIN_EMAIL
os.environ["ADMIN_PASSWORD_HASH"] = ADMIN_PASSWORD_HASH
os.environ["EMAIL_TEST_MODE"] = "true"
os.environ["RATE_LIMIT_ENABLED"] = "true"

from identity_core.config import get_settings
get_settings.cache_clear()

from identity_core.database import async_session_maker, engine
from identity_core.kernel.identity.credential_store import AdminAccount, CredentialStore
from identity_core.kernel.identity.jwt import TokenService
from identity_core.kernel.identity.password import PasswordHasher
from identity_core.kernel.models import Base

from tests.helpers import FakeClock, FakeMonotonic, RecordingMailer


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=10)


@pytest.fixture
def admin_password() -> str:
    return ADMIN_PASSWORD


@pytest.fixture
def admin_account() -> AdminAccount:
    return AdminAccount(email=ADMIN_EMAIL, password_hash=ADMIN_PASSWORD_HASH)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(secret_key=TEST_SECRET_KEY)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest_asyncio.fixture
async def db_engine():
    """Create the schema on the test database, drop it afterwards."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def credential_store(db_session, admin_account, hasher) -> CredentialStore:
    return CredentialStore(db_session, admin=admin_account, hasher=hasher)


@pytest_asyncio.fixture
async def client(db_engine, mailer) -> AsyncGenerator[AsyncClient, None]:
    """
    Async client against the app with fresh services.

    ASGITransport does not run the lifespan, so services are built here. The
    mailer is swapped for a recording one so tests can read reset tokens.
    """
    from identity_core.main import app, configure_services

    configure_services(app, get_settings())
    app.state.email_service = mailer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp DB file after test run."""
    for suffix in ("", "-wal", "-shm"):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            os.unlink(path)
