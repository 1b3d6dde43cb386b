import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

# The settings object requires these; tests never talk to the configured database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./next_message.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")

from app.config import settings  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import Database, get_db  # noqa: E402
from app.dependencies import get_cache_manager, get_rate_limiter  # noqa: E402
from app.main import app  # noqa: E402
from app.models import metadata  # noqa: E402
from app.models.users import users  # noqa: E402

# Set TEST_DATABASE_URL to run against PostgreSQL; each test otherwise gets
# its own SQLite file.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

if TEST_DATABASE_URL and TEST_DATABASE_URL.startswith("postgresql://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

if TEST_DATABASE_URL and TEST_DATABASE_URL == settings.async_database_url:
    raise RuntimeError(
        "TEST_DATABASE_URL is the application database; tests drop every table. "
        "Point it at a separate test database."
    )


@pytest_asyncio.fixture
async def test_database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Fresh schema on a database handle built like the application's."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    database = Database(url, poolclass=NullPool)

    async with database.engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield database

    async with database.engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await database.dispose()


@pytest_asyncio.fixture
async def db_session(test_database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_database.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(
    test_database: Database, db_session: AsyncSession
) -> AsyncGenerator[AsyncClient, None]:
    """Test HTTP client sharing ``db_session`` with the test, without Redis."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.state.database = test_database
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None
    app.dependency_overrides[get_rate_limiter] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


UserFactory = Callable[..., Awaitable[str]]


@pytest.fixture
def create_user(db_session: AsyncSession) -> UserFactory:
    """Insert a profile and return its uid."""

    async def _create_user(
        uid: str,
        username: str | None = None,
        display_name: str | None = None,
        email: str | None = None,
    ) -> str:
        now = datetime.now(UTC)
        await db_session.execute(
            insert(users).values(
                uid=uid,
                email=email if email is not None else f"{uid}@example.com",
                username=username or uid,
                display_name=display_name or (username or uid).title(),
                links=[],
                created_at=now,
                last_seen=now,
            )
        )
        await db_session.commit()
        return uid

    return _create_user


def _bearer_headers(uid: str) -> dict:
    token = create_access_token(data={"sub": uid}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers_for() -> Callable[[str], dict]:
    """Build bearer headers for any uid."""
    return _bearer_headers


@pytest.fixture
async def alice(create_user: UserFactory) -> str:
    return await create_user("uid-alice", "alice", "Alice")


@pytest.fixture
async def bob(create_user: UserFactory) -> str:
    return await create_user("uid-bob", "bob", "Bob")


@pytest.fixture
async def carol(create_user: UserFactory) -> str:
    return await create_user("uid-carol", "carol", "Carol")


@pytest.fixture
def auth_headers(alice: str) -> dict:
    """Authentication headers for the default test user (alice)."""
    return _bearer_headers(alice)
