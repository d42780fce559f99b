"""
Civilla - Shared Test Fixtures
Provides reusable fixtures for identity, database and seeded case data.
"""

import os
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport

# Configure test environment BEFORE importing app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_civilla.db"
os.environ["LOG_LEVEL"] = "WARNING"

from civilla.main import app
from civilla.core.config import get_settings
from civilla.core.security import COOKIE_USER_ID


TEST_USER_ID = "user-test-0001"
OTHER_USER_ID = "user-test-0002"


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture(scope="function", autouse=True)
async def setup_test_database():
    """Create database tables before each test and drop them after."""
    from civilla.core.database import Base, close_db, get_engine
    from civilla.models import models  # noqa: F401  registers the mappers

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await close_db()

    for db_file in ["test_civilla.db", "test_civilla.db-shm", "test_civilla.db-wal"]:
        if os.path.exists(db_file):
            try:
                os.remove(db_file)
            except PermissionError:
                pass


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Anonymous test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def authenticated_client() -> AsyncGenerator[AsyncClient, None]:
    """Test client signed in as TEST_USER_ID via the session cookie."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        cookies={COOKIE_USER_ID: TEST_USER_ID},
    ) as ac:
        yield ac


@pytest.fixture
def test_user_id() -> str:
    return TEST_USER_ID


@pytest.fixture
def other_user_id() -> str:
    return OTHER_USER_ID


@pytest.fixture
def settings():
    """Get test settings."""
    return get_settings()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
async def db_session():
    """Create a test database session."""
    from civilla.core.database import get_db_session
    async with get_db_session() as session:
        yield session


@pytest.fixture
def make_case():
    """
    Factory that inserts a user (if needed) and a case, returns the case id.

        case_id = await make_case(title="Smith custody", has_children=True)
    """
    from civilla.core.database import get_db_session
    from civilla.models.models import Case, User

    async def _make_case(
        user_id: str = TEST_USER_ID,
        title: str = "Test Case",
        starting_point: str | None = None,
        has_children: bool = False,
    ) -> str:
        async with get_db_session() as session:
            if await session.get(User, user_id) is None:
                session.add(User(id=user_id))
                await session.flush()
            case = Case(
                user_id=user_id,
                title=title,
                starting_point=starting_point,
                has_children=has_children,
            )
            session.add(case)
            await session.flush()
            return case.id

    return _make_case


@pytest.fixture
def add_rows():
    """Insert arbitrary model instances in one committed session."""
    from civilla.core.database import get_db_session

    async def _add_rows(*rows) -> None:
        async with get_db_session() as session:
            session.add_all(rows)

    return _add_rows
