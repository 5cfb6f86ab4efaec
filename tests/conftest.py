import os
import uuid
from contextlib import contextmanager
from typing import AsyncGenerator

# Settings are cached at import time; pin the test environment first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Optional overrides (e.g. TEST_DATABASE_URL pointing at a local Postgres)
env_test_path = os.path.join(os.path.dirname(__file__), ".env.test")
if os.path.exists(env_test_path):
    load_dotenv(env_test_path, override=True)

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.db.base import Base
from libs.db.config import build_engine, build_session_factory
from libs.db.session import atomic, get_async_db
from services.marketplace_service.app.main import app
from services.marketplace_service.models import LoyaltyTransactionType
from services.marketplace_service.services import loyalty_ops

get_settings.cache_clear()
settings = get_settings()

DEFAULT_USER_ID = "user-test-1"


# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------


def make_user(user_id=None, role="authenticated", email="buyer@example.com"):
    return AuthUser(
        user_id=user_id or f"user-{uuid.uuid4().hex[:8]}", email=email, role=role
    )


def make_admin_user(user_id="admin-test-1"):
    return make_user(user_id=user_id, role="admin", email="admin@example.com")


@contextmanager
def override_auth(target_app, user: AuthUser):
    """Temporarily authenticate every request as ``user``."""
    previous = target_app.dependency_overrides.get(get_current_user)
    target_app.dependency_overrides[get_current_user] = lambda: user
    try:
        yield user
    finally:
        if previous is None:
            target_app.dependency_overrides.pop(get_current_user, None)
        else:
            target_app.dependency_overrides[get_current_user] = previous


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------


async def persist(db: AsyncSession, *instances):
    """Insert rows and commit. Values stay loaded (expire_on_commit=False)."""
    db.add_all(instances)
    await db.commit()
    return instances[0] if len(instances) == 1 else instances


async def grant_points(db: AsyncSession, user_id: str, points: int):
    async with atomic(db):
        txn = await loyalty_ops.credit(
            db,
            user_id=user_id,
            points=points,
            idempotency_key=f"test-grant-{uuid.uuid4().hex}",
            transaction_type=LoyaltyTransactionType.ADJUSTMENT,
            description="Test grant",
        )
    return txn


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """
    One database per test: a throwaway SQLite file, or TEST_DATABASE_URL
    when set (tables are created and dropped around the test).
    """
    db_url = os.environ.get("TEST_DATABASE_URL") or (
        f"sqlite+aiosqlite:///{tmp_path / 'marketplace_test.db'}"
    )
    engine = build_engine(db_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session on the test database.

    SQLite takes the write lock when a transaction begins, so tests that
    mix this session with HTTP calls commit before calling the API.
    """
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient bound to the marketplace app.

    Each request gets its own session, as in production, and runs as
    DEFAULT_USER_ID unless a test wraps calls in ``override_auth``.
    """

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _get_test_db
    app.dependency_overrides[get_current_user] = lambda: make_user(
        user_id=DEFAULT_USER_ID
    )

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def as_admin():
    """Context manager factory: ``with as_admin(): ...`` runs calls as an admin."""
    return lambda: override_auth(app, make_admin_user())
