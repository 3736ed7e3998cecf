import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Load environment variables from .env file
load_dotenv()
# Tokens minted by the suite are signed with this key unless .env provides one
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-not-for-production")

from app.config import settings
from app.core.redis_client import get_cache_manager
from app.core.security import create_access_token
from app.database import build_async_url, get_db
from app.main import app
from app.models import metadata
from tests.factories import insert_appointment_type, insert_provider

# Tests run against in-memory SQLite unless TEST_DATABASE_URL points elsewhere.
# It MUST NOT be the production database: tables are dropped after each test.
TEST_DATABASE_URL = build_async_url(os.getenv("TEST_DATABASE_URL") or "sqlite:///:memory:")
IS_SQLITE = TEST_DATABASE_URL.startswith("sqlite")

if not IS_SQLITE and TEST_DATABASE_URL == build_async_url(settings.database_url):
    raise RuntimeError("TEST_DATABASE_URL must not be the application database")


@pytest.fixture(autouse=True)
def scheduling_settings(monkeypatch):
    """SQLite only understands its own isolation levels; keep it on the default."""
    if IS_SQLITE:
        monkeypatch.setattr(settings, "scheduling_isolation_level", None)
    monkeypatch.setattr(settings, "slot_interval_minutes", 15)
    monkeypatch.setattr(settings, "max_slot_candidates", 200)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    if IS_SQLITE:
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with the cache disabled."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def clinic_id() -> UUID:
    return uuid4()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def patient_id() -> UUID:
    return uuid4()


@pytest.fixture
def auth_headers(user_id, clinic_id) -> dict:
    """Create authentication headers for a clinic staff member."""
    token = create_access_token(
        data={"sub": str(user_id), "clinic_id": str(clinic_id)},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def cleaning_type_id(db_session, clinic_id) -> UUID:
    """60-minute type that uses the provider's buffers."""
    return await insert_appointment_type(db_session, clinic_id)


@pytest_asyncio.fixture
async def provider_id(db_session, clinic_id, cleaning_type_id) -> UUID:
    """Provider working Mon-Fri 08:00-18:00 in Sao Paulo with 15-minute buffers."""
    return await insert_provider(db_session, clinic_id, [cleaning_type_id])
