"""Pytest configuration and fixtures for PropInspect tests."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from propinspect.main import app
from propinspect.models.base import Base
# Import models to ensure they are registered with Base.metadata
from propinspect.models import Collection, DocumentRecord  # noqa: F401
from propinspect.core.deps import get_db
from propinspect.services.document_store import SQLDocumentStore

from factories import NOW

# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def now() -> int:
    return NOW


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine with shared connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with database override."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with async_session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def inspections(db_session: AsyncSession) -> SQLDocumentStore:
    return SQLDocumentStore(db_session, Collection.INSPECTIONS)


@pytest.fixture
def templates(db_session: AsyncSession) -> SQLDocumentStore:
    return SQLDocumentStore(db_session, Collection.TEMPLATES)


@pytest.fixture
def deficiencies(db_session: AsyncSession) -> SQLDocumentStore:
    return SQLDocumentStore(db_session, Collection.DEFICIENCIES)


@pytest.fixture
def archive(db_session: AsyncSession) -> SQLDocumentStore:
    return SQLDocumentStore(db_session, Collection.ARCHIVE)
