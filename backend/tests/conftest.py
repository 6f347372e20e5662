"""
DoggyClub Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own SQLite file (aiosqlite) with the full schema,
       so services run real SQL, constraints and cascades included.

SQLite needs two tweaks to behave like the production database here:
    - foreign_keys=ON, or ON DELETE CASCADE is ignored
    - pysqlite's own transaction handling disabled and BEGIN emitted by
      SQLAlchemy, or SAVEPOINT (begin_nested) does not work

Fixture Hierarchy:
    engine ─┬─ db_session ── user_factory / dog_factory / location_factory
            └─ test_client (get_db_session overridden onto the same engine)
"""

import os
import tempfile

# Override settings for testing BEFORE any app imports
os.environ["DATABASE_URL"] = (
    "sqlite+aiosqlite:///" + os.path.join(tempfile.mkdtemp(prefix="doggyclub_test_"), "app.db")
)
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"

from datetime import datetime, timedelta, timezone  # noqa: E402
from itertools import count  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.database import Base, get_db_session  # noqa: E402
from app.models import DeviceLocation, Dog, User, Visibility  # noqa: E402

_seq = count(1)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session whose work is rolled back after the test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ══════════════════════════════════════════════════════════════════════════
# Row factories
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def user_factory(db_session):
    async def create(visibility: Visibility = Visibility.PUBLIC, username: str = None) -> User:
        n = next(_seq)
        user = User(
            username=username or f"owner{n}",
            email=f"owner{n}@example.com",
            visibility=visibility.value,
        )
        db_session.add(user)
        await db_session.flush()
        return user

    return create


@pytest_asyncio.fixture
async def dog_factory(db_session, user_factory):
    async def create(owner: User = None, name: str = None, **fields) -> Dog:
        owner = owner or await user_factory()
        dog = Dog(
            user_id=owner.id,
            name=name or f"Dog{next(_seq)}",
            breed=fields.pop("breed", "Beagle"),
            age=fields.pop("age", 3),
            **fields,
        )
        db_session.add(dog)
        await db_session.flush()
        return dog

    return create


@pytest_asyncio.fixture
async def location_factory(db_session):
    """Place a dog at a point, optionally with an old timestamp."""
    async def create(dog: Dog, latitude: float, longitude: float, age: timedelta = timedelta(0)) -> DeviceLocation:
        location = DeviceLocation(
            dog_id=dog.id,
            latitude=latitude,
            longitude=longitude,
            updated_at=datetime.now(timezone.utc) - age,
        )
        db_session.add(location)
        await db_session.flush()
        return location

    return create


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient talking to the FastAPI app through ASGITransport.

    Each request gets its own committed session on the test engine, exactly
    like get_db_session does in production.
    """
    from app.main import app

    async def _session_override():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _session_override
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
