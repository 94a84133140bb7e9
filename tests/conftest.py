"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- pysqlite's own transaction handling is switched off and BEGIN is emitted
  by SQLAlchemy instead, so SAVEPOINTs (used by the repositories to turn
  unique violations into conflicts) behave as on PostgreSQL.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- The Redis cache is disabled by setting cache._redis = None; the CacheManager
  already handles a None _redis gracefully (every read is a miss, writes are
  skipped), so tests exercise real service logic without Redis.
  Tests that need a live cache request the ``fake_redis`` fixture, which
  swaps in an in-process fakeredis client for the duration of the test.
- bcrypt runs with the minimum cost factor; hashing at production cost would
  dominate the suite's runtime.
"""
import os

os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import itertools
from datetime import datetime, timezone

import pytest
import pytest_asyncio
from fakeredis import aioredis
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.cache import cache
from conduit.database import Base, commit, get_db, rollback
from conduit.main import app
from conduit.middleware import install_query_counter
from conduit.repositories import InMemoryStore
from conduit.wiring import in_memory_services, sql_services

import conduit.models  # noqa: F401  (registers the tables on Base.metadata)

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine_test.sync_engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine_test.sync_engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await rollback(session)
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Deterministic collaborators
# ---------------------------------------------------------------------------

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when a test tells it to."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


def suffix_sequence(prefix: str = "s"):
    """Suffix generator yielding ``s1``, ``s2``, ... in order."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def fake_redis():
    """Enable the cache against an in-process fake Redis for one test."""
    client = aioredis.FakeRedis(decode_responses=True)
    cache._redis = client
    yield client
    cache._redis = None
    await client.flushall()
    await client.aclose()


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store(clock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def services(store, clock):
    """Service layer over the in-memory repositories."""
    return in_memory_services(store, clock=clock, suffix_generator=suffix_sequence())


@pytest.fixture
def sql(db_session, clock):
    """Service layer over the SQLAlchemy repositories (shared test session)."""
    return sql_services(db_session, clock=clock, suffix_generator=suffix_sequence())


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.

    Redis is disabled (see ``setup_db``) so that tests are deterministic and
    do not depend on external infrastructure.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# HTTP helpers
# ---------------------------------------------------------------------------

async def register(client: AsyncClient, username: str, password: str = "secret123") -> dict:
    """Register *username* via the API and return the ``user`` payload."""
    resp = await client.post("/api/users", json={
        "user": {
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        }
    })
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


def auth(user: dict) -> dict:
    return {"Authorization": f"Token {user['token']}"}


async def publish(client: AsyncClient, user: dict, title: str, tags=None, **fields) -> dict:
    """Create an article via the API and return the ``article`` payload."""
    article = {
        "title": title,
        "description": fields.get("description", f"About {title}"),
        "body": fields.get("body", f"Body of {title}"),
        "tagList": tags or [],
    }
    resp = await client.post("/api/articles", json={"article": article}, headers=auth(user))
    assert resp.status_code == 201, resp.text
    return resp.json()["article"]
