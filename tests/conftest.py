"""
Test infrastructure for the blog service.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db / get_cache dependencies are overridden so every request
  uses the test session factory and a CacheManager with no Redis client
  (reads miss, writes are no-ops).  The lifespan never runs under
  ASGITransport, so no real Data instance is built.
- All tables are created fresh before each test and dropped after.
- A global OpenTelemetry SDK provider with an in-memory exporter lets tests
  assert on the spans emitted for SQL statements and Redis commands.
"""
import logging
import os
import tempfile

# Must be set before ``app`` is imported: Settings is built at import time.
os.environ["LOG_DIR"] = ""
os.environ["UPLOAD_SAVE_PATH"] = tempfile.mkdtemp(prefix="blog-uploads-")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.cache import CacheManager
from app.database import (
    Base,
    discard_after_commit,
    get_cache,
    get_db,
    run_after_commit,
)
from app.main import app
from app.middleware import install_query_tracing

# ---------------------------------------------------------------------------
# Tracing: one SDK provider for the whole session
# ---------------------------------------------------------------------------

span_exporter = InMemorySpanExporter()
_provider = TracerProvider()
_provider.add_span_processor(SimpleSpanProcessor(span_exporter))
trace.set_tracer_provider(_provider)

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_tracing(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

test_logger = logging.getLogger("tests.blog")
test_cache = CacheManager(None, test_logger)


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            discard_after_commit(session)
            raise
        await run_after_commit(session)


def override_get_cache() -> CacheManager:
    return test_cache


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_cache] = override_get_cache


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Yield a live AsyncSession for seeding data or asserting ORM state."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def spans() -> InMemorySpanExporter:
    """The session span exporter, emptied before the test body runs."""
    span_exporter.clear()
    return span_exporter


@pytest.fixture
def logger() -> logging.Logger:
    return test_logger


@pytest.fixture
def cache() -> CacheManager:
    return CacheManager(None, test_logger)


@pytest.fixture
def engine():
    return engine_test
