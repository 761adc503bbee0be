"""Test fixtures and configuration.

Tests run against a throwaway SQLite file by default. Set TEST_DATABASE_URL
to a ``postgresql+asyncpg://`` URL to run the same suite against Postgres.
"""

import logging
import os
import sys

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set ENVIRONMENT for pydantic settings
os.environ["ENVIRONMENT"] = "testing"

from recurring_match.logger import get_logger  # noqa: E402

logger = get_logger(__name__)


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest.fixture(scope="session")
def test_database_url(tmp_path_factory) -> str:
    url = os.environ.get("TEST_DATABASE_URL")
    if url:
        return url
    db_file = tmp_path_factory.mktemp("db") / "recurring_match_test.db"
    return f"sqlite+aiosqlite:///{db_file}"


def _enable_sqlite_savepoints(engine) -> None:
    """Let SQLAlchemy own BEGIN on SQLite so SAVEPOINT works inside test transactions."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def db_engine(test_database_url):
    """Create the schema once per session.

    Individual tests are isolated by transaction rollback (see ``db``).
    """
    from recurring_match.database import Base
    from recurring_match import models  # noqa: F401

    engine = create_async_engine(test_database_url, echo=False, poolclass=NullPool)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_database_connection(db_engine):
    """Point the application's session maker at the test engine."""
    from recurring_match import database

    test_maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    previous = database.set_test_session_maker(test_maker)
    yield
    database.set_test_session_maker(previous)


@pytest_asyncio.fixture(scope="function")
async def db(db_engine):
    """Session bound to an outer transaction that is rolled back after the test.

    Even if code under test calls ``commit()``, the outer transaction still
    rolls back, so nothing leaks between tests.
    """
    connection = await db_engine.connect()
    transaction = await connection.begin()
    session = AsyncSession(bind=connection, expire_on_commit=False)

    yield session

    await session.close()
    await transaction.rollback()
    await connection.close()


@pytest_asyncio.fixture(scope="function")
async def client(db):
    """Async test client whose requests share the test's ``db`` session."""
    from recurring_match.database import get_db
    from recurring_match.main import app

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client_instance:
            yield client_instance
    finally:
        app.dependency_overrides.pop(get_db, None)
