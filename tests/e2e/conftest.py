"""End-to-end test fixtures using real PostgreSQL via testcontainers.

These fixtures provide a real PostgreSQL database for true end-to-end tests
that verify full-stack behavior including checkpoint persistence.

Run with: pytest tests/e2e/ -m e2e
Skip with: pytest -m "not e2e"
"""

import os
from collections.abc import AsyncIterator, Iterator

import pytest
import sqlalchemy as sa
from testcontainers.postgres import PostgresContainer

from playlist_agent.platform.checkpoint import SqlCheckpointStore
from playlist_agent.platform.database import DbEngine
from playlist_agent.platform.database.tables import thread_messages


def _is_ci_mode() -> bool:
    """Check if running in CI with pre-provisioned database."""
    return os.environ.get("TEST_DB_HOST") is not None


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer | None]:
    """Start a PostgreSQL container for the test session.

    In CI mode (when TEST_DB_HOST is set), this yields None since
    the database is already provisioned via docker-compose.
    """
    if _is_ci_mode():
        yield None
    else:
        with PostgresContainer("postgres:16") as container:
            yield container


@pytest.fixture(scope="session")
def postgres_url(postgres_container: PostgresContainer | None) -> str:
    """Build a psycopg async URL for the container or CI database."""
    if _is_ci_mode():
        url = sa.URL.create(
            "postgresql+psycopg",
            username=os.environ.get("TEST_DB_USER", "postgres"),
            password=os.environ.get("TEST_DB_PASSWORD", "postgres"),
            host=os.environ["TEST_DB_HOST"],
            port=int(os.environ.get("TEST_DB_PORT", "5432")),
            database=os.environ.get("TEST_DB_DATABASE", "playlist_agent"),
        )
    else:
        assert postgres_container is not None
        url = sa.URL.create(
            "postgresql+psycopg",
            username=postgres_container.username,
            password=postgres_container.password,
            host=postgres_container.get_container_host_ip(),
            port=int(postgres_container.get_exposed_port(5432)),
            database=postgres_container.dbname,
        )
    return url.render_as_string(hide_password=False)


@pytest.fixture
async def postgres_db(postgres_url: str) -> AsyncIterator[DbEngine]:
    """Create a DbEngine connected to the PostgreSQL instance."""
    db = DbEngine(instance_name="test-postgres", app_name="test-suite", pool_size=5)
    await db.connect(postgres_url)

    yield db

    await db.disconnect()


@pytest.fixture
async def pg_store(postgres_db: DbEngine) -> AsyncIterator[SqlCheckpointStore]:
    """A checkpoint store on an emptied thread_messages table."""
    store = SqlCheckpointStore(postgres_db)
    await store.setup()
    async with postgres_db.transaction() as conn:
        await conn.execute(sa.delete(thread_messages))

    yield store
