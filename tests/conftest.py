"""Pytest configuration for all tests."""

from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio
import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from rowsandbox.core.config import Settings, get_settings
from rowsandbox.domain.entities import ColumnDef, TableSchema, TableTarget
from rowsandbox.domain.services import ChangeJournal


@pytest.fixture(autouse=True)
def _reset_logging() -> Generator[None, None, None]:
    """Undo logging configuration done by CLI invocations."""
    yield
    structlog.reset_defaults()
    get_settings.cache_clear()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment and the working directory."""
    return Settings(
        _env_file=None,
        environment="testing",
        state_dir=str(tmp_path / "state"),
        backup_debounce_seconds=0,
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def users() -> TableTarget:
    return TableTarget.of("app", "users")


@pytest.fixture
def users_schema() -> TableSchema:
    return TableSchema(
        columns=(
            ColumnDef("id", "INTEGER", nullable=False, is_primary_key=True),
            ColumnDef("name", "VARCHAR(100)"),
            ColumnDef("age", "INTEGER"),
        )
    )


@pytest.fixture
def journal() -> ChangeJournal:
    journal = ChangeJournal("session-1")
    journal.activate()
    return journal


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite database with a seeded users table."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.execute(
            text(
                "CREATE TABLE users ("
                "id INTEGER NOT NULL PRIMARY KEY, "
                "name VARCHAR(100), "
                "age INTEGER)"
            )
        )
        await conn.execute(
            text("INSERT INTO users (id, name, age) VALUES (1, 'Bob', 30), (2, 'Alice', 25)")
        )

    yield engine

    await engine.dispose()
