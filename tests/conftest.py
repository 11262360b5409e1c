"""
Shared pytest fixtures for dbproxy tests.

This module provides:
- Registry and settings cleanup fixtures for test isolation
- A per-test ``DatabaseSettings`` instance that ignores ``.env`` files
- A sqlite in-memory proxy with a small ``user`` table

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments:

    def test_insert(sqlite_proxy):
        sqlite_proxy.insert("user", {"name": "ada"})
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

# Ensure dbproxy package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dbproxy import registry  # noqa: E402
from dbproxy.config import DatabaseSettings, settings  # noqa: E402
from dbproxy.proxy import GenericProxy  # noqa: E402
from dbproxy.retry import set_error_reporter  # noqa: E402

USER_TABLE = (
    "CREATE TABLE user ("
    "id INTEGER PRIMARY KEY, "
    "name VARCHAR(5) NOT NULL, "
    "email TEXT, "
    "status TEXT DEFAULT 'new'"
    ")"
)


# =============================================================================
# Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_connection_registry() -> Generator[None, None, None]:
    """Forget cached proxies and the default target around each test."""
    registry.reset()
    yield
    registry.reset()


@pytest.fixture(autouse=True)
def restore_global_settings() -> Generator[None, None, None]:
    """Undo assignments to the process-wide settings made by a test."""
    snapshot = settings.model_dump()
    yield
    for name, value in snapshot.items():
        setattr(settings, name, value)


@pytest.fixture(autouse=True)
def clear_error_reporter() -> Generator[None, None, None]:
    yield
    set_error_reporter(None)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Drop structlog configuration (and any stream it captured) after each test."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def db_settings() -> DatabaseSettings:
    """Default settings, isolated from environment files."""
    return DatabaseSettings(_env_file=None)


@pytest.fixture
def sqlite_proxy(db_settings: DatabaseSettings) -> Generator[GenericProxy, None, None]:
    """In-memory sqlite proxy with an empty ``user`` table."""
    proxy = GenericProxy("sqlite::memory:", settings=db_settings)
    proxy.query(USER_TABLE)
    yield proxy
    proxy.close()
