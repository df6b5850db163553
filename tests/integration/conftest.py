"""Integration test fixtures and configuration."""

import os

import pytest

from calendar_sync.db.connection import ConnectionProvider
from calendar_sync.db.schema import ensure_schema


@pytest.fixture(scope="session")
def db_connection_string() -> str:
    """Return database connection string (skip when not configured)."""
    url = os.environ.get("DIRECT_DATABASE_URL")
    if not url:
        pytest.skip("DIRECT_DATABASE_URL is not set")
    return url


@pytest.fixture(scope="session")
def real_provider(db_connection_string: str):
    """Connection provider against the configured database, with schema created."""
    provider = ConnectionProvider(db_connection_string, min_connections=1, max_connections=2)
    ensure_schema(provider)
    yield provider
    provider.close()
