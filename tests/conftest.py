"""Shared pytest fixtures for the schemastep test suite."""

from __future__ import annotations

import pytest

from schemastep.connection import DatabaseConnection
from schemastep.dialect import SqliteDialect


@pytest.fixture
def db(tmp_path):
    """Create a temporary database connection for testing."""
    conn = DatabaseConnection(str(tmp_path / "test.db"))
    yield conn
    conn.close()


@pytest.fixture
def dialect():
    return SqliteDialect()


@pytest.fixture
def migrations_dir(tmp_path):
    """Create an empty migrations directory."""
    path = tmp_path / "migrations"
    path.mkdir()
    return path
