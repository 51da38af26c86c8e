"""Tests for SQL dialects."""

import pytest

from schemastep.dialect import MySQLDialect, PostgresDialect, SqliteDialect, get_dialect
from schemastep.exceptions import ConfigurationError


class TestGetDialect:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("sqlite3", SqliteDialect),
            ("sqlite", SqliteDialect),
            ("postgres", PostgresDialect),
            ("PostgreSQL", PostgresDialect),
            ("mysql", MySQLDialect),
        ],
    )
    def test_known_names(self, name, expected):
        assert isinstance(get_dialect(name), expected)

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_dialect("oracle")
        assert exc_info.value.config_key == "dialect"

    def test_custom_table_name(self):
        dialect = get_dialect("sqlite3", "app_versions")
        assert "app_versions" in dialect.create_version_table_sql()
        assert "app_versions" in dialect.insert_version_sql()

    @pytest.mark.parametrize("table_name", ["", "versions; DROP TABLE users", "my-table"])
    def test_invalid_table_name(self, table_name):
        with pytest.raises(ConfigurationError):
            SqliteDialect(table_name)


class TestStatements:
    def test_sqlite_placeholders(self):
        sql = SqliteDialect().insert_version_sql()
        assert "VALUES (?, ?)" in sql

    def test_postgres_placeholders(self):
        dialect = PostgresDialect()
        assert "VALUES (%s, %s)" in dialect.insert_version_sql()
        assert dialect.delete_version_sql().endswith("version_id = %s")
        assert "bigint" in dialect.create_version_table_sql()

    def test_history_queries_order(self):
        dialect = SqliteDialect()
        assert dialect.query_versions_sql().endswith("ORDER BY id DESC")
        assert dialect.query_history_asc_sql().endswith("ORDER BY id ASC")

    def test_sqlite_table_roundtrip(self, db):
        dialect = SqliteDialect()
        db.execute(dialect.create_version_table_sql())
        db.execute(dialect.insert_version_sql(), (7, True))

        row = db.fetch_one(dialect.migration_record_sql(), (7,))
        assert row["version_id"] == 7
        assert row["is_applied"] == 1
        assert row["tstamp"] is not None
