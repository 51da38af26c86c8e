"""Helpers for building migration directories and inspecting history in tests."""

from __future__ import annotations

from pathlib import Path

from schemastep.connection import DatabaseConnection
from schemastep.dialect import SQLDialect


def write_sql_migration(
    directory: Path,
    name: str,
    up: str,
    down: str = "",
    no_transaction: bool = False,
) -> Path:
    """Write an annotated SQL migration file and return its path."""
    lines = []
    if no_transaction:
        lines.append("-- +schemastep NO TRANSACTION")
    lines.append("-- +schemastep Up")
    lines.append(up)
    lines.append("")
    lines.append("-- +schemastep Down")
    lines.append(down)
    path = directory / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def create_table_migration(directory: Path, version: int, table: str) -> Path:
    """Write a migration that creates (and drops) a single table."""
    return write_sql_migration(
        directory,
        f"{version:05d}_create_{table}.sql",
        up=f"CREATE TABLE {table} (id INTEGER PRIMARY KEY);",
        down=f"DROP TABLE {table};",
    )


def table_names(db: DatabaseConnection) -> set[str]:
    rows = db.fetch_all("SELECT name FROM sqlite_master WHERE type='table'")
    return {row["name"] for row in rows}


def history_rows(db: DatabaseConnection, dialect: SQLDialect) -> list[tuple[int, int, bool]]:
    """(id, version_id, is_applied) rows, oldest first."""
    rows = db.fetch_all(dialect.query_history_asc_sql())
    return [(row["id"], row["version_id"], bool(row["is_applied"])) for row in rows]
