"""
Database Version State

Reads the migration history table. The most recent record (highest id) of
each version decides whether that version is applied; the current version
is the newest version whose latest record is applied.
"""

import logging
from dataclasses import dataclass

from .connection import DatabaseConnection
from .dialect import SQLDialect
from .exceptions import HistoryNotFound, NoCurrentVersion, SchemaError

logger = logging.getLogger(__name__)


@dataclass
class MigrationRecord:
    """One row of the history table."""

    id: int
    version_id: int
    is_applied: bool
    tstamp: str | None

    @classmethod
    def from_row(cls, row) -> "MigrationRecord":
        return cls(
            id=int(row[0]),
            version_id=int(row[1]),
            is_applied=bool(row[2]),
            tstamp=row[3],
        )


def query_history(db: DatabaseConnection, dialect: SQLDialect) -> list[MigrationRecord]:
    """
    Return history records newest first.

    Raises:
        SchemaError: If the history table does not exist
    """
    rows = db.fetch_all(dialect.query_versions_sql())
    return [MigrationRecord.from_row(row) for row in rows]


def create_version_table(db: DatabaseConnection, dialect: SQLDialect) -> None:
    """Create the history table and seed it with version 0."""
    with db.transaction():
        db.execute(dialect.create_version_table_sql())
        db.execute(dialect.insert_version_sql(), (0, True))
    logger.info(f"Created migration history table {dialect.table_name}")


def _current_from_records(records: list[MigrationRecord]) -> int:
    to_skip: set[int] = set()
    for record in records:
        if record.version_id in to_skip:
            continue
        if record.is_applied:
            return record.version_id
        # latest event for this version was a rollback
        to_skip.add(record.version_id)

    raise NoCurrentVersion()


def ensure_db_version(db: DatabaseConnection, dialect: SQLDialect) -> int:
    """
    Return the current database version, creating the history table if needed.

    Raises:
        NoCurrentVersion: If history exists but no version is applied
    """
    try:
        records = query_history(db, dialect)
    except SchemaError:
        create_version_table(db, dialect)
        return 0

    return _current_from_records(records)


get_db_version = ensure_db_version


def read_db_version(db: DatabaseConnection, dialect: SQLDialect) -> int:
    """
    Return the current database version without modifying the database.

    Raises:
        HistoryNotFound: If the history table does not exist
        NoCurrentVersion: If history exists but no version is applied
    """
    try:
        records = query_history(db, dialect)
    except SchemaError as e:
        raise HistoryNotFound(
            f"history table {dialect.table_name} does not exist"
        ) from e

    return _current_from_records(records)


def applied_db_versions(db: DatabaseConnection, dialect: SQLDialect) -> dict[int, bool]:
    """
    Return ``{version: True}`` for every version whose latest record is applied.

    Versions whose latest record is a rollback are left out rather than
    mapped to False. A missing history table is created.
    """
    try:
        records = query_history(db, dialect)
    except SchemaError:
        create_version_table(db, dialect)
        return {}

    applied: dict[int, bool] = {}
    seen: set[int] = set()
    for record in records:
        if record.version_id in seen:
            continue
        seen.add(record.version_id)
        if record.is_applied:
            applied[record.version_id] = True

    return applied


def get_migration_record(
    db: DatabaseConnection, dialect: SQLDialect, version: int
) -> MigrationRecord | None:
    """Return the latest history record of one version, or None."""
    row = db.fetch_one(dialect.migration_record_sql(), (version,))
    return MigrationRecord.from_row(row) if row is not None else None
