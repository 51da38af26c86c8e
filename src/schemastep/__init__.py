"""
schemastep - versioned database migrations

Key Features:
- SQL migrations (``00001_create_users.sql``) with annotated up/down sections
- Python migrations registered explicitly with a FunctionRegistry
- Append-only version history; the current version is derived from it
- One migration per transaction, re-reading the database version every step
- Reconciling mode that applies migrations missed by earlier runs, followed
  by a history repair that restores id/version order
"""

from .collector import collect_all_migrations, collect_migrations
from .config import MAX_VERSION, MIN_VERSION
from .connection import DatabaseConnection
from .dialect import MySQLDialect, PostgresDialect, SQLDialect, SqliteDialect, get_dialect
from .exceptions import (
    DirectoryNotFound,
    DuplicateVersionError,
    HistoryNotFound,
    HistoryRepairFailed,
    InvalidMigrationName,
    MigrationError,
    MigrationExecutionFailed,
    NoCurrentVersion,
    NoNextVersion,
    SchemaStepError,
    UnregisteredFunctionMigration,
    VersionNotFound,
)
from .history import repair_history
from .migration import Direction, Migration, MigrationKind
from .registry import FunctionRegistry
from .runner import MigrationRunner
from .sequencer import Migrations, version_filter
from .state import applied_db_versions, ensure_db_version, get_db_version, read_db_version
from .version import numeric_component

__all__ = [
    "DatabaseConnection",
    "Direction",
    "DirectoryNotFound",
    "DuplicateVersionError",
    "FunctionRegistry",
    "HistoryNotFound",
    "HistoryRepairFailed",
    "InvalidMigrationName",
    "MAX_VERSION",
    "MIN_VERSION",
    "Migration",
    "MigrationError",
    "MigrationExecutionFailed",
    "MigrationKind",
    "MigrationRunner",
    "Migrations",
    "MySQLDialect",
    "NoCurrentVersion",
    "NoNextVersion",
    "PostgresDialect",
    "SQLDialect",
    "SchemaStepError",
    "SqliteDialect",
    "UnregisteredFunctionMigration",
    "VersionNotFound",
    "applied_db_versions",
    "collect_all_migrations",
    "collect_migrations",
    "ensure_db_version",
    "get_db_version",
    "get_dialect",
    "numeric_component",
    "read_db_version",
    "repair_history",
    "version_filter",
]
