"""
SQL Dialects

Each dialect produces the SQL text the engine needs for its history table.
Only SQLite statements are executed by the bundled DatabaseConnection; the
PostgreSQL and MySQL dialects produce text for drivers that use the
``%s`` parameter style.
"""

import logging

from .config import DEFAULT_TABLE_NAME
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class SQLDialect:
    """Base dialect: SQL text for the version history table."""

    name = "base"
    placeholder = "?"

    def __init__(self, table_name: str = DEFAULT_TABLE_NAME) -> None:
        if not table_name or not table_name.replace("_", "").isalnum():
            raise ConfigurationError(
                f"Invalid history table name: {table_name!r}", config_key="table_name"
            )
        self.table_name = table_name

    def _params(self, count: int) -> str:
        return ", ".join([self.placeholder] * count)

    def create_version_table_sql(self) -> str:
        raise NotImplementedError

    def insert_version_sql(self) -> str:
        """Parameters: (version_id, is_applied)."""
        return (
            f"INSERT INTO {self.table_name} (version_id, is_applied) "
            f"VALUES ({self._params(2)})"
        )

    def delete_version_sql(self) -> str:
        """Parameters: (version_id,)."""
        return f"DELETE FROM {self.table_name} WHERE version_id = {self.placeholder}"

    def query_versions_sql(self) -> str:
        """History rows, newest first: id, version_id, is_applied, tstamp."""
        return (
            f"SELECT id, version_id, is_applied, tstamp FROM {self.table_name} "
            f"ORDER BY id DESC"
        )

    def query_history_asc_sql(self) -> str:
        """History rows, oldest first: id, version_id, is_applied, tstamp."""
        return (
            f"SELECT id, version_id, is_applied, tstamp FROM {self.table_name} "
            f"ORDER BY id ASC"
        )

    def update_record_sql(self) -> str:
        """Parameters: (version_id, is_applied, tstamp, id)."""
        return (
            f"UPDATE {self.table_name} SET version_id = {self.placeholder}, "
            f"is_applied = {self.placeholder}, tstamp = {self.placeholder} "
            f"WHERE id = {self.placeholder}"
        )

    def migration_record_sql(self) -> str:
        """Latest record of one version. Parameters: (version_id,)."""
        return (
            f"SELECT id, version_id, is_applied, tstamp FROM {self.table_name} "
            f"WHERE version_id = {self.placeholder} ORDER BY id DESC LIMIT 1"
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} table={self.table_name}>"


class SqliteDialect(SQLDialect):
    name = "sqlite3"

    def create_version_table_sql(self) -> str:
        return f"""
            CREATE TABLE {self.table_name} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                version_id INTEGER NOT NULL,
                is_applied INTEGER NOT NULL,
                tstamp TIMESTAMP DEFAULT (datetime('now'))
            )
        """


class PostgresDialect(SQLDialect):
    name = "postgres"
    placeholder = "%s"

    def create_version_table_sql(self) -> str:
        return f"""
            CREATE TABLE {self.table_name} (
                id serial NOT NULL,
                version_id bigint NOT NULL,
                is_applied boolean NOT NULL,
                tstamp timestamp NULL default now(),
                PRIMARY KEY(id)
            )
        """


class MySQLDialect(SQLDialect):
    name = "mysql"
    placeholder = "%s"

    def create_version_table_sql(self) -> str:
        return f"""
            CREATE TABLE {self.table_name} (
                id serial NOT NULL,
                version_id bigint NOT NULL,
                is_applied boolean NOT NULL,
                tstamp timestamp NULL default now(),
                PRIMARY KEY(id)
            )
        """


DIALECTS: dict[str, type[SQLDialect]] = {
    "sqlite3": SqliteDialect,
    "sqlite": SqliteDialect,
    "postgres": PostgresDialect,
    "postgresql": PostgresDialect,
    "mysql": MySQLDialect,
}


def get_dialect(name: str, table_name: str = DEFAULT_TABLE_NAME) -> SQLDialect:
    """
    Resolve a dialect by driver name.

    Raises:
        ConfigurationError: If the driver name is unknown
    """
    dialect_class = DIALECTS.get(name.lower())
    if dialect_class is None:
        raise ConfigurationError(
            f"Unsupported dialect: {name!r} (expected one of {sorted(DIALECTS)})",
            config_key="dialect",
        )
    logger.debug(f"Using {dialect_class.__name__} with table {table_name}")
    return dialect_class(table_name)
