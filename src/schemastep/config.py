"""
schemastep Configuration

Settings are read from the environment (and a .env file if one exists).
Command-line flags take precedence over anything defined here.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .exceptions import ConfigurationError

# Load .env file if it exists
load_dotenv()

# --- Application Metadata ---
APP_NAME = "schemastep"
APP_VERSION = "0.1.0"

# --- Version bounds ---
# Version 0 is the seed row written when the history table is created.
MIN_VERSION = 0
MAX_VERSION = 9223372036854775807  # max signed 64-bit

# --- Defaults ---
DEFAULT_MIGRATIONS_DIR = "migrations"
DEFAULT_TABLE_NAME = "schemastep_db_version"
DEFAULT_DIALECT = "sqlite3"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CONNECTION_TIMEOUT = 30.0

# --- Migration file conventions ---
SQL_EXTENSION = ".sql"
PYTHON_EXTENSION = ".py"
ANNOTATION_PREFIX = "-- +schemastep"


@dataclass
class MigrationSettings:
    """Resolved settings for one run."""

    db_path: str | None
    migrations_dir: str = DEFAULT_MIGRATIONS_DIR
    table_name: str = DEFAULT_TABLE_NAME
    dialect: str = DEFAULT_DIALECT
    log_level: str = DEFAULT_LOG_LEVEL
    connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT


def get_settings() -> MigrationSettings:
    """
    Build settings from SCHEMASTEP_* environment variables.

    Raises:
        ConfigurationError: If a numeric setting cannot be parsed
    """
    raw_timeout = os.getenv(
        "SCHEMASTEP_CONNECTION_TIMEOUT", str(DEFAULT_CONNECTION_TIMEOUT)
    )
    try:
        timeout = float(raw_timeout)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid connection timeout: {raw_timeout!r}",
            config_key="SCHEMASTEP_CONNECTION_TIMEOUT",
        ) from e

    return MigrationSettings(
        db_path=os.getenv("SCHEMASTEP_DB_PATH"),
        migrations_dir=os.getenv("SCHEMASTEP_MIGRATIONS_DIR", DEFAULT_MIGRATIONS_DIR),
        table_name=os.getenv("SCHEMASTEP_TABLE_NAME", DEFAULT_TABLE_NAME),
        dialect=os.getenv("SCHEMASTEP_DIALECT", DEFAULT_DIALECT),
        log_level=os.getenv("SCHEMASTEP_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        connection_timeout=timeout,
    )
