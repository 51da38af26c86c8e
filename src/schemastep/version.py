"""
Version extraction from migration names.

Migration files are named ``<version>_<description>.<ext>`` where ext is
``.sql`` or ``.py``; e.g. ``00003_add_users.sql`` or
``20240101120000_backfill_emails.py``.
"""

from pathlib import Path

from .config import MAX_VERSION, PYTHON_EXTENSION, SQL_EXTENSION
from .exceptions import InvalidMigrationName

MIGRATION_EXTENSIONS = (SQL_EXTENSION, PYTHON_EXTENSION)


def numeric_component(name: str | Path) -> int:
    """
    Return the version encoded in a migration file or registration name.

    Raises:
        InvalidMigrationName: If the extension is not recognized, there is no
            ``_`` separator, or the prefix is not a positive 64-bit integer
    """
    base = Path(name).name

    if Path(base).suffix not in MIGRATION_EXTENSIONS:
        raise InvalidMigrationName(
            f"{base}: not a recognized migration file type", source=str(name)
        )

    prefix, separator, _ = base.partition("_")
    if not separator:
        raise InvalidMigrationName(f"{base}: no separator found", source=str(name))

    if not (prefix.isascii() and prefix.isdigit()):
        raise InvalidMigrationName(
            f"{base}: version prefix {prefix!r} is not an integer", source=str(name)
        )
    version = int(prefix)

    if version <= 0:
        raise InvalidMigrationName(
            f"{base}: migration IDs must be greater than zero", source=str(name)
        )
    if version > MAX_VERSION:
        raise InvalidMigrationName(
            f"{base}: migration ID does not fit in 64 bits", source=str(name)
        )

    return version
