"""
Migration Collection

Builds the in-memory migration set from three sources:
1. ``.sql`` scripts in the migrations directory (names must parse)
2. Python migrations registered with a FunctionRegistry
3. ``.py`` files in the migrations directory that were never registered
   (auxiliary modules without a version prefix are ignored)

Registration takes precedence over file discovery, so a registered version
is never collected twice.
"""

import logging
from collections.abc import Callable, Mapping
from pathlib import Path

from .config import PYTHON_EXTENSION, SQL_EXTENSION
from .exceptions import DirectoryNotFound, InvalidMigrationName
from .migration import FunctionAction, Migration, ScriptAction
from .registry import FunctionRegistry
from .sequencer import (
    Migrations,
    sort_and_connect,
    sort_and_connect_all,
    unapplied_version_filter,
    version_filter,
)
from .version import numeric_component

logger = logging.getLogger(__name__)


def list_files(dirpath: str | Path, extension: str) -> list[Path]:
    """Return files in ``dirpath`` with the given extension, sorted by name."""
    return sorted(p for p in Path(dirpath).glob(f"*{extension}") if p.is_file())


def _gather(
    dirpath: str | Path,
    registry: FunctionRegistry | None,
    include: Callable[[int], bool],
) -> list[Migration]:
    path = Path(dirpath)
    if not path.is_dir():
        raise DirectoryNotFound(f"{dirpath} directory does not exist", path=str(dirpath))

    registry = registry if registry is not None else FunctionRegistry()
    migrations: list[Migration] = []

    # SQL migration files; an unparsable script name aborts collection
    for file_path in list_files(path, SQL_EXTENSION):
        try:
            version = numeric_component(file_path)
        except InvalidMigrationName as e:
            logger.error(f"Invalid SQL migration name: {file_path.name}")
            raise e.with_context(directory=str(path))
        if include(version):
            migrations.append(
                Migration(version=version, source=str(file_path), action=ScriptAction(file_path))
            )

    # Registered Python migrations
    for registration in registry:
        if include(registration.version):
            migrations.append(
                Migration(
                    version=registration.version,
                    source=registration.source,
                    action=FunctionAction(
                        up=registration.up, down=registration.down, registered=True
                    ),
                )
            )

    # Python migration files that were never registered
    for file_path in list_files(path, PYTHON_EXTENSION):
        try:
            version = numeric_component(file_path)
        except InvalidMigrationName:
            continue
        if version in registry:
            continue
        if include(version):
            migrations.append(
                Migration(
                    version=version,
                    source=str(file_path),
                    action=FunctionAction(registered=False),
                )
            )

    logger.debug(f"Collected {len(migrations)} migrations from {path}")
    return migrations


def collect_migrations(
    dirpath: str | Path,
    current: int,
    target: int,
    registry: FunctionRegistry | None = None,
) -> Migrations:
    """
    Collect migrations whose versions pass ``version_filter(v, current, target)``
    and link them in ascending version order.

    Raises:
        DirectoryNotFound: If ``dirpath`` does not exist
        InvalidMigrationName: If a ``.sql`` file name has no valid version
        DuplicateVersionError: If two migrations share a version
    """
    migrations = _gather(dirpath, registry, lambda v: version_filter(v, current, target))
    return sort_and_connect(migrations)


def collect_all_migrations(
    dirpath: str | Path,
    applied: Mapping[int, bool],
    current: int,
    target: int,
    registry: FunctionRegistry | None = None,
) -> Migrations:
    """
    Collect every unapplied migration plus applied ones in (current, target],
    ordered applied-first (see ``sort_and_connect_all``).

    Raises:
        DirectoryNotFound: If ``dirpath`` does not exist
        InvalidMigrationName: If a ``.sql`` file name has no valid version
        DuplicateVersionError: If two migrations share a version
    """
    migrations = _gather(
        dirpath,
        registry,
        lambda v: unapplied_version_filter(v, current, target, applied.get(v, False)),
    )
    return sort_and_connect_all(migrations, applied)
