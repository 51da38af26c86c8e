"""
Function Migration Registry

Python migrations are plain ``up(tx)`` / ``down(tx)`` callables registered
with an explicit FunctionRegistry. The registry is built once at startup and
handed to the collector and the runner; it is never module-global state.

Usage:
    registry = FunctionRegistry()
    registry.register_named("00004_backfill_emails.py", up=backfill, down=None)
    runner = MigrationRunner(db, "migrations", registry=registry)
"""

import importlib.util
import inspect
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from .config import PYTHON_EXTENSION
from .exceptions import DuplicateVersionError, InvalidMigrationName, MigrationError
from .migration import MigrationFn
from .version import numeric_component

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionRegistration:
    version: int
    source: str
    up: MigrationFn | None
    down: MigrationFn | None


class FunctionRegistry:
    """Catalog of Python migrations keyed by version."""

    def __init__(self) -> None:
        self._registrations: dict[int, FunctionRegistration] = {}

    def register(
        self, up: MigrationFn | None = None, down: MigrationFn | None = None
    ) -> int:
        """
        Register a migration named after the calling file.

        Meant to be called from inside ``00005_add_index.py`` and the like.
        """
        filename = inspect.stack()[1].filename
        return self.register_named(filename, up, down)

    def register_named(
        self,
        filename: str | Path,
        up: MigrationFn | None = None,
        down: MigrationFn | None = None,
    ) -> int:
        """
        Register a migration under an explicit file name.

        Returns:
            The version parsed from ``filename``

        Raises:
            InvalidMigrationName: If no version can be parsed from the name
            DuplicateVersionError: If the version is already registered
        """
        version = numeric_component(filename)

        existing = self._registrations.get(version)
        if existing is not None:
            raise DuplicateVersionError(
                f"failed to add migration {str(filename)!r}: "
                f"version conflicts with {existing.source!r}",
                version=version,
                sources=(existing.source, str(filename)),
            )

        self._registrations[version] = FunctionRegistration(
            version=version, source=str(filename), up=up, down=down
        )
        logger.debug(f"Registered Python migration {version}: {filename}")
        return version

    def load_directory(self, dirpath: str | Path) -> list[int]:
        """
        Import every ``*.py`` migration in a directory and register the
        module-level ``up``/``down`` callables it defines.

        Files without a version prefix, files defining neither callable, and
        versions that are already registered are skipped.

        Returns:
            Versions registered by this call, ascending

        Raises:
            MigrationError: If a migration module fails to import
        """
        loaded = []
        for file_path in sorted(Path(dirpath).glob(f"*{PYTHON_EXTENSION}")):
            try:
                version = numeric_component(file_path)
            except InvalidMigrationName:
                continue

            if version in self._registrations:
                logger.debug(f"Skipping {file_path.name}: version {version} already registered")
                continue

            module = self._import_file(file_path)
            up = getattr(module, "up", None)
            down = getattr(module, "down", None)
            up = up if callable(up) else None
            down = down if callable(down) else None
            if up is None and down is None:
                logger.warning(f"No up/down functions found in {file_path.name}")
                continue

            loaded.append(self.register_named(str(file_path), up, down))

        logger.info(f"Loaded {len(loaded)} Python migrations from {dirpath}")
        return loaded

    @staticmethod
    def _import_file(file_path: Path):
        module_name = f"schemastep_migration_{file_path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, file_path)
        if spec is None or spec.loader is None:
            raise MigrationError(f"Could not load spec for {file_path}", source=str(file_path))

        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise MigrationError(
                f"Failed to import migration {file_path.name}: {e}", source=str(file_path)
            ) from e
        return module

    def get(self, version: int) -> FunctionRegistration | None:
        return self._registrations.get(version)

    def versions(self) -> list[int]:
        return sorted(self._registrations)

    def __contains__(self, version: object) -> bool:
        return version in self._registrations

    def __iter__(self) -> Iterator[FunctionRegistration]:
        for version in self.versions():
            yield self._registrations[version]

    def __len__(self) -> int:
        return len(self._registrations)
