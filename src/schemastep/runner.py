"""
Migration Runner

Drives a database forward (or backward) one migration at a time. Every step
re-reads the current version from the history table instead of trusting
in-memory state, so partial earlier runs are picked up where they stopped.
"""

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .collector import collect_all_migrations, collect_migrations
from .config import MAX_VERSION, MIN_VERSION
from .connection import DatabaseConnection
from .dialect import SQLDialect, SqliteDialect
from .exceptions import NoCurrentVersion, NoNextVersion, VersionNotFound
from .history import repair_history
from .registry import FunctionRegistry
from .sequencer import Migrations
from .state import applied_db_versions, get_db_version, get_migration_record, read_db_version

logger = logging.getLogger(__name__)


class MigrationRunner:
    """
    High-level migration execution engine.

    Usage:
        runner = MigrationRunner(db, "migrations", registry=registry)
        runner.up()
    """

    def __init__(
        self,
        db: DatabaseConnection,
        migrations_dir: str | Path,
        registry: FunctionRegistry | None = None,
        dialect: SQLDialect | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ) -> None:
        """
        Initialize migration runner.

        Args:
            db: Database connection
            migrations_dir: Directory holding ``.sql`` and ``.py`` migrations
            registry: Registered Python migrations (empty if omitted)
            dialect: SQL dialect for the history table (SQLite if omitted)
            progress_callback: Optional callback for progress updates
                               Called with (current_step, total_steps, message)
        """
        self.db = db
        self.migrations_dir = Path(migrations_dir)
        self.registry = registry if registry is not None else FunctionRegistry()
        self.dialect = dialect if dialect is not None else SqliteDialect()
        self.progress_callback = progress_callback

    def _collect(self, current: int, target: int) -> Migrations:
        return collect_migrations(self.migrations_dir, current, target, self.registry)

    def _current_version(self) -> int:
        return get_db_version(self.db, self.dialect)

    def _new_result(self, start_version: int, target_version: int | None) -> dict[str, Any]:
        return {
            "start_version": start_version,
            "target_version": target_version,
            "final_version": start_version,
            "migrations_applied": [],
            "execution_time_ms": 0.0,
        }

    def _finish(self, result: dict[str, Any], start_time: float) -> dict[str, Any]:
        result["final_version"] = self._current_version()
        result["execution_time_ms"] = (time.time() - start_time) * 1000
        return result

    def _apply_until_done(
        self, migrations: Migrations, target: int, result: dict[str, Any]
    ) -> None:
        """Apply ``next(current)`` repeatedly until there is nothing left."""
        applied = result["migrations_applied"]
        while True:
            current = self._current_version()
            try:
                migration = migrations.next(current)
            except NoNextVersion:
                logger.info(f"no migrations to run. current version: {current}")
                return
            except NoCurrentVersion as e:
                if current >= target:
                    logger.info(f"no migrations to run. current version: {current}")
                    return
                raise VersionNotFound(
                    f"database is at version {current}, which no known migration provides; "
                    f"cannot continue towards {target}",
                    version=current,
                ) from e

            self._report_progress(
                len(applied), len(migrations), f"Applying migration {migration.version}"
            )
            migration.up(self.db, self.dialect)
            applied.append(migration.version)

    def up_to(self, version: int) -> dict[str, Any]:
        """
        Migrate up to (and including) a specific version.

        Returns:
            Dictionary with migration results

        Raises:
            MigrationError: If collection or any migration fails; the database
                stays at the last committed version
        """
        start_time = time.time()
        migrations = self._collect(MIN_VERSION, version)
        result = self._new_result(self._current_version(), version)

        logger.info(f"Migrating from version {result['start_version']} up to {version}")
        self._apply_until_done(migrations, version, result)
        return self._finish(result, start_time)

    def up(self) -> dict[str, Any]:
        """Apply all available migrations."""
        return self.up_to(MAX_VERSION)

    def up_all(self) -> dict[str, Any]:
        """
        Apply every unapplied migration, including ones older than the current
        version, then repair the history order.

        Already-applied migrations are walked first in version order, followed
        by unapplied ones in version order.
        """
        start_time = time.time()
        applied = applied_db_versions(self.db, self.dialect)
        migrations = collect_all_migrations(
            self.migrations_dir, applied, MIN_VERSION, MAX_VERSION, self.registry
        )
        result = self._new_result(self._current_version(), MAX_VERSION)

        pending = [m.version for m in migrations if not applied.get(m.version)]
        logger.info(f"Found {len(pending)} unapplied migration(s): {pending}")

        self._apply_until_done(migrations, MAX_VERSION, result)
        result["history_rows_repaired"] = repair_history(self.db, self.dialect)
        return self._finish(result, start_time)

    def up_by_one(self) -> dict[str, Any]:
        """
        Apply exactly one migration.

        Raises:
            NoNextVersion: If there is nothing left to apply
        """
        start_time = time.time()
        migrations = self._collect(MIN_VERSION, MAX_VERSION)
        current = self._current_version()
        result = self._new_result(current, None)

        try:
            migration = migrations.next(current)
        except NoNextVersion:
            logger.info(f"no migrations to run. current version: {current}")
            raise

        migration.up(self.db, self.dialect)
        result["migrations_applied"].append(migration.version)
        return self._finish(result, start_time)

    def down(self) -> dict[str, Any]:
        """
        Roll back the current version.

        Raises:
            NoCurrentVersion: If the current version has no migration on disk
                or in the registry (including version 0)
        """
        start_time = time.time()
        current = self._current_version()
        migrations = self._collect(MIN_VERSION, current)
        result = self._new_result(current, None)

        migration = migrations.current(current)
        migration.down(self.db, self.dialect)
        result["migrations_applied"].append(migration.version)
        return self._finish(result, start_time)

    def down_to(self, version: int) -> dict[str, Any]:
        """Roll back migrations, newest first, until the current version is <= ``version``."""
        start_time = time.time()
        current = self._current_version()
        migrations = self._collect(current, version)
        result = self._new_result(current, version)
        rolled_back = result["migrations_applied"]

        while True:
            current = self._current_version()
            if current <= version:
                logger.info(f"no migrations to run. current version: {current}")
                break
            try:
                migration = migrations.current(current)
            except NoCurrentVersion:
                logger.info(f"no migrations to run. current version: {current}")
                break

            self._report_progress(
                len(rolled_back), len(migrations), f"Rolling back migration {migration.version}"
            )
            migration.down(self.db, self.dialect)
            rolled_back.append(migration.version)

        return self._finish(result, start_time)

    def redo(self) -> dict[str, Any]:
        """Roll back the current version and apply it again."""
        start_time = time.time()
        current = self._current_version()
        migrations = self._collect(MIN_VERSION, MAX_VERSION)
        result = self._new_result(current, current)

        migration = migrations.current(current)
        migration.down(self.db, self.dialect)
        migration.up(self.db, self.dialect)
        result["migrations_applied"].append(migration.version)
        return self._finish(result, start_time)

    def status(self) -> list[dict[str, Any]]:
        """
        Report every known migration and when it was applied.

        Returns:
            One dict per migration: version, source, applied_at ("Pending" if
            its latest record is not applied)
        """
        migrations = self._collect(MIN_VERSION, MAX_VERSION)
        self._current_version()  # creates the history table if missing

        rows = []
        logger.info("    Applied At                  Migration")
        logger.info("    =======================================")
        for migration in migrations:
            record = get_migration_record(self.db, self.dialect, migration.version)
            applied_at = record.tstamp if record and record.is_applied else "Pending"
            rows.append(
                {"version": migration.version, "source": migration.source, "applied_at": applied_at}
            )
            logger.info(f"    {str(applied_at):<24} -- {migration.name}")
        return rows

    def version(self) -> int:
        """
        Return the current database version without modifying the database.

        Raises:
            HistoryNotFound: If the history table does not exist
            NoCurrentVersion: If the history has no applied version
        """
        current = read_db_version(self.db, self.dialect)
        logger.info(f"version {current}")
        return current

    def fix_history(self) -> int:
        """Run the history repair on its own."""
        return repair_history(self.db, self.dialect)

    def _report_progress(self, current: int, total: int, message: str) -> None:
        """Report progress to callback if available."""
        if self.progress_callback:
            try:
                self.progress_callback(current, total, message)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

        logger.debug(f"Progress: {current}/{total} - {message}")
