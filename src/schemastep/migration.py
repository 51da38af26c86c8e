"""
Migration entity and single-step execution.

A migration's executable part is a tagged variant: either a SQL script on
disk (ScriptAction) or a pair of Python callables (FunctionAction). Both
expose the same ``execute(migration, direction, db, dialect)`` operation.
"""

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import ClassVar, Union

from .connection import DatabaseConnection
from .dialect import SQLDialect
from .exceptions import MigrationExecutionFailed, UnregisteredFunctionMigration
from .sql_runner import run_sql_migration

logger = logging.getLogger(__name__)

MigrationFn = Callable[[sqlite3.Connection], None]


class Direction(Enum):
    UP = "up"
    DOWN = "down"


class MigrationKind(Enum):
    SCRIPT = "script"
    FUNCTION = "function"


@dataclass(frozen=True)
class ScriptAction:
    """A ``.sql`` file with annotated up/down sections."""

    path: Path
    kind: ClassVar[MigrationKind] = MigrationKind.SCRIPT

    def execute(
        self,
        migration: "Migration",
        direction: Direction,
        db: DatabaseConnection,
        dialect: SQLDialect,
    ) -> None:
        try:
            run_sql_migration(
                db, dialect, self.path, migration.version, direction is Direction.UP
            )
        except Exception as e:
            raise MigrationExecutionFailed(
                f"failed to run SQL migration {migration.name!r}: {e}",
                source=migration.source,
                version=migration.version,
            ) from e


@dataclass(frozen=True)
class FunctionAction:
    """
    Python callables run inside one transaction together with the
    history write. ``registered`` is False for ``.py`` files found on disk
    that were never registered with a FunctionRegistry.
    """

    up: MigrationFn | None = None
    down: MigrationFn | None = None
    registered: bool = False
    kind: ClassVar[MigrationKind] = MigrationKind.FUNCTION

    def execute(
        self,
        migration: "Migration",
        direction: Direction,
        db: DatabaseConnection,
        dialect: SQLDialect,
    ) -> None:
        if not self.registered:
            raise UnregisteredFunctionMigration(
                f"failed to run Python migration {migration.source!r}: "
                f"its functions were never registered",
                source=migration.source,
            )

        fn = self.up if direction is Direction.UP else self.down
        try:
            with db.transaction() as tx:
                if fn is not None:
                    fn(tx)
                if direction is Direction.UP:
                    tx.execute(dialect.insert_version_sql(), (migration.version, True))
                else:
                    tx.execute(dialect.delete_version_sql(), (migration.version,))
        except Exception as e:
            raise MigrationExecutionFailed(
                f"failed to run Python migration {migration.name!r}: {e}",
                source=migration.source,
                version=migration.version,
            ) from e


MigrationAction = Union[ScriptAction, FunctionAction]


@dataclass(eq=False)
class Migration:
    """
    One versioned migration.

    ``next`` and ``previous`` hold the neighbouring versions in the resolved
    order (None at either end). They are filled in by the sequencer.
    """

    version: int
    source: str
    action: MigrationAction
    next: int | None = None
    previous: int | None = None

    @property
    def kind(self) -> MigrationKind:
        return self.action.kind

    @property
    def name(self) -> str:
        return Path(self.source).name

    def up(self, db: DatabaseConnection, dialect: SQLDialect) -> None:
        """Run the migration forward and record it as applied."""
        self.action.execute(self, Direction.UP, db, dialect)
        logger.info(f"OK   {self.name}")

    def down(self, db: DatabaseConnection, dialect: SQLDialect) -> None:
        """Run the migration backward and remove its history record."""
        self.action.execute(self, Direction.DOWN, db, dialect)
        logger.info(f"OK   {self.name}")

    def __str__(self) -> str:
        return self.source

    def __repr__(self) -> str:
        return f"<Migration {self.version}: {self.name}>"
