"""
SQL Script Runner

Parses annotated ``.sql`` migration files and executes one direction of them.

Annotations (SQL comments):
    -- +schemastep Up
    -- +schemastep Down
    -- +schemastep StatementBegin / StatementEnd   (statements containing ';')
    -- +schemastep NO TRANSACTION

Outside a StatementBegin/StatementEnd block, a statement ends at the first
line terminated by a semicolon.
"""

import logging
from pathlib import Path

from .config import ANNOTATION_PREFIX
from .connection import DatabaseConnection
from .dialect import SQLDialect
from .exceptions import InvalidMigrationScript

logger = logging.getLogger(__name__)


def _ends_with_semicolon(line: str) -> bool:
    """True if the last token before any "--" comment token ends with a semicolon."""
    last = ""
    for token in line.split():
        if token.startswith("--"):
            break
        last = token
    return last.endswith(";")


def parse_sql_migration(path: str | Path, up: bool) -> tuple[list[str], bool]:
    """
    Split a migration script into the statements for one direction.

    Args:
        path: Path to the ``.sql`` file
        up: True for the Up section, False for the Down section

    Returns:
        (statements, use_transaction)

    Raises:
        InvalidMigrationScript: If the file has no Up/Down annotation, an
            unknown annotation, an unterminated StatementBegin block, or a
            trailing statement without a semicolon
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    statements: list[str] = []
    buffer: list[str] = []
    use_transaction = True
    section_up: bool | None = None
    seen_section = False
    in_block = False

    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()

        if stripped.startswith(ANNOTATION_PREFIX):
            command = stripped[len(ANNOTATION_PREFIX):].strip()
            if command == "Up":
                section_up, seen_section = True, True
            elif command == "Down":
                section_up, seen_section = False, True
            elif command == "NO TRANSACTION":
                use_transaction = False
            elif command == "StatementBegin":
                if section_up == up:
                    in_block = True
            elif command == "StatementEnd":
                if section_up == up:
                    if not in_block:
                        raise InvalidMigrationScript(
                            f"{path.name}:{lineno}: StatementEnd without StatementBegin",
                            source=str(path),
                        )
                    statements.append("\n".join(buffer).strip())
                    buffer = []
                    in_block = False
            else:
                raise InvalidMigrationScript(
                    f"{path.name}:{lineno}: unknown annotation {command!r}",
                    source=str(path),
                )
            continue

        if section_up is None or section_up != up:
            continue

        # Skip blank lines and comments between statements
        if not buffer and (not stripped or stripped.startswith("--")):
            continue

        buffer.append(line)
        if not in_block and _ends_with_semicolon(stripped):
            statements.append("\n".join(buffer).strip())
            buffer = []

    if not seen_section:
        raise InvalidMigrationScript(
            f"{path.name}: no Up/Down annotations found", source=str(path)
        )
    if in_block:
        raise InvalidMigrationScript(
            f"{path.name}: StatementBegin without matching StatementEnd",
            source=str(path),
        )
    if any(line.strip() for line in buffer):
        raise InvalidMigrationScript(
            f"{path.name}: last statement is not terminated by a semicolon",
            source=str(path),
        )

    return statements, use_transaction


def run_sql_migration(
    db: DatabaseConnection,
    dialect: SQLDialect,
    path: str | Path,
    version: int,
    up: bool,
) -> None:
    """
    Execute one direction of a SQL migration and write its history record.

    The statements and the history insert (up) or delete (down) share one
    transaction unless the script is annotated NO TRANSACTION.
    """
    statements, use_transaction = parse_sql_migration(path, up)
    direction = "up" if up else "down"

    if use_transaction:
        with db.transaction():
            for statement in statements:
                logger.debug(f"Executing {direction} statement: {statement[:100]}")
                db.execute(statement)
            _write_history(db, dialect, version, up)
        return

    logger.info(f"Running {Path(path).name} ({direction}) without a transaction")
    for statement in statements:
        logger.debug(f"Executing {direction} statement: {statement[:100]}")
        db.execute(statement)
    _write_history(db, dialect, version, up)


def _write_history(
    db: DatabaseConnection, dialect: SQLDialect, version: int, up: bool
) -> None:
    if up:
        db.execute(dialect.insert_version_sql(), (version, True))
    else:
        db.execute(dialect.delete_version_sql(), (version,))
