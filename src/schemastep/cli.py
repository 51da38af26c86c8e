"""
schemastep command-line interface.

Examples:
    schemastep --db app.db up
    schemastep --db app.db --dir db/migrations up-to 20240101120000
    schemastep --db app.db status
"""

import argparse
import json
import logging
import sys

from .config import APP_NAME, APP_VERSION, get_settings
from .connection import DatabaseConnection
from .dialect import get_dialect
from .exceptions import ConfigurationError, SchemaStepError, VersionSignal
from .registry import FunctionRegistry
from .runner import MigrationRunner

logger = logging.getLogger(__name__)

COMMANDS_WITH_VERSION = {"up-to", "down-to"}
COMMANDS = [
    "up",
    "up-to",
    "up-all",
    "up-by-one",
    "down",
    "down-to",
    "redo",
    "status",
    "version",
    "fix-history",
]


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog=APP_NAME, description="Apply ordered schema migrations to a database"
    )
    parser.add_argument("--db", default=settings.db_path, help="Path to the SQLite database")
    parser.add_argument("--dir", default=settings.migrations_dir, help="Migrations directory")
    parser.add_argument("--table", default=settings.table_name, help="History table name")
    parser.add_argument("--dialect", default=settings.dialect, help="SQL dialect")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level")
    parser.add_argument(
        "--no-python",
        action="store_true",
        help="Do not import .py migrations from the migrations directory",
    )
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("target", nargs="?", type=int, help="Target version for up-to/down-to")
    return parser


def run_command(runner: MigrationRunner, command: str, target: int | None):
    if command in COMMANDS_WITH_VERSION and target is None:
        raise ConfigurationError(f"{command} requires a target version", config_key="target")

    handlers = {
        "up": runner.up,
        "up-to": lambda: runner.up_to(target),
        "up-all": runner.up_all,
        "up-by-one": runner.up_by_one,
        "down": runner.down,
        "down-to": lambda: runner.down_to(target),
        "redo": runner.redo,
        "status": runner.status,
        "version": runner.version,
        "fix-history": runner.fix_history,
    }
    return handlers[command]()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    try:
        if not args.db:
            raise ConfigurationError("no database given (use --db or SCHEMASTEP_DB_PATH)", config_key="db")

        dialect = get_dialect(args.dialect, args.table)
        registry = FunctionRegistry()
        if not args.no_python:
            registry.load_directory(args.dir)

        with DatabaseConnection(args.db) as db:
            runner = MigrationRunner(db, args.dir, registry=registry, dialect=dialect)
            result = run_command(runner, args.command, args.target)
    except VersionSignal as e:
        logger.info(str(e))
        return 0
    except SchemaStepError as e:
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1

    if isinstance(result, dict):
        logger.info(
            f"{args.command}: {result['start_version']} -> {result['final_version']} "
            f"({len(result['migrations_applied'])} migration(s), "
            f"{result['execution_time_ms']:.1f}ms)"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
