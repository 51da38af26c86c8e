"""
Exception Hierarchy for schemastep
Provides standardized error handling with consistent exception types.

Recoverable failures derive from MigrationError. The "nothing to do" signals
(NoCurrentVersion, NoNextVersion) derive from VersionSignal and are logged at
DEBUG. DuplicateVersionError is not a MigrationError; it aborts whatever is
running.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class SchemaStepError(Exception):
    """
    Base exception class for all schemastep errors.

    Provides common functionality for error context, logging, and user messages.
    """

    default_log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        user_message: str | None = None,
        log_level: int | None = None,
    ):
        """
        Initialize base exception.

        Args:
            message: Technical error message for logging
            error_code: Optional error code for programmatic handling
            context: Optional context information for debugging
            user_message: Optional user-friendly message
            log_level: Logging level for this error
        """
        super().__init__(message)
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}
        self.user_message = user_message or self._get_default_user_message()
        self.log_level = self.default_log_level if log_level is None else log_level

        self._log_error()

    def _get_default_user_message(self) -> str:
        return "An error occurred while migrating the database."

    def _log_error(self) -> None:
        """Log the error with appropriate level and context."""
        log_message = f"[{self.error_code}] {str(self)}"
        if self.context:
            log_message += f" | Context: {self.context}"

        logger.log(self.log_level, log_message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for CLI or API output.

        Returns:
            Dictionary representation of the error
        """
        return {
            "error": self.error_code,
            "message": str(self),
            "user_message": self.user_message,
            "context": self.context,
        }

    def with_context(self, **kwargs: Any) -> "SchemaStepError":
        """Add context information to the exception and return self."""
        self.context.update(kwargs)
        return self


class ConfigurationError(SchemaStepError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: str | None = None, **kwargs: Any):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key

        self.config_key = config_key
        super().__init__(message, context=context, **kwargs)

    def _get_default_user_message(self) -> str:
        if self.config_key:
            return f"Invalid configuration value for '{self.config_key}'"
        return "Invalid configuration"


class MigrationError(SchemaStepError):
    """Base class for recoverable migration failures."""

    def __init__(self, message: str, source: str | None = None, **kwargs: Any):
        context = kwargs.pop("context", {})
        if source:
            context["source"] = source

        self.source = source
        super().__init__(message, context=context, **kwargs)


class InvalidMigrationName(MigrationError):
    """Raised when a version cannot be parsed out of a migration name."""

    # Auxiliary .py files are expected to fail extraction and are skipped
    default_log_level = logging.DEBUG

    def _get_default_user_message(self) -> str:
        return "Migration names must look like <version>_<description>.sql or .py"


class InvalidMigrationScript(MigrationError):
    """Raised when a SQL script has no usable up/down annotations."""


class DirectoryNotFound(MigrationError):
    """Raised when the migrations directory does not exist."""

    def __init__(self, message: str, path: str | None = None, **kwargs: Any):
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path

        self.path = path
        super().__init__(message, context=context, **kwargs)

    def _get_default_user_message(self) -> str:
        if self.path:
            return f"Migrations directory not found: {self.path}"
        return "Migrations directory not found"


class UnregisteredFunctionMigration(MigrationError):
    """
    Raised when a Python migration file was discovered on disk but its
    functions were never registered with the FunctionRegistry.

    This is a build/configuration problem, not a data problem.
    """

    def _get_default_user_message(self) -> str:
        return (
            "Python migrations must be registered with a FunctionRegistry "
            "before they can run"
        )


class MigrationExecutionFailed(MigrationError):
    """Raised when a single migration fails; wraps the underlying error."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        version: int | None = None,
        **kwargs: Any,
    ):
        context = kwargs.pop("context", {})
        if version is not None:
            context["version"] = version

        self.version = version
        super().__init__(message, source=source, context=context, **kwargs)

    def _get_default_user_message(self) -> str:
        if self.source:
            return f"Migration {self.source} failed; database left at the last committed version"
        return "Migration failed; database left at the last committed version"


class HistoryRepairFailed(MigrationError):
    """Raised when rewriting the history table fails."""


class HistoryNotFound(MigrationError):
    """Raised by read-only queries when the history table does not exist."""

    def _get_default_user_message(self) -> str:
        return "No migration history exists for this database"


class VersionNotFound(MigrationError):
    """Raised when the recorded database version has no migration on disk or in the registry."""

    def __init__(self, message: str, version: int | None = None, **kwargs: Any):
        context = kwargs.pop("context", {})
        if version is not None:
            context["version"] = version

        self.version = version
        super().__init__(message, context=context, **kwargs)

    def _get_default_user_message(self) -> str:
        return "The database is at a version that none of the known migrations provide"


class VersionSignal(SchemaStepError):
    """Expected 'nothing to do' conditions; not failures."""

    default_log_level = logging.DEBUG


class NoCurrentVersion(VersionSignal):
    """Raised when a current version cannot be found."""

    def __init__(self, message: str = "no current version found", **kwargs: Any):
        super().__init__(message, **kwargs)


class NoNextVersion(VersionSignal):
    """Raised when there is no next (or previous) migration to move to."""

    def __init__(self, message: str = "no next version found", **kwargs: Any):
        super().__init__(message, **kwargs)


class DuplicateVersionError(SchemaStepError):
    """
    Two migrations share a version.

    Fatal. Not a MigrationError, so the apply loop never catches it.
    """

    default_log_level = logging.CRITICAL

    def __init__(self, message: str, version: int, sources: tuple[str, ...] = (), **kwargs: Any):
        context = kwargs.pop("context", {})
        context["version"] = version
        if sources:
            context["sources"] = list(sources)

        self.version = version
        self.sources = sources
        super().__init__(message, context=context, **kwargs)


class DatabaseConnectionError(SchemaStepError):
    """Raised when database connection or query execution fails."""


class SchemaError(DatabaseConnectionError):
    """Raised when a query references a table or column that does not exist."""


class TransactionError(SchemaStepError):
    """Raised when transaction operations fail."""
