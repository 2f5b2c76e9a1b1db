"""Exception hierarchy for the SQL runner."""


class SqlRunnerError(Exception):
    """Base class for every error raised by the runner."""


# ===== CONFIGURATION ERRORS =====
# Raised before any connection is opened, never retried.


class ConfigurationError(SqlRunnerError):
    """Invalid or missing run configuration."""


class InvalidDatabaseUrl(ConfigurationError):
    """The database URL cannot be parsed or lacks a hostname/username."""


class DirectoryNotFound(ConfigurationError):
    """The SQL directory does not exist."""

    def __init__(self, path):
        super().__init__(f"SQL directory not found: {path}")
        self.path = path


class NotADirectory(ConfigurationError):
    """The SQL directory path exists but is not a directory."""

    def __init__(self, path):
        super().__init__(f"Path is not a directory: {path}")
        self.path = path


# ===== RUNTIME ERRORS =====


class FileReadError(SqlRunnerError):
    """A SQL file could not be read or decoded."""

    def __init__(self, path, cause):
        super().__init__(f"Failed to read SQL file: {path}\n{cause}")
        self.path = path
        self.cause = cause


class NotConnected(SqlRunnerError):
    """A database operation was attempted without an open connection."""

    def __init__(self, message="Database not connected. Call connect() first."):
        super().__init__(message)


class DatabaseConnectionError(SqlRunnerError):
    """Opening the database connection failed.

    The driver's original exception is kept in ``cause`` so it can be
    classified by the error handler.
    """

    def __init__(self, cause):
        super().__init__(str(cause).strip() or type(cause).__name__)
        self.cause = cause
