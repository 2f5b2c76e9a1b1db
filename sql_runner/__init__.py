"""
Runs a directory of SQL scripts against PostgreSQL in one transaction, with
a savepoint per file and a full rollback on the first failure.
"""

__version__ = "1.0.0"

from sql_runner.connection import mask_password, parse_database_url
from sql_runner.errors import ConnectionErrorHandler, DetectorRegistry
from sql_runner.exceptions import (
    ConfigurationError,
    DatabaseConnectionError,
    DirectoryNotFound,
    FileReadError,
    InvalidDatabaseUrl,
    NotADirectory,
    NotConnected,
    SqlRunnerError,
)
from sql_runner.executor import SqlExecutor
from sql_runner.file_scanner import scan_sql_files
from sql_runner.logger import create_logger
from sql_runner.models import (
    ExecutionSummary,
    FileExecutionResult,
    RunConfiguration,
    RunOptions,
    SqlError,
)
from sql_runner.runner import CancellationToken, SqlRunner, run_sql_scripts
