"""Value types shared by the scanner, executor and runner."""

# Standard library imports
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

# Custom library imports
from sql_runner.file_scanner import DEFAULT_FILE_PATTERN, DEFAULT_IGNORE_PATTERN


DEFAULT_CONFIRMATION_PHRASE = "CONFIRM"
DEFAULT_LOG_DIRECTORY = "./logs"


# ===== 1. CONNECTION =====


@dataclass(frozen=True)
class ConnectionConfig:
    """Network parameters parsed from a database URL."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str = "require"


# ===== 2. RUN INPUTS =====


def _compile(pattern):
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


@dataclass(frozen=True)
class RunConfiguration:
    """
    Resolved configuration for one runner. The runner reads it but never
    mutates it; string patterns are compiled once on construction.
    """

    database_url: str
    sql_directory: str = "."
    file_pattern: Any = DEFAULT_FILE_PATTERN
    ignore_pattern: Any = DEFAULT_IGNORE_PATTERN
    ssl: bool | str = True
    require_confirmation: bool = True
    confirmation_phrase: str = DEFAULT_CONFIRMATION_PHRASE
    verbose: bool = False
    log_directory: str | None = DEFAULT_LOG_DIRECTORY
    logger: Any = None
    on_notice: Callable | None = None
    on_before_file: Callable | None = None
    on_after_file: Callable | None = None
    on_complete: Callable | None = None
    on_error: Callable | None = None
    confirm: Callable | None = None

    def __post_init__(self):
        object.__setattr__(self, "file_pattern", _compile(self.file_pattern))
        object.__setattr__(self, "ignore_pattern", _compile(self.ignore_pattern))


@dataclass(frozen=True)
class RunOptions:
    """Per-invocation switches for ``SqlRunner.run``."""

    skip_confirmation: bool = False
    only_files: tuple[str, ...] = ()
    skip_files: tuple[str, ...] = ()
    dry_run: bool = False


# ===== 3. EXECUTION OUTCOMES =====


@dataclass(frozen=True)
class SourceLocation:
    line: int
    column: int
    line_content: str = ""


@dataclass(frozen=True)
class SqlError:
    """
    Normalized database error. ``position`` is the 1-based character offset
    reported by the server into the executed statement text.
    """

    message: str
    code: str | None = None
    detail: str | None = None
    hint: str | None = None
    position: int | None = None
    where: str | None = None
    stack: str | None = None
    file_name: str | None = None
    location: SourceLocation | None = None


@dataclass(frozen=True)
class FileExecutionResult:
    file_name: str
    file_path: str
    success: bool
    duration_ms: int
    savepoint_name: str
    error: SqlError | None = None
    rollback_success: bool | None = None


@dataclass(frozen=True)
class ExecutionSummary:
    """Final report of a run. Build it with ``ExecutionSummary.build``."""

    total_files: int
    successful_files: int
    failed_files: int
    total_duration_ms: int
    results: tuple[FileExecutionResult, ...]
    all_successful: bool
    committed: bool
    ignored_files: tuple[str, ...] = ()

    @classmethod
    def build(cls, results, ignored_files, start_time, committed):
        """
        Creates a summary from the collected results. ``start_time`` is a
        ``time.monotonic()`` reading taken when the run started.
        """
        results = tuple(results)
        successful = sum(1 for r in results if r.success)
        failed = len(results) - successful
        if committed and failed:
            raise ValueError("A run with failed files cannot be committed.")
        return cls(
            total_files=len(results),
            successful_files=successful,
            failed_files=failed,
            total_duration_ms=int((time.monotonic() - start_time) * 1000),
            results=results,
            all_successful=failed == 0,
            committed=committed,
            ignored_files=tuple(ignored_files),
        )


# ===== 4. ERROR CLASSIFICATION =====


@dataclass(frozen=True)
class ConnectionContext:
    """What is known about the connection attempt that produced an error."""

    database_url: str | None = None
    hostname: str | None = None
    port: int | None = None


@dataclass(frozen=True)
class ErrorHelp:
    is_known_error: bool
    title: str
    explanation: str
    suggestions: tuple[str, ...] = field(default_factory=tuple)
    docs_url: str | None = None
    original_message: str | None = None
