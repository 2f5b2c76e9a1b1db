# Standard library imports
import enum
import os
import re
import time
import traceback

# Third-party imports
import psycopg2

# Custom library imports
from sql_runner.exceptions import DatabaseConnectionError, NotConnected
from sql_runner.file_scanner import create_savepoint_name, read_sql_file
from sql_runner.models import FileExecutionResult, SourceLocation, SqlError


_SEVERITY_PREFIX = re.compile(r"^[A-Z]+:\s+")


class ExecutorState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    IN_TRANSACTION = "in_transaction"


def quote_identifier(identifier):
    """Double-quotes an identifier, doubling any embedded double quote."""
    return '"' + identifier.replace('"', '""') + '"'


class _NoticeRouter:
    """
    Stands in for ``connection.notices``: psycopg2 appends every server
    notice here, and each one is forwarded to the callback as it arrives.
    """

    def __init__(self, callback):
        self._callback = callback

    def append(self, notice):
        if self._callback:
            self._callback(_SEVERITY_PREFIX.sub("", notice).strip())


# ===== 1. ERROR NORMALIZATION =====


def get_line_from_position(sql, position):
    """
    Converts a 1-based character position in ``sql`` into a line/column
    pair. Positions past the end map to the last line.
    """
    lines = sql.split("\n")
    current_pos = 0
    for index, line in enumerate(lines):
        line_length = len(line) + 1  # +1 for the newline
        if current_pos + line_length >= position:
            return SourceLocation(
                line=index + 1,
                column=position - current_pos,
                line_content=line.strip(),
            )
        current_pos += line_length
    return SourceLocation(line=len(lines), column=1, line_content=lines[-1].strip())


def format_sql_error(error, file_name=None, sql=None):
    """Normalizes a driver (or any other) exception into a SqlError."""
    diag = getattr(error, "diag", None)
    message = getattr(diag, "message_primary", None) or str(error).strip()
    position = None
    raw_position = getattr(diag, "statement_position", None)
    if raw_position:
        try:
            position = int(raw_position)
        except (TypeError, ValueError):
            position = None
    location = None
    if position is not None and sql is not None:
        location = get_line_from_position(sql, position)

    return SqlError(
        message=message or type(error).__name__,
        code=getattr(error, "pgcode", None),
        detail=getattr(diag, "message_detail", None),
        hint=getattr(diag, "message_hint", None),
        position=position,
        where=getattr(diag, "context", None),
        stack="".join(traceback.format_exception(error)),
        file_name=file_name,
        location=location,
    )


# ===== 2. EXECUTOR =====


class SqlExecutor:
    """
    Owns one database connection and runs SQL files inside savepoints.

    The connection runs in autocommit mode; BEGIN, COMMIT, ROLLBACK and the
    savepoint statements are issued explicitly.
    """

    def __init__(self, connection_config, logger, on_notice=None):
        self.config = connection_config
        self.logger = logger
        self.on_notice = on_notice
        self._connection = None
        self._state = ExecutorState.DISCONNECTED

    @property
    def state(self):
        return self._state

    @property
    def is_connected(self):
        return self._connection is not None and not self._connection.closed

    @property
    def in_transaction(self):
        return self._state is ExecutorState.IN_TRANSACTION

    # --- Connection lifecycle ---

    def connect(self):
        """Opens the connection. Failures raise DatabaseConnectionError."""
        if self._connection is not None:
            self.disconnect()
        try:
            connection = psycopg2.connect(
                host=self.config.host,
                port=self.config.port,
                dbname=self.config.database,
                user=self.config.user,
                password=self.config.password,
                sslmode=self.config.sslmode,
            )
        except psycopg2.Error as op_err:
            self.logger.error(f"Database connection failed: {str(op_err).strip()}")
            raise DatabaseConnectionError(op_err) from op_err

        connection.autocommit = True
        connection.notices = _NoticeRouter(self._handle_notice)
        self._connection = connection
        self._state = ExecutorState.CONNECTED
        self.logger.success(
            f"Connected to database at {self.config.host}:{self.config.port}"
        )

    def disconnect(self):
        """Closes the connection. Safe to call when already disconnected."""
        if self._connection is None:
            return
        try:
            self._connection.close()
        except psycopg2.Error as close_err:
            # The server may already have dropped the connection.
            self.logger.debug(f"Database connection error on close: {close_err}")
        finally:
            self._connection = None
            self._state = ExecutorState.DISCONNECTED
        self.logger.info("Database connection closed")

    def _handle_notice(self, message):
        if self.on_notice:
            self.on_notice(message)
        else:
            self.logger.info(f"NOTICE: {message}")

    def _ensure_connected(self):
        if self._connection is None:
            raise NotConnected()

    def _execute(self, statement):
        with self._connection.cursor() as cursor:
            cursor.execute(statement)

    # --- Transaction control ---

    def begin_transaction(self):
        self._ensure_connected()
        self._execute("BEGIN")
        self._state = ExecutorState.IN_TRANSACTION
        self.logger.info("Transaction started")

    def commit(self):
        self._ensure_connected()
        self._execute("COMMIT")
        self._state = ExecutorState.CONNECTED
        self.logger.success("Transaction committed - all changes saved")

    def rollback(self):
        self._ensure_connected()
        try:
            self._execute("ROLLBACK")
        except psycopg2.Error:
            self.logger.error("Failed to rollback transaction")
            raise
        self._state = ExecutorState.CONNECTED
        self.logger.warning("Transaction rolled back")

    # --- Savepoints ---

    def create_savepoint(self, name):
        self._ensure_connected()
        self._execute(f"SAVEPOINT {quote_identifier(name)}")
        self.logger.debug(f"Savepoint created: {name}")

    def release_savepoint(self, name):
        self._ensure_connected()
        self._execute(f"RELEASE SAVEPOINT {quote_identifier(name)}")
        self.logger.debug(f"Savepoint released: {name}")

    def rollback_to_savepoint(self, name):
        """
        Returns False instead of raising when the rollback itself fails; the
        caller still has to roll back the outer transaction and disconnect.
        """
        self._ensure_connected()
        try:
            self._execute(f"ROLLBACK TO SAVEPOINT {quote_identifier(name)}")
        except psycopg2.Error as rb_err:
            self.logger.error(f"Failed to rollback to savepoint {name}: {rb_err}")
            return False
        self.logger.warning(f"Rolled back to savepoint: {name}")
        return True

    # --- File execution ---

    def execute_file(self, file_path, index):
        """
        Executes one SQL file inside its own savepoint.

        Errors from the statement batch are returned as a failed
        FileExecutionResult, never raised. A file that cannot be read raises
        FileReadError before any statement is sent; an empty or
        whitespace-only file succeeds without sending anything.
        """
        self._ensure_connected()

        file_name = os.path.basename(file_path)
        savepoint_name = create_savepoint_name(file_name, index)
        self.logger.info(f"Executing: {file_name}")

        # Read first so the content is available for error reporting
        sql = read_sql_file(file_path)
        if not sql.strip():
            # The driver refuses an empty query; nothing to run is not a failure
            self.logger.warning(f"EMPTY FILE: SQL script {file_name} is empty. Skipping.")
            return FileExecutionResult(
                file_name=file_name,
                file_path=str(file_path),
                success=True,
                duration_ms=0,
                savepoint_name=savepoint_name,
            )

        start_time = time.perf_counter()
        try:
            self.create_savepoint(savepoint_name)
            self._execute(sql)
            self.release_savepoint(savepoint_name)
        except Exception as db_err:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            sql_error = format_sql_error(db_err, file_name=file_name, sql=sql)
            self._log_failure(file_name, duration_ms, sql_error)

            self.logger.warning(f"Attempting rollback for: {file_name}")
            rollback_success = self.rollback_to_savepoint(savepoint_name)
            if rollback_success:
                self.logger.success(f"Successfully rolled back: {file_name}")
            else:
                self.logger.error(
                    f"Failed to rollback: {file_name} - database may be in "
                    "an inconsistent state"
                )

            return FileExecutionResult(
                file_name=file_name,
                file_path=str(file_path),
                success=False,
                duration_ms=duration_ms,
                savepoint_name=savepoint_name,
                error=sql_error,
                rollback_success=rollback_success,
            )

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        self.logger.success(f"Completed: {file_name} ({duration_ms}ms)")
        return FileExecutionResult(
            file_name=file_name,
            file_path=str(file_path),
            success=True,
            duration_ms=duration_ms,
            savepoint_name=savepoint_name,
        )

    def _log_failure(self, file_name, duration_ms, sql_error):
        self.logger.error(f"Failed: {file_name} ({duration_ms}ms)")
        self.logger.error(f"Error: {sql_error.message}")
        if sql_error.code:
            self.logger.error(f"SQLSTATE: {sql_error.code}")
        location = sql_error.location
        if location:
            self.logger.error(
                f"Location: line {location.line}, column {location.column}"
            )
            if location.line_content:
                self.logger.error(f"Line content: {location.line_content}")
        if sql_error.where:
            self.logger.error(f"Context: {sql_error.where}")
        if sql_error.detail:
            self.logger.error(f"Detail: {sql_error.detail}")
        if sql_error.hint:
            self.logger.info(f"Hint: {sql_error.hint}")
