"""
Runs a directory of SQL files as one unit of work: one outer transaction,
one savepoint per file, commit only when every file succeeded.
"""

# Standard library imports
import enum
import signal
import threading
import time

# Third-party imports
import psycopg2

# Custom library imports
from sql_runner.confirmation import prompt_confirmation
from sql_runner.connection import (
    extract_host,
    get_error_message,
    parse_database_url,
    validate_database_url,
)
from sql_runner.errors import ConnectionErrorHandler
from sql_runner.executor import SqlExecutor, format_sql_error
from sql_runner.file_scanner import ScriptFile, scan_sql_files
from sql_runner.logger import create_logger
from sql_runner.models import ConnectionContext, ExecutionSummary, RunOptions
from sql_runner.report import write_run_report


class RunnerState(enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    NO_FILES = "no_files"
    FILTERING = "filtering"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CONNECTING = "connecting"
    EXECUTING = "executing"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"
    DONE = "done"


class CancellationToken:
    """
    Cooperative stop request. The runner checks it before each file, so a
    statement already sent to the server always finishes.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self):
        return self._event.is_set()


class SqlRunner:
    """
    Executes the SQL files of ``config.sql_directory`` in order.

        runner = SqlRunner(RunConfiguration(database_url=url, sql_directory="./sql"))
        summary = runner.run(RunOptions(skip_confirmation=True))

    A runner owns at most one connection at a time; callers must not start
    overlapping ``run()`` calls on the same instance.
    """

    def __init__(self, config):
        validate_database_url(config.database_url)
        self.config = config
        self._owns_logger = config.logger is None
        self.logger = config.logger or create_logger(
            verbose=config.verbose, log_directory=config.log_directory
        )
        self.error_handler = ConnectionErrorHandler()
        self._executor = None
        self._state = RunnerState.IDLE

    @property
    def state(self):
        return self._state

    def close(self):
        """Releases the log handlers this runner created for itself."""
        if self._owns_logger:
            self.logger.close()

    # ===== 1. RUN PIPELINE =====

    def run(self, options=None, cancel_token=None):
        """
        Scans, filters, confirms and executes the SQL files.

        Per-file failures and cancellation are reported in the returned
        ExecutionSummary. Configuration errors and unexpected failures
        (for example a refused connection) are raised after ``on_error``
        has been called and the transaction rolled back.
        """
        options = options or RunOptions()
        cancel_token = cancel_token or CancellationToken()
        start_time = time.monotonic()
        results = []
        scan_result = None
        files_to_execute = ()
        connection_config = None
        summary = None
        self._state = RunnerState.IDLE

        try:
            connection_config = parse_database_url(self.config.database_url, self.config.ssl)

            # --- Discovery ---
            self._state = RunnerState.SCANNING
            scan_result = scan_sql_files(
                self.config.sql_directory,
                file_pattern=self.config.file_pattern,
                ignore_pattern=self.config.ignore_pattern,
                logger=self.logger,
            )
            self.logger.info(
                f"Target: {extract_host(self.config.database_url)} | "
                f"Directory: {self.config.sql_directory} | "
                f"Files found: {len(scan_result.files)}"
            )

            if not scan_result.files:
                self._state = RunnerState.NO_FILES
                self.logger.warning("No SQL files found to execute")
                summary = self._finish(results, scan_result, start_time, committed=False)
                return summary

            self._state = RunnerState.FILTERING
            files_to_execute = self._filter_scripts(scan_result.scripts, options)
            self._log_plan(files_to_execute, scan_result.ignored_files)

            if options.dry_run:
                self.logger.info("Dry run - no changes were made to the database")
                summary = self._finish(results, scan_result, start_time, committed=False)
                return summary

            if self.config.require_confirmation and not options.skip_confirmation:
                self._state = RunnerState.AWAITING_CONFIRMATION
                confirm = self.config.confirm or prompt_confirmation
                if not confirm(self.config.confirmation_phrase):
                    self.logger.warning("Execution cancelled - confirmation not given")
                    summary = self._finish(results, scan_result, start_time, committed=False)
                    return summary

            # --- Execution ---
            self._state = RunnerState.CONNECTING
            self.logger.info("Connecting to database...")
            self._executor = SqlExecutor(connection_config, self.logger, self.config.on_notice)
            self._executor.connect()
            self._executor.begin_transaction()

            self._state = RunnerState.EXECUTING
            with _SigintCancels(cancel_token, self.logger):
                committed = self._execute_all(files_to_execute, results, cancel_token)

            if not committed:
                summary = self._finish(results, scan_result, start_time, committed=False)
                return summary

            summary = self._finish(results, scan_result, start_time, committed=True)

        except Exception as run_err:
            self._handle_unexpected(run_err, connection_config)
            raise

        finally:
            if self._executor is not None:
                self._executor.disconnect()
                self._executor = None
            if scan_result is not None and self.config.log_directory:
                report_summary = summary or ExecutionSummary.build(
                    results, scan_result.ignored_files, start_time, committed=False
                )
                write_run_report(
                    report_summary,
                    [script.name for script in files_to_execute],
                    self.config.log_directory,
                    self.logger,
                )
            self._state = RunnerState.DONE

        # Committed at this point; a failing callback must not reach on_error
        if self.config.on_complete:
            self.config.on_complete(summary)
        return summary

    def _execute_all(self, scripts, results, cancel_token):
        """
        Runs each script in order. Returns True once the transaction is
        committed, False when it was rolled back after a failure or a
        cancellation request.
        """
        total = len(scripts)
        for script in scripts:
            if cancel_token.is_cancelled:
                self.logger.warning("Execution aborted by user - rolling back")
                self._rollback("cancellation requested")
                return False

            if self.config.on_before_file:
                self.config.on_before_file(script.name, script.sequence_index, total)

            result = self._executor.execute_file(script.absolute_path, script.sequence_index)
            results.append(result)
            self.logger.info(
                f"[{script.sequence_index + 1}/{total}] {script.name} - "
                f"{'OK' if result.success else 'FAILED'} ({result.duration_ms}ms)"
            )

            if self.config.on_after_file:
                self.config.on_after_file(result)

            if not result.success:
                if self.config.log_directory:
                    self.logger.info(
                        f"Full error details saved to: {self.config.log_directory}/sql-runner-error.log"
                    )
                self._rollback(f"failure in {script.name}")
                return False

        if cancel_token.is_cancelled:
            self.logger.warning("Execution aborted by user - rolling back")
            self._rollback("cancellation requested")
            return False

        self._state = RunnerState.COMMITTING
        self._executor.commit()
        return True

    def _filter_scripts(self, scripts, options):
        """Applies ``only_files`` then ``skip_files``, keeping scan order."""
        if options.only_files:
            only = set(options.only_files)
            scripts = [s for s in scripts if s.name in only]
            found = {s.name for s in scripts}
            not_found = [name for name in options.only_files if name not in found]
            if not_found:
                self.logger.warning(f"Requested files not found: {', '.join(not_found)}")

        if options.skip_files:
            skip = set(options.skip_files)
            scripts = [s for s in scripts if s.name not in skip]

        # Re-number so savepoints and progress follow the filtered order
        return tuple(
            ScriptFile(script.name, script.absolute_path, index)
            for index, script in enumerate(scripts)
        )

    # ===== 2. FAILURE HANDLING =====

    def _rollback(self, context_msg):
        """Rolls back the outer transaction; a failing rollback is only logged."""
        self._state = RunnerState.ROLLING_BACK
        executor = self._executor
        if executor is None or not executor.is_connected:
            self.logger.warning(f"Cannot rollback, connection closed or None ({context_msg}).")
            return False
        if not executor.in_transaction:
            self.logger.info(f"No active transaction to rollback ({context_msg}).")
            return False
        try:
            executor.rollback()
        except psycopg2.Error as rb_e:
            self.logger.error(f"Rollback failed ({context_msg}): {rb_e}")
            return False
        self.logger.info(f"Rollback successful ({context_msg}).")
        return True

    def _handle_unexpected(self, error, connection_config):
        sql_error = format_sql_error(error)
        context = ConnectionContext(
            database_url=self.config.database_url,
            hostname=connection_config.host if connection_config else None,
            port=connection_config.port if connection_config else None,
        )
        error_help = self.error_handler.get_help(error, context)

        if self.config.on_error:
            self.config.on_error(sql_error, error_help)

        self.logger.error(f"Execution failed: {get_error_message(error)}")
        self.logger.error(self.error_handler.format(error_help))
        if self.config.log_directory:
            self.logger.info(
                f"Full error details saved to: {self.config.log_directory}/sql-runner-error.log"
            )
        self._rollback("unexpected error")

    # ===== 3. SUMMARY =====

    def _finish(self, results, scan_result, start_time, committed):
        summary = ExecutionSummary.build(
            results, scan_result.ignored_files, start_time, committed=committed
        )
        self._log_summary(summary)
        return summary

    def _log_plan(self, scripts, ignored_files):
        self.logger.info(f"Files to execute ({len(scripts)}):")
        for script in scripts:
            self.logger.info(f"  {script.sequence_index + 1}. {script.name}")
        if ignored_files:
            self.logger.info(f"Ignored files ({len(ignored_files)}): {', '.join(ignored_files)}")

    def _log_summary(self, summary):
        self.logger.info("===== Execution Summary =====")
        self.logger.info(f"Files executed: {summary.total_files}")
        self.logger.info(f"Successful: {summary.successful_files}")
        self.logger.info(f"Failed: {summary.failed_files}")
        self.logger.info(f"Duration: {summary.total_duration_ms}ms")
        if summary.committed:
            self.logger.success("All changes committed")
        else:
            self.logger.info("No changes committed")
        self.logger.info("=============================")


class _SigintCancels:
    """
    Context manager that makes Ctrl+C set ``token`` instead of raising
    KeyboardInterrupt. Signal handlers can only be installed from the main
    thread; elsewhere the token is left to the caller.
    """

    def __init__(self, token, logger):
        self.token = token
        self.logger = logger
        self._previous = None
        self._installed = False

    def _on_sigint(self, signum, frame):
        if not self.token.is_cancelled:
            self.token.cancel()
            self.logger.warning("Interrupt received - stopping after current file...")

    def __enter__(self):
        if threading.current_thread() is threading.main_thread():
            self._previous = signal.signal(signal.SIGINT, self._on_sigint)
            self._installed = True
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._installed:
            signal.signal(signal.SIGINT, self._previous or signal.SIG_DFL)
            self._installed = False
        return False


def run_sql_scripts(config, options=None, cancel_token=None):
    """Creates a runner for ``config`` and runs it once."""
    runner = SqlRunner(config)
    try:
        return runner.run(options, cancel_token)
    finally:
        runner.close()
