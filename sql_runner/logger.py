# Standard library imports
import itertools
import logging
import pathlib
import sys


# ===== 1. LOGGING SETUP =====

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "sql-runner.log"
ERROR_LOG_FILE_NAME = "sql-runner-error.log"

_logger_ids = itertools.count(1)


class RunLogger:
    """
    Logger handed to the scanner, executor and runner.

    Wraps a standard library logger and adds ``success`` on the custom
    SUCCESS level. ``stacklevel=2`` keeps [module:lineno] pointing at the
    caller instead of this wrapper.
    """

    def __init__(self, logger):
        self._logger = logger

    @property
    def handlers(self):
        return list(self._logger.handlers)

    def info(self, message):
        self._logger.info(message, stacklevel=2)

    def success(self, message):
        self._logger.log(SUCCESS, message, stacklevel=2)

    def warning(self, message):
        self._logger.warning(message, stacklevel=2)

    def error(self, message):
        self._logger.error(message, stacklevel=2)

    def debug(self, message):
        self._logger.debug(message, stacklevel=2)

    def close(self):
        """Closes and detaches every handler (file handlers keep files open)."""
        for handler in list(self._logger.handlers):
            handler.close()
            self._logger.removeHandler(handler)


def _prepare_log_directory(log_directory):
    """
    Creates the log directory if it doesn't exist. Reports if it cannot be
    created, disabling file logging.
    """
    log_dir = pathlib.Path(log_directory)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(
            f"WARNING: Could not create log directory '{log_dir}'. "
            f"File logging disabled. Error: {e}",
            file=sys.stderr,
        )
        return None
    return log_dir


def create_logger(verbose=False, log_directory=None, silent=False, name="sql_runner"):
    """
    Builds a RunLogger with console output and, when ``log_directory`` is
    given, a full log file plus an error-only log file in that directory.

    Every call gets its own child logger so handlers from separate runners
    never pile up on a shared instance.
    """
    logger = logging.getLogger(f"{name}.run{next(_logger_ids)}")
    logger.propagate = False
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    if silent:
        logger.addHandler(logging.NullHandler())
        return RunLogger(logger)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # --- Console logging handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # --- File logging handlers ---
    log_dir = _prepare_log_directory(log_directory) if log_directory else None
    if log_dir:
        try:
            file_handler = logging.FileHandler(
                log_dir / LOG_FILE_NAME, mode="a", encoding="utf-8"
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

            error_handler = logging.FileHandler(
                log_dir / ERROR_LOG_FILE_NAME, mode="a", encoding="utf-8"
            )
            error_handler.setLevel(logging.ERROR)
            error_handler.setFormatter(formatter)
            logger.addHandler(error_handler)
            logger.debug(f"Logging to console and to directory {log_dir}")
        except OSError as e:
            logger.error(f"Failed to set up logging to directory {log_dir}: {e}")

    return RunLogger(logger)
