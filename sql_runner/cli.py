"""Command line entry point: ``sql-runner`` / ``python -m sql_runner``."""

# Standard library imports
import argparse
import os
import pathlib
import sys
import threading
from urllib.parse import quote

# Third-party imports
from dotenv import load_dotenv

# Custom library imports
from sql_runner import __version__
from sql_runner.config_file import CONFIG_FILE_NAMES, load_config
from sql_runner.connection import get_error_message
from sql_runner.exceptions import ConfigurationError
from sql_runner.file_scanner import DEFAULT_FILE_PATTERN, DEFAULT_IGNORE_PATTERN
from sql_runner.models import (
    DEFAULT_CONFIRMATION_PHRASE,
    DEFAULT_LOG_DIRECTORY,
    RunConfiguration,
    RunOptions,
)
from sql_runner.runner import SqlRunner
from sql_runner.watcher import DirectoryWatcher


DEFAULT_SQL_DIRECTORY = "./sql"
DEFAULT_ENV_FILE = ".env"
WATCH_COUNTDOWN_SECONDS = 30


# ===== 1. ARGUMENTS =====


def _comma_separated(value):
    return tuple(item.strip() for item in value.split(",") if item.strip())


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sql-runner",
        description=(
            "Execute the SQL scripts of a directory against a PostgreSQL\n"
            "database in one transaction. Each file runs inside its own\n"
            "savepoint; the first failure rolls everything back."
        ),
        epilog=(
            "Settings can also come from the nearest " + ", ".join(CONFIG_FILE_NAMES) + "\n"
            "(camelCase keys such as directory, filePattern, ssl). Command line\n"
            "options take precedence."
        ),
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "directory",
        nargs="?",
        help=f"Directory containing the '*.sql' files (default: {DEFAULT_SQL_DIRECTORY})",
    )
    parser.add_argument(
        "-d",
        "--directory",
        "--sql-directory",
        dest="sql_directory",
        help="Same as the positional directory; takes precedence over it.",
    )
    parser.add_argument(
        "-u",
        "--url",
        "--database-url",
        dest="database_url",
        help=(
            "PostgreSQL connection URL. Defaults to $DATABASE_URL, or a URL\n"
            "composed from DB_HOST, DB_PORT, DB_NAME, DB_USER and DB_PASS."
        ),
    )
    parser.add_argument(
        "-e",
        "--env",
        "--env-file",
        dest="env_file",
        help=(
            f"Environment file to load (default: {DEFAULT_ENV_FILE}). Variables\n"
            "already set in the environment are not overridden."
        ),
    )
    parser.add_argument(
        "-y",
        "--yes",
        "--skip-confirmation",
        dest="skip_confirmation",
        action="store_true",
        default=None,
        help="Skip the interactive confirmation prompt.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="List the files that would run without connecting.",
    )
    parser.add_argument(
        "--only",
        type=_comma_separated,
        metavar="FILES",
        help="Comma separated file names to run (others are skipped).",
    )
    parser.add_argument(
        "--skip",
        type=_comma_separated,
        metavar="FILES",
        help="Comma separated file names to leave out.",
    )
    parser.add_argument(
        "--confirmation-phrase",
        help=f"Phrase to type before execution (default: {DEFAULT_CONFIRMATION_PHRASE}).",
    )
    parser.add_argument(
        "--log-directory",
        help=f"Directory for log and report files (default: {DEFAULT_LOG_DIRECTORY}).",
    )
    parser.add_argument(
        "--no-logs",
        action="store_true",
        default=None,
        help="Disable log and report files.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Log debug messages (savepoints, connection details).",
    )
    parser.add_argument(
        "-w",
        "--watch",
        action="store_true",
        default=None,
        help=(
            "After the first run, watch the directory and run again\n"
            f"{WATCH_COUNTDOWN_SECONDS}s after the last change (Ctrl+C to stop)."
        ),
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser


# ===== 2. ENVIRONMENT =====


def load_environment(env_file):
    """Loads ``env_file`` when it exists. Returns True if it was loaded."""
    env_path = pathlib.Path(env_file)
    if not env_path.is_file():
        if env_file != DEFAULT_ENV_FILE:
            print(f"WARNING: Environment file not found: {env_path}", file=sys.stderr)
        return False
    return load_dotenv(env_path, override=False)


def resolve_database_url(cli_url=None, environ=None):
    """
    Picks the connection URL: the command line value, then DATABASE_URL,
    then a URL composed from the DB_* variables when any of them is set.
    """
    environ = os.environ if environ is None else environ
    if cli_url:
        return cli_url
    if environ.get("DATABASE_URL"):
        return environ["DATABASE_URL"]

    parts = ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER", "DB_PASS")
    if not any(environ.get(name) for name in parts):
        return None

    user = quote(environ.get("DB_USER", "postgres"), safe="")
    password = quote(environ.get("DB_PASS", ""), safe="")
    credentials = f"{user}:{password}" if password else user
    host = environ.get("DB_HOST", "localhost")
    port = environ.get("DB_PORT", "5432")
    database = environ.get("DB_NAME", "postgres")
    return f"postgresql://{credentials}@{host}:{port}/{database}"


# ===== 3. SETTINGS =====

SETTING_DEFAULTS = {
    "sql_directory": DEFAULT_SQL_DIRECTORY,
    "database_url": None,
    "env_file": DEFAULT_ENV_FILE,
    "skip_confirmation": False,
    "confirmation_phrase": DEFAULT_CONFIRMATION_PHRASE,
    "verbose": False,
    "dry_run": False,
    "no_logs": False,
    "log_directory": DEFAULT_LOG_DIRECTORY,
    "only": (),
    "skip": (),
    "watch": False,
    "ssl": True,
    "file_pattern": DEFAULT_FILE_PATTERN,
    "ignore_pattern": DEFAULT_IGNORE_PATTERN,
}


def merge_settings(args, file_settings=None):
    """
    Combines the parsed arguments with the configuration file: a value given
    on the command line wins, then the file, then the built-in default.
    """
    settings = dict(SETTING_DEFAULTS)
    settings.update(file_settings or {})

    cli_values = {name: getattr(args, name, None) for name in SETTING_DEFAULTS}
    cli_values["sql_directory"] = args.sql_directory or args.directory
    settings.update({name: value for name, value in cli_values.items() if value is not None})
    return settings


# ===== 4. EXECUTION =====


def build_run_configuration(settings, database_url):
    return RunConfiguration(
        database_url=database_url,
        sql_directory=settings["sql_directory"],
        file_pattern=settings["file_pattern"],
        ignore_pattern=settings["ignore_pattern"],
        ssl=settings["ssl"],
        require_confirmation=not settings["skip_confirmation"],
        confirmation_phrase=settings["confirmation_phrase"],
        verbose=settings["verbose"],
        log_directory=None if settings["no_logs"] else settings["log_directory"],
    )


def build_run_options(settings, skip_confirmation=None):
    return RunOptions(
        skip_confirmation=(
            settings["skip_confirmation"] if skip_confirmation is None else skip_confirmation
        ),
        only_files=tuple(settings["only"]),
        skip_files=tuple(settings["skip"]),
        dry_run=settings["dry_run"],
    )


def _watch(runner, settings):
    """Re-runs ``runner`` on changes until interrupted."""
    config = runner.config

    def run_again():
        runner.run(build_run_options(settings, skip_confirmation=True))

    watcher = DirectoryWatcher(
        config.sql_directory,
        config.file_pattern,
        run_again,
        runner.logger,
        countdown_seconds=WATCH_COUNTDOWN_SECONDS,
    )
    stop_event = threading.Event()
    try:
        watcher.run_forever(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
        print("\nStopped watching.")
    return 0


def main(argv=None):
    """Runs the command line interface and returns the process exit code."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exit_err:
        # --help/--version exit with 0, argument errors with 2
        return exit_err.code if isinstance(exit_err.code, int) else 2

    try:
        file_settings, config_path = load_config()
    except ConfigurationError as config_err:
        print(f"ERROR: {config_err}", file=sys.stderr)
        return 1
    settings = merge_settings(args, file_settings)
    if config_path and settings["verbose"]:
        print(f"Using config file: {config_path}")

    load_environment(settings["env_file"])
    database_url = resolve_database_url(settings["database_url"])

    try:
        runner = SqlRunner(build_run_configuration(settings, database_url))
    except ConfigurationError as config_err:
        print(f"ERROR: {config_err}", file=sys.stderr)
        return 1

    try:
        summary = runner.run(build_run_options(settings))
    except Exception as run_err:
        # The runner has already logged the classified error and rolled back
        print(f"Fatal error: {get_error_message(run_err)}", file=sys.stderr)
        runner.close()
        return 1

    try:
        if settings["watch"] and not settings["dry_run"]:
            return _watch(runner, settings)
    finally:
        runner.close()

    return 0 if summary.all_successful else 1


if __name__ == "__main__":
    sys.exit(main())
