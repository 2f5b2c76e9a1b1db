from pathlib import Path
from types import SimpleNamespace

import psycopg2
import pytest

from sql_runner.logger import create_logger


class FakeDatabaseError(psycopg2.Error):
    """psycopg2 error carrying a SQLSTATE and diagnostics, as the server would send."""

    def __init__(self, message, pgcode=None, position=None, detail=None, hint=None, context=None):
        super().__init__(message)
        self._pgcode = pgcode
        self._diag = SimpleNamespace(
            message_primary=message,
            message_detail=detail,
            message_hint=hint,
            statement_position=None if position is None else str(position),
            context=context,
        )

    @property
    def pgcode(self):
        return self._pgcode

    @property
    def diag(self):
        return self._diag


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, statement):
        if self.connection.closed:
            raise psycopg2.InterfaceError("connection already closed")
        if not statement.strip():
            # Same refusal as the real driver
            raise psycopg2.ProgrammingError("can't execute an empty query")
        self.connection.executed.append(statement)
        for fragment, error in self.connection.failures.items():
            if fragment in statement:
                raise error
        for notice in self.connection.notices_for.get(statement, ()):
            self.connection.notices.append(notice)


class FakeConnection:
    """
    Records every statement. ``failures`` maps a statement fragment to the
    exception raised when a statement containing it is executed.
    """

    def __init__(self):
        self.executed = []
        self.failures = {}
        self.notices_for = {}
        self.notices = []
        self.autocommit = False
        self.closed = 0
        self.close_error = None

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = 1
        if self.close_error:
            raise self.close_error


@pytest.fixture
def fake_connection(monkeypatch):
    connection = FakeConnection()
    calls = []

    def connect(**kwargs):
        calls.append(kwargs)
        return connection

    monkeypatch.setattr(psycopg2, "connect", connect)
    connection.connect_calls = calls
    return connection


@pytest.fixture
def silent_logger():
    logger = create_logger(silent=True)
    yield logger
    logger.close()


def write_sql_files(directory: Path, files: dict) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        (directory / name).write_text(content, encoding="utf-8")
    return directory
