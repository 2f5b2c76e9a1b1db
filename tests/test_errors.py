import json
import socket

import pytest

from sql_runner.errors import (
    ConnectionErrorHandler,
    ConsoleErrorFormatter,
    Detector,
    DetectorRegistry,
    JsonErrorFormatter,
    MarkdownErrorFormatter,
    SimpleErrorFormatter,
    create_default_registry,
)
from sql_runner.errors.base import is_pooler_connection, is_transaction_pooler
from sql_runner.exceptions import DatabaseConnectionError, InvalidDatabaseUrl
from sql_runner.models import ConnectionContext, ErrorHelp
from tests.conftest import FakeDatabaseError


DIRECT_URL = "postgres://postgres:pw@db.proj.supabase.co:5432/postgres"
SESSION_POOLER_URL = "postgres://postgres.proj:pw@aws-0-eu.pooler.supabase.com:5432/postgres"
TRANSACTION_POOLER_URL = "postgres://postgres.proj:pw@aws-0-eu.pooler.supabase.com:6543/postgres"


def _context(url):
    return ConnectionContext(database_url=url)


@pytest.fixture
def handler():
    return ConnectionErrorHandler()


def test_default_registry_order() -> None:
    names = [d.name for d in create_default_registry().detectors]

    assert names == [
        "invalid-url",
        "dns-direct-connection",
        "dns-generic",
        "connection-refused",
        "connection-timeout",
        "authentication",
        "database-not-found",
        "too-many-connections",
        "ssl",
        "prepared-statement",
    ]


def test_dns_failure_on_direct_connection_points_to_pooler(handler) -> None:
    error = Exception("getaddrinfo ENOTFOUND db.proj.supabase.co")

    error_help = handler.get_help(error, _context(DIRECT_URL))

    assert error_help.is_known_error is True
    assert "IPv6" in error_help.title
    assert any("Pooler" in s for s in error_help.suggestions)
    assert "db.proj.supabase.co" in error_help.explanation
    assert any("postgres.proj" in s for s in error_help.suggestions)


def test_libpq_dns_failure_on_other_host_is_generic(handler) -> None:
    error = DatabaseConnectionError(
        FakeDatabaseError('could not translate host name "typo.example.com" to address')
    )

    error_help = handler.get_help(error, _context("postgres://u:p@typo.example.com/db"))

    assert error_help.title == "DNS Resolution Failed"
    assert "typo.example.com" in error_help.explanation


def test_connection_refused_from_errno(handler) -> None:
    error = ConnectionRefusedError(111, "Connection refused")

    error_help = handler.get_help(error, _context(SESSION_POOLER_URL))

    assert error_help.title == "Connection Refused"
    assert any("Session Pooler: port 5432" in s for s in error_help.suggestions)


def test_timeout(handler) -> None:
    error_help = handler.get_help(socket.timeout("timed out"), _context(DIRECT_URL))

    assert error_help.title == "Connection Timeout"
    assert any("IPv6 ISSUES" in s for s in error_help.suggestions)


def test_authentication_by_sqlstate(handler) -> None:
    error = FakeDatabaseError("login rejected", pgcode="28P01")

    error_help = handler.get_help(error, _context(SESSION_POOLER_URL))

    assert error_help.title == "Authentication Failed"
    assert any("postgres.proj" in s for s in error_help.suggestions)


def test_database_not_found_names_the_database(handler) -> None:
    error = FakeDatabaseError('database "shop" does not exist', pgcode="3D000")

    error_help = handler.get_help(error, _context("postgres://u:p@h/shop"))

    assert error_help.title == "Database Not Found"
    assert '"shop"' in error_help.explanation


def test_too_many_connections(handler) -> None:
    error = FakeDatabaseError("sorry, too many clients already", pgcode="53300")

    assert handler.get_help(error, _context(DIRECT_URL)).title == "Too Many Connections"


def test_ssl_error(handler) -> None:
    error = Exception("SSL SYSCALL error: EOF detected")

    assert handler.get_help(error, _context(SESSION_POOLER_URL)).title == "SSL Connection Error"


def test_prepared_statement_only_on_transaction_pooler(handler) -> None:
    error = FakeDatabaseError('prepared statement "s1" already exists', pgcode="42P05")

    on_pooler = handler.get_help(error, _context(TRANSACTION_POOLER_URL))
    on_session = handler.get_help(error, _context(SESSION_POOLER_URL))

    assert on_pooler.title == "Prepared Statement Error (Transaction Pooler)"
    assert on_session.is_known_error is False


def test_pooler_heuristics_tell_pooler_modes_apart() -> None:
    assert is_pooler_connection(SESSION_POOLER_URL)
    assert not is_transaction_pooler(SESSION_POOLER_URL)
    assert is_transaction_pooler(TRANSACTION_POOLER_URL)
    assert not is_pooler_connection(DIRECT_URL)
    assert not is_transaction_pooler(None)


def test_invalid_url_wins_over_words_in_the_quoted_url(handler) -> None:
    error = InvalidDatabaseUrl(
        "Invalid database URL format (missing hostname). Expected: ...\n"
        "Received: postgres://u:***@/db?sslmode=require&connect_timeout=5"
    )

    assert handler.get_help(error).title == "Invalid Database URL Format"


def test_unknown_error_falls_back_to_generic_help(handler) -> None:
    error_help = handler.get_help(RuntimeError("something odd"))

    assert error_help.is_known_error is False
    assert error_help.title == "Connection Error"
    assert error_help.explanation == "something odd"
    assert handler.is_known_error(RuntimeError("something odd")) is False


def test_classification_is_stateless(handler) -> None:
    error = Exception("getaddrinfo ENOTFOUND db.proj.supabase.co")
    context = _context(DIRECT_URL)

    assert handler.get_help(error, context) == handler.get_help(error, context)


def test_registry_first_match_wins_and_custom_detectors_can_be_added() -> None:
    custom = Detector(
        "custom",
        lambda error, context: "quota" in str(error),
        lambda error, context: ErrorHelp(True, "Quota Exceeded", str(error)),
    )
    registry = DetectorRegistry()
    registry.register(custom)
    registry.register_all(create_default_registry().detectors)
    handler = ConnectionErrorHandler(registry=registry)

    assert len(registry) == 11
    assert registry.has_detector("custom")
    assert not registry.has_detector("missing")
    assert handler.get_help(Exception("quota timeout")).title == "Quota Exceeded"


def test_registry_detectors_is_a_copy() -> None:
    registry = create_default_registry()
    detectors = registry.detectors

    assert isinstance(detectors, tuple)
    assert len(registry) == len(detectors)


# --- Formatters ---

SAMPLE_HELP = ErrorHelp(
    is_known_error=True,
    title="Sample Problem",
    explanation="Something went wrong.",
    suggestions=("First fix", "", "Second fix"),
    docs_url="https://example.com/docs",
    original_message="raw driver text",
)


def test_console_formatter_draws_a_box() -> None:
    text = ConsoleErrorFormatter(width=40).format(SAMPLE_HELP)
    lines = text.splitlines()

    assert lines[1] == "═" * 40
    assert lines[2].strip() == "Sample Problem"
    assert "Documentation: https://example.com/docs" in text
    assert lines[-1] == "═" * 40


def test_simple_formatter_drops_blank_suggestions() -> None:
    text = SimpleErrorFormatter().format(SAMPLE_HELP)

    assert text.startswith("ERROR: Sample Problem")
    assert "Suggestions:\n  First fix\n  Second fix" in text


def test_json_formatter() -> None:
    data = json.loads(JsonErrorFormatter(pretty=True).format(SAMPLE_HELP))

    assert data["error"]["title"] == "Sample Problem"
    assert data["error"]["suggestions"] == ["First fix", "Second fix"]
    assert data["error"]["originalMessage"] == "raw driver text"


def test_markdown_formatter() -> None:
    text = MarkdownErrorFormatter().format(SAMPLE_HELP)

    assert text.startswith("## Sample Problem")
    assert "[View Documentation](https://example.com/docs)" in text
    assert "### Original Error" in text


def test_handle_error_formats_with_the_configured_formatter() -> None:
    handler = ConnectionErrorHandler(formatter=SimpleErrorFormatter())

    text = handler.handle_error(Exception("connect ECONNREFUSED 127.0.0.1:5432"))

    assert text.startswith("ERROR: Connection Refused")
