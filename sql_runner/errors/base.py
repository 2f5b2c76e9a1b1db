"""
Shared pieces of the error classifier: the Detector record and the pure
helpers detectors use to inspect errors and connection strings.
"""

# Standard library imports
import errno
import re
from collections.abc import Callable
from dataclasses import dataclass

# Custom library imports
from sql_runner.models import ErrorHelp


SUPABASE_CONNECT_DOCS = "https://supabase.com/docs/guides/database/connecting-to-postgres"

_ENOTFOUND_HOST = re.compile(r"ENOTFOUND\s+(\S+)")
_LIBPQ_HOST = re.compile(r'could not translate host name "([^"]+)"')
_DIRECT_PROJECT_REF = re.compile(r"db\.([^.]+)\.supabase\.co")
_POOLER_PROJECT_REF = re.compile(r"postgres\.([^:@]+)[:@]")


@dataclass(frozen=True)
class Detector:
    """
    Recognizes one shape of error and explains it.

    ``can_handle(error, context) -> bool`` and
    ``get_help(error, context) -> ErrorHelp`` must be pure: no I/O and no
    shared state.
    """

    name: str
    can_handle: Callable
    get_help: Callable


# ===== 1. ERROR INSPECTION =====


def error_message(error):
    if isinstance(error, BaseException):
        return str(error).strip()
    return str(error)


def error_code(error):
    """
    Driver or system error code: psycopg2 ``pgcode``, a ``code`` attribute,
    or the symbolic errno name (ECONNREFUSED, ...). Wrapped errors are
    inspected through their ``cause``.
    """
    for candidate in (error, getattr(error, "cause", None)):
        if candidate is None:
            continue
        for attr in ("pgcode", "code"):
            value = getattr(candidate, attr, None)
            if isinstance(value, str) and value:
                return value
        errno_value = getattr(candidate, "errno", None)
        if isinstance(errno_value, int):
            return errno.errorcode.get(errno_value)
    return None


def message_contains(error, *fragments):
    """Case-insensitive substring search over the error message."""
    message = error_message(error).lower()
    return any(fragment in message for fragment in fragments)


def extract_hostname_from_error(message):
    for pattern in (_ENOTFOUND_HOST, _LIBPQ_HOST):
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


# ===== 2. CONNECTION STRING HEURISTICS =====


def is_direct_connection(database_url):
    if not database_url:
        return False
    return "db." in database_url and ".supabase.co" in database_url


def is_pooler_connection(database_url):
    if not database_url:
        return False
    return "pooler.supabase.com" in database_url


def is_transaction_pooler(database_url):
    return is_pooler_connection(database_url) and ":6543" in database_url


def extract_project_ref(database_url):
    if not database_url:
        return None
    for pattern in (_DIRECT_PROJECT_REF, _POOLER_PROJECT_REF):
        match = pattern.search(database_url)
        if match:
            return match.group(1)
    return None


# ===== 3. HELP CONSTRUCTION =====


def known_help(title, explanation, suggestions, docs_url=None, original_message=None):
    return ErrorHelp(
        is_known_error=True,
        title=title,
        explanation=explanation,
        suggestions=tuple(suggestions),
        docs_url=docs_url,
        original_message=original_message,
    )


def numbered_sections(sections):
    """
    Flattens ``[(HEADING, [line, ...]), ...]`` into suggestion lines,
    numbering headings in order and separating them with blank lines.
    Sections with a ``None`` heading are skipped.
    """
    lines = []
    number = 0
    for heading, body in sections:
        if heading is None:
            continue
        number += 1
        if lines:
            lines.append("")
        lines.append(f"{number}. {heading}")
        lines.extend(body)
    return lines
