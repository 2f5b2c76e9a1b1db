# Standard library imports
import logging
import pathlib
import re
from dataclasses import dataclass

# Third-party imports
from natsort import natsorted

# Custom library imports
from sql_runner.exceptions import (
    DirectoryNotFound,
    FileReadError,
    NotADirectory,
)


DEFAULT_FILE_PATTERN = re.compile(r"\.sql$")
DEFAULT_IGNORE_PATTERN = re.compile(r"^_ignored|README")

_NON_IDENTIFIER_CHARS = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class ScriptFile:
    name: str
    absolute_path: str
    sequence_index: int


@dataclass(frozen=True)
class ScanResult:
    """
    Files to execute and files that were ignored, both sorted.
    ``file_paths`` is aligned one-to-one with ``files``.
    """

    files: tuple[str, ...]
    ignored_files: tuple[str, ...]
    file_paths: tuple[str, ...]

    @property
    def scripts(self):
        return tuple(
            ScriptFile(name, path, index)
            for index, (name, path) in enumerate(zip(self.files, self.file_paths))
        )


# ===== 1. FILE RETRIEVAL =====


def scan_sql_files(
    directory,
    file_pattern=DEFAULT_FILE_PATTERN,
    ignore_pattern=DEFAULT_IGNORE_PATTERN,
    logger=None,
):
    """
    Finds the SQL files to execute in ``directory`` (non-recursive).

    Names matching ``file_pattern`` are kept; of those, names matching
    ``ignore_pattern`` are reported as ignored. Both lists use plain code
    point ordering, so '10_x.sql' sorts before '2_x.sql'.
    """
    log = logger or logging.getLogger(__name__)
    resolved_dir = pathlib.Path(directory).resolve()

    if not resolved_dir.exists():
        raise DirectoryNotFound(resolved_dir)
    if not resolved_dir.is_dir():
        raise NotADirectory(resolved_dir)

    file_pattern = re.compile(file_pattern)
    ignore_pattern = re.compile(ignore_pattern)

    executable_files = []
    ignored_files = []
    for entry in resolved_dir.iterdir():
        name = entry.name
        if not entry.is_file() or not file_pattern.search(name):
            continue
        if ignore_pattern.search(name):
            ignored_files.append(name)
        else:
            executable_files.append(name)

    executable_files.sort()
    ignored_files.sort()
    _warn_on_unpadded_prefixes(executable_files, log)

    file_paths = [str(resolved_dir / name) for name in executable_files]
    return ScanResult(
        files=tuple(executable_files),
        ignored_files=tuple(ignored_files),
        file_paths=tuple(file_paths),
    )


def _warn_on_unpadded_prefixes(sorted_files, log):
    """
    Logs a warning when natural ordering (1, 2, 10) would differ from the
    execution order. The execution order itself is left unchanged.
    """
    natural = natsorted(sorted_files)
    for position, (actual, expected) in enumerate(zip(sorted_files, natural)):
        if actual != expected:
            log.warning(
                f"'{actual}' runs at position {position + 1} but natural "
                f"ordering would put '{expected}' there. Zero-pad numeric "
                "prefixes (01_, 02_, ..., 10_) to control the order."
            )
            return


# ===== 2. FILE CONTENT =====


def read_sql_file(file_path):
    """Reads a SQL file as UTF-8; any failure is raised as FileReadError."""
    try:
        return pathlib.Path(file_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as file_err:
        raise FileReadError(file_path, file_err) from file_err


def create_savepoint_name(file_name, index):
    """
    Builds a savepoint identifier from a file name and its position in the
    execution order. The index suffix keeps names unique within a run even
    when two file names sanitize to the same text.
    """
    sanitized = _NON_IDENTIFIER_CHARS.sub("_", file_name)
    return f"sp_{sanitized}_{index}"
