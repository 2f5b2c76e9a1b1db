from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sql_runner.exceptions import DirectoryNotFound, FileReadError, NotADirectory
from sql_runner.file_scanner import (
    ScriptFile,
    create_savepoint_name,
    read_sql_file,
    scan_sql_files,
)
from tests.conftest import write_sql_files


def test_scan_returns_lexicographic_order_without_ignored_files(tmp_path: Path) -> None:
    write_sql_files(tmp_path, {"c.sql": "", "a.sql": "", "b.sql": ""})

    result = scan_sql_files(tmp_path, logger=MagicMock())

    assert result.files == ("a.sql", "b.sql", "c.sql")
    assert result.ignored_files == ()


def test_scan_splits_ignored_files_and_skips_other_entries(tmp_path: Path) -> None:
    write_sql_files(
        tmp_path,
        {
            "01_setup.sql": "",
            "_ignored_seed.sql": "",
            "README.sql": "",
            "notes.txt": "",
        },
    )
    (tmp_path / "nested.sql").mkdir()

    result = scan_sql_files(tmp_path, logger=MagicMock())

    assert result.files == ("01_setup.sql",)
    assert result.ignored_files == ("README.sql", "_ignored_seed.sql")


def test_scan_does_not_use_numeric_order(tmp_path: Path) -> None:
    write_sql_files(tmp_path, {"2_x.sql": "", "10_x.sql": ""})
    logger = MagicMock()

    result = scan_sql_files(tmp_path, logger=logger)

    assert result.files == ("10_x.sql", "2_x.sql")
    logger.warning.assert_called_once()
    assert "Zero-pad" in logger.warning.call_args.args[0]


def test_scan_with_zero_padded_prefixes_does_not_warn(tmp_path: Path) -> None:
    write_sql_files(tmp_path, {"02_x.sql": "", "10_x.sql": "", "01_x.sql": ""})
    logger = MagicMock()

    result = scan_sql_files(tmp_path, logger=logger)

    assert result.files == ("01_x.sql", "02_x.sql", "10_x.sql")
    logger.warning.assert_not_called()


def test_scan_file_paths_are_absolute_and_aligned(tmp_path: Path) -> None:
    write_sql_files(tmp_path, {"b.sql": "", "a.sql": ""})

    result = scan_sql_files(tmp_path, logger=MagicMock())

    assert result.file_paths == (
        str((tmp_path / "a.sql").resolve()),
        str((tmp_path / "b.sql").resolve()),
    )
    assert result.scripts[1] == ScriptFile("b.sql", result.file_paths[1], 1)


def test_scan_accepts_string_patterns(tmp_path: Path) -> None:
    write_sql_files(tmp_path, {"a.pgsql": "", "skip_me.pgsql": "", "b.sql": ""})

    result = scan_sql_files(
        tmp_path, file_pattern=r"\.pgsql$", ignore_pattern=r"^skip", logger=MagicMock()
    )

    assert result.files == ("a.pgsql",)
    assert result.ignored_files == ("skip_me.pgsql",)


def test_scan_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(DirectoryNotFound, match="SQL directory not found"):
        scan_sql_files(tmp_path / "missing")


def test_scan_file_instead_of_directory_raises(tmp_path: Path) -> None:
    path = tmp_path / "file.sql"
    path.write_text("", encoding="utf-8")

    with pytest.raises(NotADirectory):
        scan_sql_files(path)


def test_read_sql_file_returns_content(tmp_path: Path) -> None:
    path = tmp_path / "a.sql"
    path.write_text("SELECT 'ü';\n", encoding="utf-8")

    assert read_sql_file(path) == "SELECT 'ü';\n"


def test_read_sql_file_wraps_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileReadError) as exc_info:
        read_sql_file(tmp_path / "missing.sql")

    assert isinstance(exc_info.value.cause, OSError)
    assert "missing.sql" in str(exc_info.value)


def test_read_sql_file_wraps_invalid_utf8(tmp_path: Path) -> None:
    path = tmp_path / "latin1.sql"
    path.write_bytes(b"SELECT '\xe9';")

    with pytest.raises(FileReadError) as exc_info:
        read_sql_file(path)

    assert isinstance(exc_info.value.cause, UnicodeDecodeError)


def test_savepoint_name_replaces_non_alphanumeric_characters() -> None:
    assert create_savepoint_name("01-create users.sql", 0) == "sp_01_create_users_sql_0"


def test_savepoint_name_is_unique_per_index_even_when_names_collide() -> None:
    first = create_savepoint_name("a-b.sql", 0)
    second = create_savepoint_name("a_b.sql", 1)

    assert first != second
    assert first.startswith("sp_a_b_sql_")
    assert second.startswith("sp_a_b_sql_")
