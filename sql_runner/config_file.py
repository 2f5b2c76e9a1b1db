"""
Project configuration files (``.sql-runnerrc`` and friends).

The file holds the same settings as the command line, under camelCase keys:

    directory: ./database/scripts
    ignorePattern: "^draft_"
    ssl: false
    skip: [06_seed.sql]

Values from the command line always win over the file.
"""

# Standard library imports
import json
import pathlib
import re
import sys

# Third-party imports
import yaml

# Custom library imports
from sql_runner.exceptions import ConfigurationError


CONFIG_FILE_NAMES = (
    ".sql-runnerrc",
    ".sql-runnerrc.json",
    ".sql-runnerrc.yaml",
    ".sql-runnerrc.yml",
)

# file key -> (setting name, accepted types)
CONFIG_KEYS = {
    "directory": ("sql_directory", (str,)),
    "databaseUrl": ("database_url", (str,)),
    "envFile": ("env_file", (str,)),
    "yes": ("skip_confirmation", (bool,)),
    "confirmationPhrase": ("confirmation_phrase", (str,)),
    "verbose": ("verbose", (bool,)),
    "dryRun": ("dry_run", (bool,)),
    "noLogs": ("no_logs", (bool,)),
    "logDirectory": ("log_directory", (str,)),
    "only": ("only", (list,)),
    "skip": ("skip", (list,)),
    "watch": ("watch", (bool,)),
    "ssl": ("ssl", (bool, str)),
    "filePattern": ("file_pattern", (str,)),
    "ignorePattern": ("ignore_pattern", (str,)),
}


# ===== 1. DISCOVERY =====


def find_config_file(start=None):
    """
    Returns the first configuration file found in ``start`` (default: the
    current directory) or one of its parents, or None.
    """
    directory = pathlib.Path(start or pathlib.Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        for name in CONFIG_FILE_NAMES:
            candidate = candidate_dir / name
            if candidate.is_file():
                return candidate
    return None


# ===== 2. PARSING =====


def _parse(path):
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        return json.loads(text)
    # YAML also covers JSON content in an extensionless .sql-runnerrc
    return yaml.safe_load(text)


def _normalize(raw, path):
    settings = {}
    for key, value in raw.items():
        if key not in CONFIG_KEYS:
            print(f"WARNING: Unknown key '{key}' in {path}, ignored.", file=sys.stderr)
            continue
        setting, types = CONFIG_KEYS[key]
        if not isinstance(value, types):
            expected = " or ".join(t.__name__ for t in types)
            print(
                f"WARNING: '{key}' in {path} must be {expected}, ignored.",
                file=sys.stderr,
            )
            continue
        if isinstance(value, list):
            value = tuple(item for item in value if isinstance(item, str))
        settings[setting] = value

    for setting in ("file_pattern", "ignore_pattern"):
        if setting in settings:
            try:
                re.compile(settings[setting])
            except re.error as pattern_err:
                raise ConfigurationError(
                    f"Invalid {setting} in {path}: {pattern_err}"
                ) from pattern_err
    return settings


def load_config_file(path):
    """
    Reads one configuration file and returns its settings keyed like the
    command line options. An empty file gives an empty dict.
    """
    path = pathlib.Path(path)
    try:
        raw = _parse(path)
    except (OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as load_err:
        raise ConfigurationError(f"Failed to load config from {path}: {load_err}") from load_err

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Failed to load config from {path}: top level must be a mapping")
    return _normalize(raw, path)


def load_config(start=None):
    """Finds and loads the nearest configuration file. Returns (settings, path)."""
    path = find_config_file(start)
    if path is None:
        return {}, None
    return load_config_file(path), path
