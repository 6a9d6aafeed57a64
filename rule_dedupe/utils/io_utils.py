"""IO utilities for settings and rule-table loading."""

import copy
import functools
import logging
from pathlib import Path
from typing import Any, Optional

import pandas as pd
import yaml

from rule_dedupe.utils.logging_utils import get_logger

logger = get_logger(__name__)

# Settings loading counter for debugging
_settings_load_count = 0

DEFAULTS: dict[str, Any] = {
    "engine": {
        "duckdb": {
            "threads": 4,
            "memory_limit": None,
            "database": ":memory:",
        },
        "rule_timeout_seconds": None,
    },
    "runner": {
        "workers": 1,
        "backend": "threading",
        "on_rule_error": "skip",
    },
    "schema": {
        "resolver": "catalog",
        "fields": {},
        "custom_fields": {},
        "custom_field_types": {},
    },
    "io": {
        "supported_formats": [".csv", ".parquet", ".xlsx"],
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "file": None,
    },
}


def deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Merge ``update`` into ``base`` in place, recursing into nested dicts."""
    for key, value in update.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


@functools.lru_cache(maxsize=4)
def load_settings(path: str) -> dict[str, Any]:
    """Load settings from YAML file with defaults.

    This function is cached to prevent repeated file I/O and parsing.
    Use reload_settings() to force a fresh load.

    Args:
        path: Path to settings YAML file

    Returns:
        Dictionary with settings (user config merged over defaults)

    """
    global _settings_load_count
    _settings_load_count += 1

    logger.debug(f"Settings loaded (count: {_settings_load_count}) from {path}")

    try:
        with open(path, encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logging.warning(f"Settings file not found: {path}. Using defaults.")
        return copy.deepcopy(DEFAULTS)

    if not isinstance(user_config, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return deep_merge(copy.deepcopy(DEFAULTS), user_config)


def reload_settings(path: str) -> dict[str, Any]:
    """Force reload settings from file (clears cache)."""
    load_settings.cache_clear()
    return load_settings(path)


def get_settings_load_count() -> int:
    return _settings_load_count


def validate_settings(settings: dict[str, Any]) -> list[str]:
    """Returns list of validation warnings.

    Args:
        settings: Settings dict to validate

    Returns:
        List of validation warning messages.

    """
    warnings = []

    threads = settings.get("engine", {}).get("duckdb", {}).get("threads", 4)
    if threads != "auto" and (not isinstance(threads, int) or threads < 1 or threads > 64):
        warnings.append(f"engine.duckdb.threads must be int 1-64 or 'auto', got {threads}")

    timeout = settings.get("engine", {}).get("rule_timeout_seconds")
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        warnings.append(f"engine.rule_timeout_seconds must be a positive number, got {timeout}")

    runner = settings.get("runner", {})
    workers = runner.get("workers", 1)
    if not isinstance(workers, int) or workers < 1:
        warnings.append(f"runner.workers must be int >= 1, got {workers}")
    if runner.get("backend", "threading") not in ("threading", "sequential"):
        warnings.append(
            f"runner.backend must be 'threading' or 'sequential', got {runner.get('backend')}",
        )
    if runner.get("on_rule_error", "skip") not in ("skip", "abort"):
        warnings.append(
            f"runner.on_rule_error must be 'skip' or 'abort', got {runner.get('on_rule_error')}",
        )

    resolver = settings.get("schema", {}).get("resolver", "catalog")
    if resolver not in ("catalog", "schema"):
        warnings.append(f"schema.resolver must be 'catalog' or 'schema', got {resolver}")

    return warnings


def list_data_files(
    directory: str,
    extensions: Optional[list[str]] = None,
) -> list[str]:
    """List data files in a directory, sorted by name.

    Args:
        directory: Directory to search
        extensions: List of file extensions to include (e.g., ['.csv', '.parquet'])

    Returns:
        List of file paths

    """
    if extensions is None:
        extensions = DEFAULTS["io"]["supported_formats"]

    files: list[Path] = []
    for ext in extensions:
        files.extend(Path(directory).glob(f"*{ext}"))

    return sorted(str(f) for f in files)


def read_table_file(path: str) -> pd.DataFrame:
    """Read one rule table from CSV, Parquet or Excel.

    Raises:
        ValueError: If the file format is unsupported

    """
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path)
    if suffix == ".parquet":
        return pd.read_parquet(path)
    if suffix == ".xlsx":
        return pd.read_excel(path, engine="openpyxl")
    raise ValueError(f"Unsupported file format for: {path}")


def load_tables(directory: str, extensions: Optional[list[str]] = None) -> dict[str, pd.DataFrame]:
    """Load every data file in ``directory`` keyed by file stem."""
    tables = {}
    for file_path in list_data_files(directory, extensions):
        name = Path(file_path).stem
        if name in tables:
            logger.warning(f"io | duplicate_table_name | name={name} | ignored={file_path}")
            continue
        tables[name] = read_table_file(file_path)
        logger.info(f"io | table_loaded | name={name} | rows={len(tables[name])}")
    return tables
