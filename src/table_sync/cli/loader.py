"""
Desired-state loading from files.

JSON input is either an object mapping key to row object, or a list of
row objects that each carry the key column. CSV input has a header row;
empty cells load as NULL and every other value stays a string.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Any

from table_sync.errors import ConfigurationError

logger = logging.getLogger(__name__)

FORMATS = ("json", "csv")


def detect_format(path: str) -> str:
    suffix = Path(path).suffix.lower().lstrip(".")
    if suffix not in FORMATS:
        raise ConfigurationError(
            f"Cannot infer input format from {path!r}; pass --format json or --format csv"
        )
    return suffix


def _keyed_rows(rows: list[dict[str, Any]], key_column: str, source: str) -> dict[Any, dict[str, Any]]:
    desired: dict[Any, dict[str, Any]] = {}
    for line, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            raise ConfigurationError(f"{source}: row {line} is not an object")

        key = row.get(key_column)
        if key is None or key == "":
            raise ConfigurationError(f"{source}: row {line} has no value for {key_column!r}")
        if key in desired:
            raise ConfigurationError(f"{source}: duplicate key {key!r} at row {line}")

        desired[key] = row
    return desired


def load_json(path: str, key_column: str) -> dict[Any, dict[str, Any]]:
    with open(path, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"{path}: invalid JSON: {e}") from None

    if isinstance(data, dict):
        return data
    if isinstance(data, list):
        return _keyed_rows(data, key_column, path)

    raise ConfigurationError(
        f"{path}: expected a JSON object or array, got {type(data).__name__}"
    )


def load_csv(path: str, key_column: str) -> dict[Any, dict[str, Any]]:
    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if not reader.fieldnames or key_column not in reader.fieldnames:
            raise ConfigurationError(f"{path}: header has no {key_column!r} column")

        rows = [
            {column: (value if value != "" else None) for column, value in row.items()}
            for row in reader
        ]

    return _keyed_rows(rows, key_column, path)


def load_desired_state(path: str, key_column: str, fmt: str | None = None) -> dict[Any, dict[str, Any]]:
    """
    Load a desired state file.

    Args:
        path: Input file
        key_column: Key column of the target table
        fmt: "json" or "csv"; inferred from the file suffix when None

    Raises:
        ConfigurationError: If the file cannot be parsed into keyed rows
    """
    fmt = fmt or detect_format(path)

    try:
        desired = load_json(path, key_column) if fmt == "json" else load_csv(path, key_column)
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from None

    logger.info(f"Loaded {len(desired)} desired rows from {path}")
    return desired
