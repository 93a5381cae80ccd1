"""
Identifier validation and dialect quoting.

Table and column names are the only caller input that ends up inside SQL
text. They must be plain ASCII identifiers and are quoted for the dialect
before use; values never pass through here, they are always bound.
"""

import re
from typing import Literal

DbType = Literal["postgresql", "sqlserver", "sqlite", "ansi"]

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"

VALID_IDENTIFIER = re.compile(_NAME)
VALID_SCHEMA_TABLE = re.compile(rf"{_NAME}(?:\.{_NAME})?")

# (open, close) per dialect; everything else uses ANSI double quotes
QUOTE_CHARS: dict[str, tuple[str, str]] = {"sqlserver": ("[", "]")}


def _check(value: str, pattern: re.Pattern, what: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{what} cannot be empty")
    if not pattern.fullmatch(value):
        raise ValueError(
            f"Invalid {what}: {value!r} "
            "(ASCII letters, digits and underscores only, not starting with a digit)"
        )


def validate_identifier(identifier: str) -> None:
    """Raise ValueError unless `identifier` is a plain column name."""
    _check(identifier, VALID_IDENTIFIER, "SQL identifier")


def validate_schema_table(schema_table: str) -> None:
    """Raise ValueError unless `schema_table` is `table` or `schema.table`."""
    _check(schema_table, VALID_SCHEMA_TABLE, "table name")


def _quote(name: str, db_type: DbType) -> str:
    open_char, close_char = QUOTE_CHARS.get(db_type, ('"', '"'))
    return f"{open_char}{name}{close_char}"


def quote_identifier(identifier: str, db_type: DbType) -> str:
    validate_identifier(identifier)
    return _quote(identifier, db_type)


def quote_schema_table(schema_table: str, db_type: DbType) -> str:
    """Quote each part of `schema.table` separately: "public"."users", [dbo].[users]."""
    validate_schema_table(schema_table)
    return ".".join(_quote(part, db_type) for part in schema_table.split("."))
