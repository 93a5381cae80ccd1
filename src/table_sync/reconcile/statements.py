"""
Parameterized statement builders.

Identifiers are validated and quoted for the backend's dialect; values are
always bound as parameters, never interpolated.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from table_sync.backend import Dialect


@dataclass(frozen=True)
class Statement:
    """A SQL statement with its bound parameters."""

    operation: str  # SELECT, DELETE, UPDATE, INSERT
    table: str
    sql: str
    params: tuple[Any, ...] = ()


def build_select(dialect: Dialect, table: str, columns: Sequence[str]) -> Statement:
    column_list = ", ".join(dialect.quote(col) for col in columns)
    return Statement(
        "SELECT",
        table,
        f"SELECT {column_list} FROM {dialect.quote_table(table)}",
    )


def build_delete(dialect: Dialect, table: str, key_column: str, key: Any) -> Statement:
    return Statement(
        "DELETE",
        table,
        f"DELETE FROM {dialect.quote_table(table)} "
        f"WHERE {dialect.quote(key_column)} = {dialect.placeholder}",
        (key,),
    )


def build_update(
    dialect: Dialect,
    table: str,
    key_column: str,
    key: Any,
    changes: Sequence[tuple[str, Any]],
) -> Statement:
    """
    UPDATE only the given (column, value) pairs of the row identified by key.

    Raises:
        ValueError: If there is nothing to set
    """
    if not changes:
        raise ValueError("UPDATE requires at least one changed column")

    set_clause = ", ".join(f"{dialect.quote(col)} = {dialect.placeholder}" for col, _ in changes)
    return Statement(
        "UPDATE",
        table,
        f"UPDATE {dialect.quote_table(table)} SET {set_clause} "
        f"WHERE {dialect.quote(key_column)} = {dialect.placeholder}",
        tuple(value for _, value in changes) + (key,),
    )


def build_insert(
    dialect: Dialect,
    table: str,
    columns: Sequence[str],
    values: Sequence[Any],
) -> Statement:
    if len(columns) != len(values):
        raise ValueError(f"INSERT has {len(columns)} columns but {len(values)} values")

    column_list = ", ".join(dialect.quote(col) for col in columns)
    return Statement(
        "INSERT",
        table,
        f"INSERT INTO {dialect.quote_table(table)} ({column_list}) "
        f"VALUES ({dialect.placeholders(len(columns))})",
        tuple(values),
    )
