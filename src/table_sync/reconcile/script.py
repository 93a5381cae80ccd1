"""
SQL script rendering of a diff.

Produces a reviewable script with literal values for dry runs. Statements
follow apply order (DELETE, UPDATE, INSERT) inside one transaction. The
script is for humans; reconcile itself always binds parameters.
"""

import datetime
from datetime import UTC
from decimal import Decimal
from typing import Any

from table_sync.backend import Dialect

from .diff import DiffResult


def format_literal(value: Any, dialect: Dialect) -> str:
    """Render a value as a SQL literal."""
    if value is None:
        return "NULL"

    if isinstance(value, bool):
        if dialect.name == "postgresql":
            return "TRUE" if value else "FALSE"
        return "1" if value else "0"

    if isinstance(value, (int, float, Decimal)):
        return str(value)

    if isinstance(value, bytes):
        if dialect.name == "postgresql":
            return f"'\\x{value.hex()}'::bytea"
        if dialect.name == "sqlserver":
            return f"0x{value.hex()}"
        return f"X'{value.hex()}'"

    if isinstance(value, (datetime.date, datetime.time)):
        return f"'{value.isoformat()}'"

    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


def render_script(
    diff: DiffResult,
    table: str,
    key_column: str,
    dialect: Dialect,
    generated_at: datetime.datetime | None = None,
) -> str:
    """
    Render the statements a reconcile would run as a SQL script.

    Args:
        diff: Diff to render
        table: Target table
        key_column: Key column of the table
        dialect: Dialect used for quoting and literals
        generated_at: Timestamp for the header (default: now, UTC)

    Returns:
        SQL script text ending in a newline
    """
    generated_at = generated_at or datetime.datetime.now(UTC)
    quoted_table = dialect.quote_table(table)
    quoted_key = dialect.quote(key_column)

    lines = [
        f"-- Sync script for {table}",
        f"-- Generated: {generated_at.isoformat()}",
        f"-- Deletes: {len(diff.deletes)}, updates: {len(diff.updates)}, "
        f"inserts: {len(diff.inserts)}, unchanged: {len(diff.unchanged)}",
        "",
        "BEGIN TRANSACTION;" if dialect.name == "sqlserver" else "BEGIN;",
        "",
    ]

    if diff.deletes:
        lines.append(f"-- Delete {len(diff.deletes)} rows")
        for key in diff.deletes:
            lines.append(
                f"DELETE FROM {quoted_table} WHERE {quoted_key} = {format_literal(key, dialect)};"
            )
        lines.append("")

    if diff.updates:
        lines.append(f"-- Update {len(diff.updates)} rows")
        for update in diff.updates:
            changes = ", ".join(
                f"{change.column}: {format_literal(change.old, dialect)} -> "
                f"{format_literal(change.new, dialect)}"
                for change in update.changes
            )
            set_clause = ", ".join(
                f"{dialect.quote(change.column)} = {format_literal(change.new, dialect)}"
                for change in update.changes
            )
            lines.append(f"-- {changes}")
            lines.append(
                f"UPDATE {quoted_table} SET {set_clause} "
                f"WHERE {quoted_key} = {format_literal(update.key, dialect)};"
            )
        lines.append("")

    if diff.inserts:
        lines.append(f"-- Insert {len(diff.inserts)} rows")
        for insert in diff.inserts:
            columns = ", ".join(dialect.quote(column) for column in insert.columns)
            values = ", ".join(format_literal(value, dialect) for _, value in insert.values)
            lines.append(f"INSERT INTO {quoted_table} ({columns}) VALUES ({values});")
        lines.append("")

    lines.append("COMMIT;")
    return "\n".join(lines) + "\n"
