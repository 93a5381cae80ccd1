"""
Snapshot loading.

Reads the current contents of the table, restricted to the column set,
and keys every row by its key column value. The snapshot is built once
per reconcile and discarded afterwards.
"""

import logging
from collections.abc import Sequence
from typing import Any

from opentelemetry import trace

from table_sync.backend import TableBackend
from table_sync.errors import QueryError
from table_sync.utils.tracing import trace_operation, trace_statement

from .statements import build_select

logger = logging.getLogger(__name__)

TableSnapshot = dict[Any, dict[str, Any]]


def load_snapshot(
    backend: TableBackend,
    table: str,
    columns: Sequence[str],
    key_column: str,
) -> TableSnapshot:
    """
    Load the table as a mapping of key value to row.

    Raises:
        ConnectivityError, QueryError: If the read fails, including a
            missing table or column. No partial snapshot is returned.
        QueryError: If the key column holds NULL or duplicate values
    """
    statement = build_select(backend.dialect, table, columns)

    with trace_operation(
        "load_snapshot", kind=trace.SpanKind.CLIENT, table=table
    ) as span:
        with trace_statement("SELECT", table, backend.dialect.name):
            rows = backend.fetch_rows(statement.sql, statement.params)

        snapshot: TableSnapshot = {}
        seen: dict[str, Any] = {}

        for row in rows:
            try:
                key = row[key_column]
            except KeyError:
                raise QueryError(
                    f"Key column {key_column!r} missing from rows of {table}",
                    sql=statement.sql,
                ) from None

            if key is None:
                raise QueryError(
                    f"Key column {key_column!r} of {table} contains NULL",
                    sql=statement.sql,
                )

            token = str(key)
            if token in seen:
                raise QueryError(
                    f"Key column {key_column!r} of {table} is not unique: "
                    f"{seen[token]!r} and {key!r}",
                    sql=statement.sql,
                )
            seen[token] = key
            snapshot[key] = row

        span.set_attribute("rows", len(snapshot))

    logger.info(f"Loaded {len(snapshot)} rows from {table}")
    return snapshot
