"""
Table reconciliation entry point.

TableReconciler makes one table match an in-memory keyed dataset:

1. resolve the column set
2. load a snapshot of the table
3. diff the snapshot against the desired state
4. apply deletes, updates and inserts (optionally in one transaction)
5. return a Summary of the work applied

Example:
    >>> summary = reconcile(
    ...     conn, "t1", "id",
    ...     {1: {"col1": "a", "col2": "b"}, 2: {"col1": "c", "col2": "d"}},
    ... )
    >>> summary.status
    <SyncStatus.CHANGED: 'CHANGED'>
"""

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from opentelemetry import trace

from table_sync.backend import Dialect, TableBackend, as_backend, get_dialect
from table_sync.errors import ApplyError, ConfigurationError, TableSyncError
from table_sync.utils.logging import ContextLogger
from table_sync.utils.metrics import SyncMetrics, get_metrics
from table_sync.utils.tracing import trace_operation

from .apply import MutationApplier
from .columns import resolve_columns
from .diff import DiffResult, compute_diff
from .snapshot import load_snapshot
from .summary import Summary
from .validation import (
    validate_column_list,
    validate_column_name,
    validate_desired_state,
    validate_table_name,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileOptions:
    """
    Attributes:
        columns: Explicit column set; derived from the desired rows when None
        use_transaction: Apply all statements as one atomic unit
        dialect: Dialect name overriding detection from the connection
    """

    columns: Sequence[str] | None = None
    use_transaction: bool = True
    dialect: str | None = None

    def validate(self) -> None:
        if self.columns is not None:
            validate_column_list(self.columns)
        if not isinstance(self.use_transaction, bool):
            raise ConfigurationError(
                f"use_transaction must be a bool, got {type(self.use_transaction).__name__}"
            )
        if self.dialect is not None:
            get_dialect(self.dialect)


@dataclass
class ReconcilePlan:
    """What a reconcile would do, computed without writing anything."""

    table: str
    key_column: str
    columns: tuple[str, ...]
    snapshot_size: int
    diff: DiffResult
    dialect: Dialect


class TableReconciler:
    """Reconciles one table, identified by a single key column."""

    def __init__(
        self,
        connection: Any,
        table: str,
        key_column: str,
        options: ReconcileOptions | None = None,
        metrics: SyncMetrics | None = None,
    ):
        """
        Args:
            connection: TableBackend, or DB-API 2.0 connection to wrap
            table: Table name, optionally schema-qualified
            key_column: Column uniquely identifying each row
            options: Reconcile options (defaults apply when None)
            metrics: Metrics sink (defaults to the process-wide one)

        Raises:
            ConfigurationError: If any argument is invalid
        """
        self.options = options or ReconcileOptions()
        if not isinstance(self.options, ReconcileOptions):
            raise ConfigurationError(
                f"options must be ReconcileOptions, got {type(self.options).__name__}"
            )
        self.options.validate()

        self.table = validate_table_name(table)
        self.key_column = validate_column_name(key_column, role="key column")
        self.backend: TableBackend = as_backend(connection, self.options.dialect)
        self.metrics = metrics or get_metrics()
        self.log = ContextLogger(__name__, table=table, key_column=key_column)

    def plan(self, desired_state: Mapping[Any, Mapping[str, Any]]) -> ReconcilePlan:
        """
        Load the snapshot and compute the diff without applying it.

        Raises:
            ConfigurationError: If desired_state is invalid
            ConnectivityError, QueryError: If the snapshot cannot be read
        """
        validate_desired_state(desired_state)
        columns = resolve_columns(desired_state, self.key_column, self.options.columns)

        snapshot = load_snapshot(self.backend, self.table, columns, self.key_column)
        diff = compute_diff(snapshot, desired_state, columns, self.key_column)

        return ReconcilePlan(
            table=self.table,
            key_column=self.key_column,
            columns=columns,
            snapshot_size=len(snapshot),
            diff=diff,
            dialect=self.backend.dialect,
        )

    def reconcile(self, desired_state: Mapping[Any, Mapping[str, Any]]) -> Summary:
        """
        Make the table match desired_state.

        Returns:
            Summary of rows deleted, updated, inserted and unchanged

        Raises:
            ConfigurationError: If desired_state is invalid (before any I/O)
            ConnectivityError, QueryError: If the snapshot cannot be read
            ApplyError: If a statement fails while applying the diff
        """
        start_time = time.monotonic()
        stage = "validate"

        with trace_operation(
            "reconcile",
            kind=trace.SpanKind.INTERNAL,
            table=self.table,
            key_column=self.key_column,
            transactional=self.options.use_transaction,
        ) as span:
            try:
                stage = "snapshot"
                plan = self.plan(desired_state)

                self.log.info(
                    f"Reconciling {self.table}: {len(plan.diff.deletes)} to delete, "
                    f"{len(plan.diff.updates)} to update, {len(plan.diff.inserts)} to insert",
                    columns=",".join(plan.columns),
                )

                stage = "apply"
                summary = MutationApplier(
                    self.backend,
                    self.table,
                    self.key_column,
                    use_transaction=self.options.use_transaction,
                ).apply(plan.diff, Summary.starting_from(plan.snapshot_size))

            except ConfigurationError:
                raise
            except ApplyError as e:
                if not e.rolled_back:
                    self._record_rows(e.applied)
                self._record_failure(stage, start_time)
                raise
            except TableSyncError:
                self._record_failure(stage, start_time)
                raise

            for name, value in summary.to_dict().items():
                span.set_attribute(f"summary.{name}", str(value))

        self._record_rows(summary)
        self.metrics.record_run(self.table, str(summary.status), time.monotonic() - start_time)

        self.log.info(
            f"Reconciled {self.table}: {summary.deleted} deleted, {summary.updated} updated, "
            f"{summary.inserted} inserted, {summary.unchanged} unchanged",
            status=str(summary.status),
        )
        return summary

    def _record_rows(self, summary: Summary) -> None:
        self.metrics.record_rows(self.table, "delete", summary.deleted)
        self.metrics.record_rows(self.table, "update", summary.updated)
        self.metrics.record_rows(self.table, "insert", summary.inserted)

    def _record_failure(self, stage: str, start_time: float) -> None:
        self.metrics.record_failure(self.table, stage)
        self.metrics.record_run(self.table, "FAILED", time.monotonic() - start_time)


def reconcile(
    connection: Any,
    table_name: str,
    key_column: str,
    desired_state: Mapping[Any, Mapping[str, Any]],
    options: ReconcileOptions | None = None,
) -> Summary:
    """
    Make table_name match desired_state with the fewest row operations.

    Args:
        connection: TableBackend, or DB-API 2.0 connection (psycopg2, pyodbc, sqlite3)
        table_name: Table to reconcile
        key_column: Column uniquely identifying each row
        desired_state: Mapping of key to row (column name -> value)
        options: columns / use_transaction / dialect overrides

    Returns:
        Summary of rows deleted, updated, inserted and unchanged

    Raises:
        ConfigurationError: Invalid input, raised before any I/O
        ConnectivityError, QueryError: Snapshot read failed
        ApplyError: A write failed; carries the counts applied before it
    """
    reconciler = TableReconciler(connection, table_name, key_column, options)
    return reconciler.reconcile(desired_state)
