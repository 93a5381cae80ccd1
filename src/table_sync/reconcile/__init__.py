"""
Diff-and-apply reconciliation of a table against a keyed dataset.

Stages, in dependency order:
- columns: resolve the column set
- snapshot: load the table keyed by its key column
- diff: classify keys into unchanged / delete / update / insert
- apply: run the statements, optionally in one transaction
- summary: counts of applied work
"""

from .apply import MutationApplier
from .columns import resolve_columns
from .diff import (
    ColumnChange,
    DiffResult,
    RowInsert,
    RowUpdate,
    compute_diff,
    key_order,
    values_equal,
)
from .reconciler import ReconcileOptions, ReconcilePlan, TableReconciler, reconcile
from .script import format_literal, render_script
from .snapshot import TableSnapshot, load_snapshot
from .summary import Summary, SyncStatus

__all__ = [
    "reconcile",
    "TableReconciler",
    "ReconcileOptions",
    "ReconcilePlan",
    "MutationApplier",
    "resolve_columns",
    "load_snapshot",
    "TableSnapshot",
    "compute_diff",
    "values_equal",
    "key_order",
    "DiffResult",
    "RowUpdate",
    "RowInsert",
    "ColumnChange",
    "Summary",
    "SyncStatus",
    "render_script",
    "format_literal",
]
