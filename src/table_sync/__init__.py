"""
table-sync: make a database table match an in-memory keyed dataset

Computes the minimal set of DELETE, UPDATE and INSERT statements that turn
the current table contents into the desired rows, and applies them,
optionally inside one transaction.

Usage:
    from table_sync import reconcile, ReconcileOptions

    summary = reconcile(conn, "customers", "id", {
        1: {"name": "Ada", "tier": "gold"},
        2: {"name": "Grace", "tier": None},
    })
    print(summary.to_dict())
"""

from .backend import DBAPIBackend, Dialect, TableBackend
from .errors import (
    ApplyError,
    ConfigurationError,
    ConnectivityError,
    QueryError,
    TableSyncError,
)
from .reconcile import (
    DiffResult,
    ReconcileOptions,
    Summary,
    SyncStatus,
    TableReconciler,
    reconcile,
)

__version__ = "1.0.0"
__all__ = [
    "reconcile",
    "TableReconciler",
    "ReconcileOptions",
    "Summary",
    "SyncStatus",
    "DiffResult",
    "TableBackend",
    "DBAPIBackend",
    "Dialect",
    "TableSyncError",
    "ConfigurationError",
    "ConnectivityError",
    "QueryError",
    "ApplyError",
]
