"""
Exception hierarchy for table-sync.

Input problems raise ConfigurationError before any statement is sent.
Driver failures are translated into ConnectivityError or QueryError,
with the original exception chained as __cause__. Nothing is retried.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from table_sync.reconcile.summary import Summary


class TableSyncError(Exception):
    """Base exception for table-sync errors."""

    pass


class ConfigurationError(TableSyncError, ValueError):
    """Raised when reconcile is called with invalid or missing input."""

    pass


class ConnectivityError(TableSyncError):
    """Raised when the backing store cannot be reached or drops the connection."""

    def __init__(self, message: str, sql: str | None = None):
        super().__init__(message)
        self.sql = sql


class QueryError(TableSyncError):
    """Raised when the backing store rejects a statement."""

    def __init__(self, message: str, sql: str | None = None):
        super().__init__(message)
        self.sql = sql


class ApplyError(QueryError):
    """
    Raised when a delete, update or insert fails during the apply phase.

    Attributes:
        applied: Summary of the work that succeeded before the failure
        operation: "delete", "update" or "insert" for a failed statement;
            "begin" or "commit" when the transaction could not be opened
            or committed
        key: Key of the row whose statement failed
        rolled_back: True when the whole apply was rolled back, in which
            case `applied` describes work that no longer exists in the table
    """

    def __init__(
        self,
        message: str,
        applied: "Summary",
        operation: str,
        key: Any,
        rolled_back: bool,
        sql: str | None = None,
    ):
        super().__init__(message, sql=sql)
        self.applied = applied
        self.operation = operation
        self.key = key
        self.rolled_back = rolled_back
