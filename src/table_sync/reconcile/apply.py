"""
Mutation application.

Turns a DiffResult into DELETE, UPDATE and INSERT statements and runs
them in that order: stale rows go first so a key deleted and re-added in
the same pass never collides, then existing rows are adjusted, then new
rows are added.
"""

import logging
from typing import Any

from table_sync.backend import TableBackend
from table_sync.errors import ApplyError, ConnectivityError, QueryError, TableSyncError
from table_sync.utils.logging import ContextLogger
from table_sync.utils.tracing import trace_operation, trace_statement

from .diff import DiffResult
from .statements import Statement, build_delete, build_insert, build_update
from .summary import Summary

logger = logging.getLogger(__name__)


class MutationApplier:
    """
    Applies a diff to one table, counting work into a Summary as it succeeds.

    With use_transaction the whole apply commits or rolls back as a unit.
    Without it every statement is committed on its own, and a failure
    leaves earlier statements in place.
    """

    def __init__(
        self,
        backend: TableBackend,
        table: str,
        key_column: str,
        use_transaction: bool = True,
    ):
        self.backend = backend
        self.table = table
        self.key_column = key_column
        self.use_transaction = use_transaction
        self.log = ContextLogger(__name__, table=table, key_column=key_column)
        self._current: tuple[str, Any, Statement | None] = ("begin", None, None)

    def apply(self, diff: DiffResult, summary: Summary) -> Summary:
        """
        Run every statement of the diff.

        Args:
            diff: Classified keys to act on
            summary: Summary seeded with the snapshot size; updated in place

        Returns:
            The same summary

        Raises:
            ApplyError: On the first failing statement, carrying the counts
                applied so far
        """
        with trace_operation(
            "apply_diff",
            table=self.table,
            transactional=self.use_transaction,
            **diff.counts(),
        ):
            try:
                if self.use_transaction:
                    with self.backend.transaction():
                        self._apply_all(diff, summary)
                        self._current = ("commit", None, None)
                else:
                    self._apply_all(diff, summary)
            except (ConnectivityError, QueryError) as e:
                raise self._failure(e, summary) from e

        return summary

    def _apply_all(self, diff: DiffResult, summary: Summary) -> None:
        dialect = self.backend.dialect

        for key in diff.deletes:
            self._run("delete", key, build_delete(dialect, self.table, self.key_column, key))
            summary.record_delete()

        for update in diff.updates:
            changes = [(change.column, change.new) for change in update.changes]
            self._run(
                "update",
                update.key,
                build_update(dialect, self.table, self.key_column, update.key, changes),
            )
            summary.record_update()

        for insert in diff.inserts:
            self._run(
                "insert",
                insert.key,
                build_insert(dialect, self.table, insert.columns, [value for _, value in insert.values]),
            )
            summary.record_insert()

    def _run(self, operation: str, key: Any, statement: Statement) -> None:
        self._current = (operation, key, statement)

        with trace_statement(statement.operation, self.table, self.backend.dialect.name):
            affected = self.backend.execute(statement.sql, statement.params)

        if not self.use_transaction:
            self.backend.commit()

        self.log.debug(f"{statement.operation} key={key!r}", affected=affected)
        if affected == 0 and operation != "insert":
            self.log.warning(f"{statement.operation} for key {key!r} matched no rows")

    def _failure(self, error: TableSyncError, summary: Summary) -> ApplyError:
        operation, key, statement = self._current

        if not self.use_transaction:
            # Clear the failed statement; earlier ones are already committed.
            try:
                self.backend.rollback()
            except TableSyncError:
                logger.error("Rollback after failed statement failed", exc_info=True)
            self.log.warning(
                f"Apply stopped at {operation} of key {key!r}; "
                f"{summary.deleted} deleted, {summary.updated} updated, "
                f"{summary.inserted} inserted remain committed"
            )

        self.log.error(f"Apply failed at {operation} of key {key!r}: {error}")

        return ApplyError(
            f"{operation} failed for key {key!r} in {self.table}: {error}",
            applied=summary,
            operation=operation,
            key=key,
            rolled_back=self.use_transaction,
            sql=statement.sql if statement is not None else getattr(error, "sql", None),
        )
