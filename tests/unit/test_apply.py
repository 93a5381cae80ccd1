"""
Unit tests for mutation application.

Uses RecordingBackend over SQLite so the statements and their effect on
the table can both be checked.
"""

import logging

import pytest

from table_sync.errors import ApplyError, ConnectivityError
from table_sync.reconcile import (
    ColumnChange,
    DiffResult,
    MutationApplier,
    RowInsert,
    RowUpdate,
    Summary,
)


def example_diff() -> DiffResult:
    return DiffResult(
        unchanged=[1],
        deletes=[3],
        updates=[RowUpdate(2, (ColumnChange("col2", "c", "d"),))],
        inserts=[RowInsert(4, (("col1", "e"), ("col2", "f"), ("id", 4)))],
    )


class TestMutationApplier:
    """Test MutationApplier against a working backend."""

    def test_apply_in_transaction(self, conn, read_table, recording_backend):
        backend = recording_backend(conn)

        summary = MutationApplier(backend, "t1", "id").apply(example_diff(), Summary.starting_from(3))

        assert summary == Summary(deleted=1, updated=1, inserted=1, unchanged=1)
        assert backend.commits == 1
        assert read_table(conn) == {
            1: ("a", "b", "foo"),
            2: ("c", "d", "bar"),
            4: ("e", "f", None),
        }

    def test_statement_order(self, conn, recording_backend):
        """Deletes run first, then updates, then inserts."""
        backend = recording_backend(conn)
        diff = DiffResult(
            deletes=[1, 3],
            updates=[RowUpdate(2, (ColumnChange("col1", "c", "z"),))],
            inserts=[RowInsert(5, (("col1", "x"), ("id", 5))), RowInsert(6, (("col1", "y"), ("id", 6)))],
        )

        MutationApplier(backend, "t1", "id").apply(diff, Summary.starting_from(3))

        assert backend.operations == ["DELETE", "DELETE", "UPDATE", "INSERT", "INSERT"]
        assert [params for _, params in backend.writes] == [
            (1,), (3,), ("z", 2), ("x", 5), ("y", 6),
        ]

    def test_update_sets_only_changed_columns(self, conn, recording_backend):
        backend = recording_backend(conn)
        diff = DiffResult(updates=[RowUpdate(2, (ColumnChange("col2", "c", "d"),))])

        MutationApplier(backend, "t1", "id").apply(diff, Summary.starting_from(3))

        assert backend.writes == [('UPDATE "t1" SET "col2" = ? WHERE "id" = ?', ("d", 2))]

    def test_empty_diff_runs_nothing(self, conn, recording_backend):
        backend = recording_backend(conn)

        summary = MutationApplier(backend, "t1", "id").apply(DiffResult(unchanged=[1, 2, 3]), Summary.starting_from(3))

        assert backend.writes == []
        assert summary.to_dict()["status"] == "NO_OP"

    def test_without_transaction_commits_each_statement(self, conn, recording_backend):
        backend = recording_backend(conn)

        MutationApplier(backend, "t1", "id", use_transaction=False).apply(
            example_diff(), Summary.starting_from(3)
        )

        assert backend.commits == 3

    def test_zero_row_delete_warns(self, conn, recording_backend, caplog):
        backend = recording_backend(conn)

        with caplog.at_level(logging.WARNING):
            summary = MutationApplier(backend, "t1", "id").apply(
                DiffResult(deletes=[99]), Summary.starting_from(3)
            )

        assert "matched no rows" in caplog.text
        assert summary.deleted == 1


class TestMutationApplierFailures:
    """Test partial failure handling."""

    def test_transaction_rolls_back_everything(self, conn, read_table, recording_backend):
        """A failing third statement leaves the table exactly as it was."""
        backend = recording_backend(conn, fail_on=3)

        with pytest.raises(ApplyError) as exc_info:
            MutationApplier(backend, "t1", "id").apply(example_diff(), Summary.starting_from(3))

        error = exc_info.value
        assert error.operation == "insert"
        assert error.key == 4
        assert error.rolled_back is True
        assert error.applied.deleted == 1
        assert error.applied.updated == 1
        assert error.applied.inserted == 0
        assert error.sql.startswith('INSERT INTO "t1"')
        assert backend.rollbacks == 1
        assert backend.commits == 0
        assert read_table(conn) == {
            1: ("a", "b", "foo"),
            2: ("c", "c", "bar"),
            3: ("g", "h", "qux"),
        }

    def test_without_transaction_keeps_earlier_statements(self, conn, read_table, recording_backend):
        """Statements before the failure stay committed and are counted."""
        backend = recording_backend(conn, fail_on=3)

        with pytest.raises(ApplyError) as exc_info:
            MutationApplier(backend, "t1", "id", use_transaction=False).apply(
                example_diff(), Summary.starting_from(3)
            )

        error = exc_info.value
        assert error.rolled_back is False
        assert error.applied == Summary(deleted=1, updated=1, inserted=0, unchanged=1)
        assert read_table(conn) == {
            1: ("a", "b", "foo"),
            2: ("c", "d", "bar"),
        }

    def test_real_constraint_violation(self, conn, read_table, recording_backend):
        """A duplicate key on insert surfaces as ApplyError chained to QueryError."""
        backend = recording_backend(conn)
        diff = DiffResult(
            deletes=[3],
            inserts=[RowInsert(1, (("col1", "dup"), ("id", 1)))],
        )
        # The snapshot claimed key 1 was absent; the table disagrees.

        with pytest.raises(ApplyError) as exc_info:
            MutationApplier(backend, "t1", "id").apply(diff, Summary.starting_from(2))

        assert "UNIQUE" in str(exc_info.value)
        assert exc_info.value.__cause__ is not None
        assert set(read_table(conn)) == {1, 2, 3}

    def test_failure_on_first_statement(self, conn, recording_backend):
        backend = recording_backend(conn, fail_on=1)

        with pytest.raises(ApplyError) as exc_info:
            MutationApplier(backend, "t1", "id").apply(example_diff(), Summary.starting_from(3))

        assert exc_info.value.operation == "delete"
        assert exc_info.value.key == 3
        assert exc_info.value.applied == Summary(unchanged=3)

    def test_begin_failure(self, conn, recording_backend, read_table):
        """A transaction that cannot be opened is reported against begin."""
        conn.isolation_level = None
        backend = recording_backend(conn, fail_on=1)

        with pytest.raises(ApplyError) as exc_info:
            MutationApplier(backend, "t1", "id").apply(example_diff(), Summary.starting_from(3))

        assert exc_info.value.operation == "begin"
        assert exc_info.value.key is None
        assert exc_info.value.sql == "BEGIN"
        assert exc_info.value.applied == Summary(unchanged=3)
        assert backend.operations == ["BEGIN"]
        assert set(read_table(conn)) == {1, 2, 3}

    def test_commit_failure(self, conn, recording_backend):
        """A failed commit is reported against the commit itself."""
        backend = recording_backend(conn)

        def failing_commit():
            raise ConnectivityError("server closed the connection", sql="COMMIT")

        backend.commit = failing_commit

        with pytest.raises(ApplyError) as exc_info:
            MutationApplier(backend, "t1", "id").apply(example_diff(), Summary.starting_from(3))

        assert exc_info.value.operation == "commit"
        assert exc_info.value.rolled_back is True
        assert isinstance(exc_info.value.__cause__, ConnectivityError)
        assert backend.rollbacks == 1
