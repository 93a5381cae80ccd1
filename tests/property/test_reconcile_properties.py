"""
Property-based tests for reconciliation.

Tests properties related to:
- Convergence: after reconcile the table holds exactly the desired rows
- Idempotence: a second reconcile with the same input changes nothing
- Accounting: summary counts add up to the table sizes before and after
- Minimality: updates touch only columns whose values differ
"""

import sqlite3

import pytest
from hypothesis import given, settings, strategies as st

from table_sync import ReconcileOptions, SyncStatus, reconcile
from table_sync.reconcile import compute_diff, values_equal

pytestmark = pytest.mark.property

# Values that survive a round trip through a TEXT column unchanged
cell = st.one_of(st.none(), st.text(alphabet="abcxyz ", max_size=4))
row = st.fixed_dictionaries({"col1": cell, "col2": cell})
keys = st.integers(min_value=0, max_value=30)
table_state = st.dictionaries(keys, row, max_size=15)


def make_table(rows):
    connection = sqlite3.connect(":memory:")
    connection.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, col1 TEXT, col2 TEXT)")
    connection.executemany(
        "INSERT INTO t VALUES (?, ?, ?)",
        [(key, values["col1"], values["col2"]) for key, values in rows.items()],
    )
    connection.commit()
    return connection


def read_table(connection):
    return {
        key: {"col1": col1, "col2": col2}
        for key, col1, col2 in connection.execute("SELECT id, col1, col2 FROM t")
    }


# Property: reconcile converges on the desired state
@given(initial=table_state, desired=table_state, use_transaction=st.booleans())
@settings(max_examples=75, deadline=None)
def test_table_matches_desired_state(initial, desired, use_transaction):
    """After reconcile every desired row is present with its values, and nothing else."""
    connection = make_table(initial)
    try:
        reconcile(
            connection, "t", "id", desired,
            ReconcileOptions(columns=["col1", "col2"], use_transaction=use_transaction),
        )

        assert read_table(connection) == desired
    finally:
        connection.close()


# Property: a second run is a no-op
@given(initial=table_state, desired=table_state)
@settings(max_examples=50, deadline=None)
def test_reconcile_is_idempotent(initial, desired):
    connection = make_table(initial)
    try:
        options = ReconcileOptions(columns=["col1", "col2"])
        reconcile(connection, "t", "id", desired, options)

        second = reconcile(connection, "t", "id", desired, options)

        assert second.status == SyncStatus.NO_OP
        assert second.unchanged == len(desired)
    finally:
        connection.close()


# Property: counts account for every row
@given(initial=table_state, desired=table_state)
@settings(max_examples=75, deadline=None)
def test_summary_accounts_for_every_row(initial, desired):
    connection = make_table(initial)
    try:
        summary = reconcile(
            connection, "t", "id", desired, ReconcileOptions(columns=["col1", "col2"])
        )

        assert summary.deleted == len(initial.keys() - desired.keys())
        assert summary.inserted == len(desired.keys() - initial.keys())
        assert summary.deleted + summary.updated + summary.unchanged == len(initial)
        assert summary.updated + summary.unchanged + summary.inserted == len(desired)
        assert (summary.status == SyncStatus.NO_OP) == (initial == desired)
    finally:
        connection.close()


# Property: updates are minimal
@given(initial=table_state, desired=table_state)
@settings(max_examples=100)
def test_updates_only_touch_differing_columns(initial, desired):
    snapshot = {key: {"id": key, **values} for key, values in initial.items()}

    diff = compute_diff(snapshot, desired, ("col1", "col2", "id"), "id")

    for update in diff.updates:
        assert update.changes
        for change in update.changes:
            assert change.column != "id"
            assert not values_equal(initial[update.key][change.column], desired[update.key][change.column])
        for column in {"col1", "col2"} - set(update.changed_columns):
            assert values_equal(initial[update.key][column], desired[update.key][column])

    classified = diff.unchanged + diff.deletes + [update.key for update in diff.updates]
    assert sorted(classified) == sorted(initial)
    assert sorted(insert.key for insert in diff.inserts) == sorted(desired.keys() - initial.keys())


# Property: null-aware equality is an equivalence
@given(a=cell, b=cell)
def test_values_equal_symmetric(a, b):
    assert values_equal(a, b) == values_equal(b, a)
    assert values_equal(a, a)


@given(value=st.text(max_size=10))
def test_null_never_equals_a_value(value):
    assert not values_equal(None, value)
    assert not values_equal(value, None)
