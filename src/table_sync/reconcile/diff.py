"""
Diff engine.

Compares a table snapshot with the desired state and classifies every key
as unchanged, to delete, to update (with the exact columns that differ) or
to insert. Pure computation over in-memory mappings.

Values are compared by their string form with NULL handled separately,
so 1 and "1" are equal while 1 and 1.0 are not. Booleans compare as 1 and 0,
the form BOOLEAN and bit columns read back in. Callers that want numeric
equality normalize their values first.
"""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from table_sync.utils.tracing import trace_operation

logger = logging.getLogger(__name__)


def _comparable(value: Any) -> str:
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


def values_equal(left: Any, right: Any) -> bool:
    """
    Null-aware equality.

    >>> values_equal(None, None), values_equal(None, ""), values_equal(2, "2")
    (True, False, True)
    >>> values_equal(True, 1), values_equal(False, "0"), values_equal(True, "True")
    (True, True, False)
    """
    if left is None and right is None:
        return True
    if left is None or right is None:
        return False
    return _comparable(left) == _comparable(right)


def key_order(key: Any) -> tuple:
    """
    Sort key for row keys: numbers ascend numerically ahead of everything
    else, which ascends by string form.
    """
    if isinstance(key, (int, float, Decimal)) and not isinstance(key, bool):
        return (0, key, str(key))
    return (1, 0, str(key))


@dataclass(frozen=True)
class ColumnChange:
    column: str
    old: Any
    new: Any


@dataclass(frozen=True)
class RowUpdate:
    """A row present on both sides whose values differ."""

    key: Any
    changes: tuple[ColumnChange, ...]

    @property
    def changed_columns(self) -> tuple[str, ...]:
        return tuple(change.column for change in self.changes)


@dataclass(frozen=True)
class RowInsert:
    """A desired row absent from the table, with a value for every column."""

    key: Any
    values: tuple[tuple[str, Any], ...]

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(column for column, _ in self.values)

    def as_dict(self) -> dict[str, Any]:
        return dict(self.values)


@dataclass
class DiffResult:
    """
    Keys of the snapshot and desired state split into four disjoint buckets,
    each in ascending key order.

    `unchanged`, `deletes` and `updates` hold the key as the table stores it;
    `inserts` hold the key as the desired state spells it.
    """

    unchanged: list[Any] = field(default_factory=list)
    deletes: list[Any] = field(default_factory=list)
    updates: list[RowUpdate] = field(default_factory=list)
    inserts: list[RowInsert] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.deletes or self.updates or self.inserts)

    def counts(self) -> dict[str, int]:
        return {
            "unchanged": len(self.unchanged),
            "deletes": len(self.deletes),
            "updates": len(self.updates),
            "inserts": len(self.inserts),
        }


def changed_columns(
    current: Mapping[str, Any],
    desired: Mapping[str, Any],
    columns: Sequence[str],
    key_column: str,
) -> tuple[ColumnChange, ...]:
    """
    Non-key columns whose desired value differs from the current one.
    A column the desired row does not mention counts as NULL.
    """
    return tuple(
        ColumnChange(column, current.get(column), desired.get(column))
        for column in columns
        if column != key_column
        and not values_equal(current.get(column), desired.get(column))
    )


def compute_diff(
    snapshot: Mapping[Any, Mapping[str, Any]],
    desired_state: Mapping[Any, Mapping[str, Any]],
    columns: Sequence[str],
    key_column: str,
) -> DiffResult:
    """
    Classify every key of the snapshot and the desired state.

    Keys are matched by string form, so a desired key "2" lines up with a
    table key 2.
    """
    with trace_operation("compute_diff", snapshot_rows=len(snapshot), desired_rows=len(desired_state)) as span:
        desired_by_token = {str(key): key for key in desired_state}
        snapshot_tokens = {str(key) for key in snapshot}

        diff = DiffResult()

        for key in sorted(snapshot, key=key_order):
            desired_key = desired_by_token.get(str(key))
            if desired_key is None:
                diff.deletes.append(key)
                continue

            changes = changed_columns(snapshot[key], desired_state[desired_key], columns, key_column)
            if changes:
                diff.updates.append(RowUpdate(key, changes))
            else:
                diff.unchanged.append(key)

        for key in sorted(desired_state, key=key_order):
            if str(key) in snapshot_tokens:
                continue
            row = desired_state[key]
            diff.inserts.append(
                RowInsert(
                    key,
                    tuple(
                        (column, key if column == key_column else row.get(column))
                        for column in columns
                    ),
                )
            )

        for name, count in diff.counts().items():
            span.set_attribute(name, count)

    logger.info(
        f"Diff computed: {len(diff.deletes)} to delete, {len(diff.updates)} to update, "
        f"{len(diff.inserts)} to insert, {len(diff.unchanged)} unchanged"
    )
    return diff
