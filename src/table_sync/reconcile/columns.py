"""Column set resolution."""

from collections.abc import Mapping, Sequence
from typing import Any


def resolve_columns(
    desired_state: Mapping[Any, Mapping[str, Any]],
    key_column: str,
    columns: Sequence[str] | None = None,
) -> tuple[str, ...]:
    """
    Determine the columns that take part in comparison and in SQL column lists.

    An explicit `columns` list is used verbatim. Otherwise the union of
    column names across every desired row is collected, then sorted so the
    generated SQL has a reproducible column order. The key column is
    appended when missing.

    >>> resolve_columns({1: {"b": 1}, 2: {"a": 2}}, "id")
    ('a', 'b', 'id')
    """
    if columns is not None:
        resolved = list(columns)
    else:
        names: set[str] = set()
        for row in desired_state.values():
            names.update(row.keys())
        resolved = sorted(names)

    if key_column not in resolved:
        resolved.append(key_column)

    return tuple(resolved)
