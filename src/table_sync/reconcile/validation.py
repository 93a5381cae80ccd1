"""
Entry validation for reconcile inputs.

Everything here runs before the first statement is sent, so a bad call
never touches the table. All failures raise ConfigurationError.
"""

import datetime
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

from table_sync.errors import ConfigurationError
from table_sync.utils.sql_safety import validate_identifier, validate_schema_table

# Values a row may hold besides None. The tail of the tuple covers what
# drivers return when a snapshot row is fed back in as desired state.
SCALAR_TYPES = (
    str,
    int,
    float,
    bool,
    Decimal,
    datetime.date,
    datetime.datetime,
    datetime.time,
    bytes,
)


def validate_table_name(table: Any) -> str:
    try:
        validate_schema_table(table)
    except ValueError as e:
        raise ConfigurationError(f"Invalid table name: {e}") from None
    return table


def validate_column_name(column: Any, role: str = "column") -> str:
    try:
        validate_identifier(column)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {role} name: {e}") from None
    return column


def validate_column_list(columns: Any) -> list[str]:
    """Validate an explicit column override: a sequence of distinct names."""
    if isinstance(columns, (str, bytes)) or not isinstance(columns, Sequence):
        raise ConfigurationError(
            f"columns must be a sequence of column names, got {type(columns).__name__}"
        )

    seen = set()
    for column in columns:
        validate_column_name(column)
        if column in seen:
            raise ConfigurationError(f"Duplicate column in columns: {column!r}")
        seen.add(column)

    return list(columns)


def validate_desired_state(desired_state: Any) -> Mapping[Any, Mapping[str, Any]]:
    """
    Check that desired_state maps non-null scalar keys to rows of scalars.

    Returns:
        The desired state, unchanged

    Raises:
        ConfigurationError: On the first offending key, row, column or value
    """
    if desired_state is None:
        raise ConfigurationError("desired_state is required")

    if not isinstance(desired_state, Mapping):
        raise ConfigurationError(
            f"desired_state must be a mapping of key to row, got {type(desired_state).__name__}"
        )

    key_forms: dict[str, Any] = {}
    for key, row in desired_state.items():
        if key is None:
            raise ConfigurationError("desired_state contains a null key")
        if not isinstance(key, SCALAR_TYPES):
            raise ConfigurationError(
                f"desired_state key {key!r} is not a scalar ({type(key).__name__})"
            )

        token = str(key)
        if token in key_forms:
            raise ConfigurationError(
                f"desired_state keys {key_forms[token]!r} and {key!r} identify the same row"
            )
        key_forms[token] = key

        if not isinstance(row, Mapping):
            raise ConfigurationError(
                f"Row for key {key!r} must be a mapping of column to value, "
                f"got {type(row).__name__}"
            )

        for column, value in row.items():
            validate_column_name(column)
            if value is not None and not isinstance(value, SCALAR_TYPES):
                raise ConfigurationError(
                    f"Value of column {column!r} for key {key!r} is not a scalar "
                    f"({type(value).__name__})"
                )

    return desired_state
