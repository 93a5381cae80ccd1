"""
Backing-store access for the reconciler.

The reconciler talks to a TableBackend: something that can run a
parameterized read, run a parameterized write, and scope work in a
transaction. DBAPIBackend adapts any DB-API 2.0 connection (psycopg2,
pyodbc, sqlite3) to that protocol and translates driver exceptions into
ConnectivityError / QueryError.
"""

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, ContextManager, Protocol, runtime_checkable

from table_sync.errors import ConfigurationError, ConnectivityError, QueryError, TableSyncError
from table_sync.utils.sql_safety import DbType, quote_identifier, quote_schema_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dialect:
    """Identifier quoting and parameter placeholder style of a driver."""

    name: DbType
    placeholder: str

    def quote(self, identifier: str) -> str:
        return quote_identifier(identifier, self.name)

    def quote_table(self, table: str) -> str:
        return quote_schema_table(table, self.name)

    def placeholders(self, count: int) -> str:
        return ", ".join([self.placeholder] * count)


DIALECTS = {
    "postgresql": Dialect("postgresql", "%s"),
    "sqlserver": Dialect("sqlserver", "?"),
    "sqlite": Dialect("sqlite", "?"),
    "ansi": Dialect("ansi", "?"),
}

# Driver module -> dialect
DRIVER_DIALECTS = {
    "psycopg2": "postgresql",
    "psycopg": "postgresql",
    "pyodbc": "sqlserver",
    "sqlite3": "sqlite",
}


def get_dialect(name: str) -> Dialect:
    """
    Look up a dialect by name.

    Raises:
        ConfigurationError: If the dialect is unknown
    """
    try:
        return DIALECTS[name.lower()]
    except (KeyError, AttributeError):
        raise ConfigurationError(
            f"Unknown dialect: {name!r}. Must be one of: {', '.join(DIALECTS)}"
        ) from None


def detect_dialect(connection: Any) -> Dialect:
    """Detect the dialect from the module a DB-API connection class lives in."""
    module = type(connection).__module__.split(".")[0]
    return DIALECTS[DRIVER_DIALECTS.get(module, "ansi")]


@runtime_checkable
class TableBackend(Protocol):
    """What the reconciler needs from a backing store."""

    dialect: Dialect

    def transaction(self) -> ContextManager[Any]:
        ...

    def fetch_rows(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        ...

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


# Message fragments of transient, connection-level failures. Only checked
# on OperationalError, which drivers also raise for rejected statements.
CONNECTIVITY_PATTERNS = (
    "connection refused",
    "connection reset",
    "connection timed out",
    "lost connection",
    "server closed the connection",
    "terminating connection",
    "could not connect",
    "can't connect",
    "unable to connect",
    "server has gone away",
    "timeout expired",
    "timed out",
    "broken pipe",
    "network error",
    "communication link failure",
)


def _raised_as(exception: BaseException, class_name: str) -> bool:
    # By name, so the classes of any DB-API driver qualify
    return any(cls.__name__ == class_name for cls in type(exception).__mro__)


def is_connectivity_error(exception: BaseException) -> bool:
    """
    Decide whether a driver exception means the store is unreachable
    rather than that it rejected the statement.
    """
    if isinstance(exception, (ConnectionError, TimeoutError)):
        return True

    if _raised_as(exception, "InterfaceError"):
        return True

    if not _raised_as(exception, "OperationalError"):
        return False

    message = str(exception).lower()
    return any(pattern in message for pattern in CONNECTIVITY_PATTERNS)


def translate_error(exception: BaseException, sql: str | None = None) -> TableSyncError:
    """Map a driver exception onto ConnectivityError or QueryError."""
    message = f"{type(exception).__name__}: {exception}"
    if is_connectivity_error(exception):
        return ConnectivityError(message, sql=sql)
    return QueryError(message, sql=sql)


class DBAPIBackend:
    """
    TableBackend over a DB-API 2.0 connection.

    The connection stays owned by the caller; the backend never closes it.
    """

    def __init__(self, connection: Any, dialect: Dialect | str | None = None):
        """
        Args:
            connection: DB-API 2.0 connection
            dialect: Dialect or dialect name; detected from the driver when omitted
        """
        if connection is None:
            raise ConfigurationError("A database connection is required")

        self.connection = connection
        if dialect is None:
            self.dialect = detect_dialect(connection)
        elif isinstance(dialect, Dialect):
            self.dialect = dialect
        else:
            self.dialect = get_dialect(dialect)

    def fetch_rows(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a read and return rows as column-name -> value dictionaries."""
        logger.debug(f"Executing: {sql}")
        cursor = self._cursor(sql)
        try:
            cursor.execute(sql, tuple(params))
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        except Exception as e:
            raise translate_error(e, sql) from e
        finally:
            cursor.close()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a write and return the driver's affected row count."""
        logger.debug(f"Executing: {sql} {list(params)!r}")
        cursor = self._cursor(sql)
        try:
            cursor.execute(sql, tuple(params))
            return cursor.rowcount
        except Exception as e:
            raise translate_error(e, sql) from e
        finally:
            cursor.close()

    def commit(self) -> None:
        try:
            self.connection.commit()
        except Exception as e:
            raise translate_error(e, "COMMIT") from e

    def rollback(self) -> None:
        try:
            self.connection.rollback()
        except Exception as e:
            raise translate_error(e, "ROLLBACK") from e

    @contextmanager
    def transaction(self) -> Iterator["DBAPIBackend"]:
        """
        Scope work in one transaction: commit on clean exit, roll back on error.

        Connections in autocommit mode are switched out of it for the
        duration of the block.
        """
        restore_autocommit = self._begin()
        try:
            yield self
            self.commit()
        except BaseException:
            try:
                self.rollback()
            except TableSyncError:
                logger.error("Rollback failed", exc_info=True)
            raise
        finally:
            if restore_autocommit:
                self.connection.autocommit = True

    def _begin(self) -> bool:
        conn = self.connection

        # sqlite3 exposes autocommit as an int sentinel, so compare by identity
        if getattr(conn, "autocommit", None) is True:
            conn.autocommit = False
            return True

        if self.dialect.name == "sqlite" and getattr(conn, "isolation_level", "") is None:
            self.execute("BEGIN")

        return False

    def _cursor(self, sql: str) -> Any:
        try:
            return self.connection.cursor()
        except Exception as e:
            raise translate_error(e, sql) from e


def as_backend(connection: Any, dialect: Dialect | str | None = None) -> TableBackend:
    """Return connection unchanged if it already is a backend, else wrap it."""
    if isinstance(connection, TableBackend):
        if dialect is not None and not isinstance(dialect, Dialect):
            dialect = get_dialect(dialect)
        if dialect is not None and dialect != connection.dialect:
            raise ConfigurationError(
                f"Backend dialect {connection.dialect.name!r} conflicts with "
                f"requested dialect {dialect.name!r}"
            )
        return connection
    return DBAPIBackend(connection, dialect)
