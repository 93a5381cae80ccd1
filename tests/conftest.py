"""
Pytest configuration and fixtures for table-sync tests.

End-to-end behavior runs against in-memory SQLite databases, so the suite
needs no external services.
"""

import sqlite3

import pytest
from prometheus_client import CollectorRegistry

from table_sync.backend import DBAPIBackend
from table_sync.errors import QueryError
from table_sync.utils.metrics import SyncMetrics


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "property: property-based test (hypothesis)")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# id | col1 | col2 | col3
T1_ROWS = [
    (1, "a", "b", "foo"),
    (2, "c", "c", "bar"),
    (3, "g", "h", "qux"),
]


class RecordingBackend(DBAPIBackend):
    """DBAPIBackend that records writes and can fail the nth one."""

    def __init__(self, connection, fail_on: int | None = None, dialect=None):
        super().__init__(connection, dialect)
        self.fail_on = fail_on
        self.writes: list[tuple[str, tuple]] = []
        self.commits = 0
        self.rollbacks = 0

    def execute(self, sql, params=()):
        if self.fail_on is not None and len(self.writes) + 1 == self.fail_on:
            self.writes.append((sql, tuple(params)))
            raise QueryError("simulated failure", sql=sql)
        self.writes.append((sql, tuple(params)))
        return super().execute(sql, params)

    def commit(self):
        self.commits += 1
        super().commit()

    def rollback(self):
        self.rollbacks += 1
        super().rollback()

    @property
    def operations(self) -> list[str]:
        return [sql.split(" ", 1)[0] for sql, _ in self.writes]


@pytest.fixture
def conn():
    """In-memory SQLite database holding table t1."""
    connection = sqlite3.connect(":memory:")
    connection.execute(
        "CREATE TABLE t1 (id INTEGER PRIMARY KEY, col1 TEXT, col2 TEXT, col3 TEXT)"
    )
    connection.executemany("INSERT INTO t1 VALUES (?, ?, ?, ?)", T1_ROWS)
    connection.commit()
    yield connection
    connection.close()


@pytest.fixture
def read_table():
    """Return a function reading a table as {id: (other columns...)}."""

    def _read(connection, table="t1"):
        rows = connection.execute(f'SELECT * FROM "{table}" ORDER BY 1').fetchall()
        return {row[0]: tuple(row[1:]) for row in rows}

    return _read


@pytest.fixture
def recording_backend():
    """Factory for RecordingBackend instances."""
    return RecordingBackend


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry) -> SyncMetrics:
    return SyncMetrics(registry=registry)


@pytest.fixture
def example_desired_state():
    """Desired state from the canonical example: keep 1, change 2, drop 3, add 4."""
    return {
        1: {"col1": "a", "col2": "b"},
        2: {"col1": "c", "col2": "d"},
        4: {"col1": "e", "col2": "f"},
    }
