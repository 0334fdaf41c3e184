"""Shared test fixtures for dbguard tests."""
from contextlib import asynccontextmanager

import pytest

from dbguard.config import GatewayConfig
from dbguard.governance.schema_guard import SchemaAllowList


class FakeCursor:
    """Async cursor returning a scripted outcome.

    The outcome is an exception (raised on execute), a list of rows (read
    result) or an int (affected row count).
    """

    def __init__(self, conn):
        self._conn = conn
        self._rows = []
        self.description = None
        self.rowcount = -1

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, sql, params=None, prepare=None):
        self._conn.statements.append((sql, params, prepare))
        outcome = self._conn.outcome
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, int):
            self.rowcount = outcome
            return
        self._rows = list(outcome)
        self.description = [("column",)]
        self.rowcount = len(self._rows)

    async def fetchmany(self, size):
        rows, self._rows = self._rows[:size], self._rows[size:]
        return rows


class FakeConnection:
    def __init__(self, outcome):
        self.outcome = outcome
        self.statements = []

    def cursor(self):
        return FakeCursor(self)


class FakePool:
    """Stands in for DatabasePool; one scripted outcome per lease.

    The last outcome repeats once the script runs out.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or [[]]
        self.leases = 0
        self.releases = 0
        self.active = 0
        self.max_active = 0
        self.read_only_flags = []
        self.connections = []

    @asynccontextmanager
    async def lease(self, read_only=False):
        self.leases += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.read_only_flags.append(read_only)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        conn = FakeConnection(outcome)
        self.connections.append(conn)
        try:
            yield conn
        finally:
            self.active -= 1
            self.releases += 1

    @property
    def executed(self):
        return [stmt for conn in self.connections for stmt in conn.statements]


@pytest.fixture
def make_config():
    """Build a GatewayConfig with test connection settings and no retry delay."""

    def _make(**overrides):
        values = {
            "host": "localhost",
            "user": "tester",
            "password": "secret",
            "database": "app",
            "retry_base_delay": 0.0,
        }
        if "allowed_schemas" in overrides and not isinstance(
            overrides["allowed_schemas"], SchemaAllowList
        ):
            overrides["allowed_schemas"] = SchemaAllowList.parse(overrides["allowed_schemas"])
        values.update(overrides)
        return GatewayConfig(**values)

    return _make


@pytest.fixture
def make_pool():
    return FakePool


@pytest.fixture
def sample_columns():
    return [
        {
            "column_name": "id",
            "data_type": "integer",
            "character_maximum_length": None,
            "numeric_precision": 32,
            "numeric_scale": 0,
            "is_nullable": "NO",
            "column_default": "nextval('users_id_seq'::regclass)",
            "ordinal_position": 1,
            "is_primary_key": True,
            "column_comment": "Surrogate key",
        },
        {
            "column_name": "email",
            "data_type": "character varying",
            "character_maximum_length": 255,
            "numeric_precision": None,
            "numeric_scale": None,
            "is_nullable": "YES",
            "column_default": None,
            "ordinal_position": 2,
            "is_primary_key": False,
            "column_comment": None,
        },
    ]


@pytest.fixture
def sample_rows():
    return [
        {"id": 1, "name": "Alice", "email": "alice@example.com"},
        {"id": 2, "name": "Bob", "email": "bob@example.com"},
    ]
