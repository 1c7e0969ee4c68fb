import pathlib
import sqlite3
import threading
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from dbgateway.datasources.registry import BackendHandle, DatasourceRegistry


def make_sqlite_engine(path: pathlib.Path, users: Sequence[tuple] = ((1, "alice"), (2, "bob"))) -> Engine:
    """File-backed SQLite engine with a small ``users`` table."""
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False})
    with engine.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, deleted_at TEXT)")
        for user_id, name in users:
            conn.exec_driver_sql("INSERT INTO users (id, name) VALUES (?, ?)", (user_id, name))
    return engine


class _InterpolatingCursor:
    """Applies ``query % args`` whenever args are given, the way PyMySQL's cursor does."""

    def __init__(self, cursor):
        self._cursor = cursor

    def execute(self, query, args=None):
        if args is not None:
            query = query % args
        return self._cursor.execute(query)

    def __getattr__(self, name):
        return getattr(self._cursor, name)


class _InterpolatingConnection:
    def __init__(self, connection):
        self._connection = connection

    def cursor(self, *args, **kwargs):
        return _InterpolatingCursor(self._connection.cursor(*args, **kwargs))

    def __getattr__(self, name):
        return getattr(self._connection, name)


def make_format_paramstyle_engine() -> Engine:
    """In-memory SQLite engine that behaves like a ``format`` paramstyle driver."""
    return create_engine(
        "sqlite://",
        paramstyle="format",
        creator=lambda: _InterpolatingConnection(sqlite3.connect(":memory:", check_same_thread=False)),
    )


class CheckoutCounter:
    """Counts pool checkouts and checkins of an engine."""

    def __init__(self, engine: Engine):
        self.checkouts = 0
        self.checkins = 0
        event.listen(engine, "checkout", self._on_checkout)
        event.listen(engine, "checkin", self._on_checkin)

    def _on_checkout(self, *args):
        self.checkouts += 1

    def _on_checkin(self, *args):
        self.checkins += 1


class FailingEngine:
    """Connection source whose every checkout fails like an unreachable server."""

    def __init__(self, message: str = "connection refused"):
        self.message = message
        self.attempts = 0

    def connect(self):
        self.attempts += 1
        raise OperationalError("connect", {}, Exception(self.message))


class BlockingEngine:
    """Connection source that hangs until released, then fails."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def connect(self):
        self.entered.set()
        self.release.wait(timeout=10)
        raise OperationalError("connect", {}, Exception("released"))


class FakeResult:
    def __init__(self, columns: List[str], rows: List[tuple], rowcount: int = -1):
        self.columns = columns
        self.rows = rows
        self.rowcount = rowcount
        self.returns_rows = bool(columns)
        self.closed = False

    def keys(self):
        return self.columns

    def fetchall(self):
        return self.rows

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, engine: "FakeEngine"):
        self.engine = engine

    def __enter__(self):
        self.engine.open_connections += 1
        return self

    def __exit__(self, *exc):
        self.engine.open_connections -= 1
        return False

    def execution_options(self, **options):
        self.engine.execution_options.update(options)
        return self

    def exec_driver_sql(self, sql: str):
        self.engine.statements.append(sql)
        return self.engine.result

    def commit(self):
        self.engine.commits += 1


class FakeEngine:
    """Connection source returning a canned result, tracking open connections."""

    def __init__(self, result: FakeResult):
        self.result = result
        self.statements: List[str] = []
        self.execution_options: Dict[str, Any] = {}
        self.open_connections = 0
        self.commits = 0

    def connect(self):
        return FakeConnection(self)


def make_registry(*handles: BackendHandle) -> DatasourceRegistry:
    return DatasourceRegistry(handles)


def make_handle(name: str, engine: Any, is_default: bool = False) -> BackendHandle:
    return BackendHandle(name=name, engine=engine, is_default=is_default)




def shout(text):
    """Upper-cases the input."""
    return text.upper()
