from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import pytest

from rmsqllib.clients import QueryResult
from rmsqllib.errors import BackendError
from rmsqllib.history import HistoryStore
from rmsqltui.controller import Controller


class FakeAdapter:
    """In-memory stand-in for MySQLAdapter that records every call."""

    def __init__(
        self,
        databases: Optional[List[str]] = None,
        tables: Optional[Dict[str, List[str]]] = None,
        data: Optional[Dict[Tuple[str, str], Tuple[List[str], List[List[str]]]]] = None,
        results: Optional[Dict[str, object]] = None,
    ):
        self.databases = databases or []
        self.tables = tables or {}
        self.data = data or {}
        self.results = results or {}
        self.calls: List[tuple] = []
        self.connections: list = []
        self.ping_error: Optional[Exception] = None

    def __enter__(self) -> "FakeAdapter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def ping(self) -> None:
        self.calls.append(("ping",))
        if self.ping_error is not None:
            raise self.ping_error

    def list_databases(self) -> List[str]:
        self.calls.append(("list_databases",))
        return list(self.databases)

    def list_tables(self, database: str) -> List[str]:
        self.calls.append(("list_tables", database))
        if database not in self.tables:
            raise BackendError(f"(1049, \"Unknown database '{database}'\")")
        return list(self.tables[database])

    def fetch_table_prefix(self, database: str, table: str):
        self.calls.append(("fetch_table_prefix", database, table))
        columns, rows = self.data.get((database, table), ([], []))
        return list(columns), [list(r) for r in rows]

    def execute(self, sql: str, database: Optional[str] = None) -> QueryResult:
        self.calls.append(("execute", sql, database))
        result = self.results.get(sql)
        if isinstance(result, Exception):
            raise result
        if result is None:
            return QueryResult(message="Query executed successfully. 0 rows affected.")
        return result

    def close(self) -> None:
        self.calls.append(("close",))


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter(
        databases=["app", "logs"],
        tables={"app": ["users"], "logs": []},
        data={
            ("app", "users"): (
                ["id (int)", "name (varchar)"],
                [["1", "alice"], ["2", "bob"]],
            )
        },
        results={
            "SELECT 1": QueryResult(
                columns=["1"],
                rows=[["1"]],
                message="Query executed successfully. 1 rows returned.",
            )
        },
    )


@pytest.fixture
def history_store(tmp_path) -> HistoryStore:
    return HistoryStore(tmp_path / "config" / "user_config.json", tmp_path / "cache" / "sql_history.json")


@pytest.fixture
def controller(fake_adapter, history_store) -> Controller:
    ctl = Controller(fake_adapter, history_store, "conn-1", terminal_width=lambda: 30)
    ctl.start()
    return ctl


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.config and ~/.cache."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.delenv("RMSQL_CONFIG", raising=False)
    monkeypatch.delenv("SUDO_USER", raising=False)
    monkeypatch.setenv("USER", "tester")


@pytest.fixture
def patch_mysql(monkeypatch, fake_adapter) -> FakeAdapter:
    """Every MySQLAdapter the CLI opens becomes ``fake_adapter``."""

    def factory(connection, **kwargs):
        fake_adapter.connections.append(connection)
        return fake_adapter

    monkeypatch.setattr("rmsqllib.clients.MySQLAdapter", factory)
    return fake_adapter
