from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import ConnectionConfig
from .errors import BackendError

logger = logging.getLogger(__name__)

ROW_PREFIX_LIMIT = 100
SYSTEM_SCHEMAS = ("information_schema", "performance_schema", "sys")
QUERY_PREFIXES = ("SELECT", "SHOW", "DESCRIBE", "EXPLAIN")
INIT_COMMAND = "SET NAMES utf8mb4 COLLATE utf8mb4_unicode_ci"

NULL_TEXT = "NULL"
BINARY_TEXT = "(binary data)"


@dataclass
class QueryResult:
    columns: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    message: str = ""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def is_row_returning(sql: str) -> bool:
    return sql.strip().upper().startswith(QUERY_PREFIXES)


def cell_to_text(value: Any) -> str:
    """Render one result cell as display text."""
    if value is None:
        return NULL_TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return BINARY_TEXT
    return str(value)


def row_to_text(row: Sequence[Any], width: int) -> List[str]:
    cells = [cell_to_text(v) for v in row[:width]]
    # pad short rows so every row matches the column count
    cells.extend([NULL_TEXT] * (width - len(cells)))
    return cells


def _build_connect_kwargs(conn: ConnectionConfig, database: Optional[str], connect_timeout: int) -> Dict[str, Any]:
    """Build keyword arguments for pymysql.connect."""
    kwargs: Dict[str, Any] = {
        "host": conn.host,
        "port": conn.port,
        "user": conn.username,
        "password": conn.password or "",
        "charset": "utf8mb4",
        "init_command": INIT_COMMAND,
        "autocommit": True,
        "connect_timeout": connect_timeout,
    }
    if database:
        kwargs["database"] = database
    if conn.use_ssl:
        # used when the server offers it; no certificate verification
        kwargs["ssl"] = {"check_hostname": False}
    else:
        kwargs["ssl_disabled"] = True
    return kwargs


class MySQLAdapter:
    """Catalog/query adapter over a single PyMySQL connection.

    PyMySQL is imported lazily to keep unit tests light; every driver failure
    is re-raised as BackendError, except in ``execute`` where it becomes an
    ``Error: ...`` result so the SQL editor can keep running.
    """

    def __init__(self, connection: ConnectionConfig, connect_timeout: int = 10):
        self.connection = connection
        self.connect_timeout = connect_timeout
        self._conn: Any = None

    def __enter__(self) -> "MySQLAdapter":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _driver(self):
        import pymysql  # local import: optional for tests

        return pymysql

    def _connect(self) -> Any:
        if self._conn is not None:
            return self._conn
        pymysql = self._driver()
        kwargs = _build_connect_kwargs(self.connection, self.connection.default_database, self.connect_timeout)
        logger.info("Connecting to %s:%s as %s", self.connection.host, self.connection.port, self.connection.username)
        try:
            self._conn = pymysql.connect(**kwargs)
        except pymysql.MySQLError as e:
            raise BackendError(str(e)) from e
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except Exception as e:  # already closed by the server
                logger.debug("Ignoring error on close: %s", e)
            self._conn = None

    def ping(self) -> None:
        pymysql = self._driver()
        conn = self._connect()
        try:
            conn.ping(reconnect=True)
        except pymysql.MySQLError as e:
            raise BackendError(str(e)) from e

    def _run(self, statements: Sequence[str], database: Optional[str] = None) -> Tuple[Any, List[Tuple[Any, ...]]]:
        """Execute statements in order; return the last cursor description and rows."""
        pymysql = self._driver()
        conn = self._connect()
        try:
            conn.ping(reconnect=True)
            if database:
                conn.select_db(database)
            with conn.cursor() as cursor:
                for statement in statements:
                    cursor.execute(statement)
                return cursor.description, list(cursor.fetchall())
        except pymysql.MySQLError as e:
            raise BackendError(str(e)) from e

    def list_databases(self) -> List[str]:
        _, rows = self._run(["SHOW DATABASES"])
        names = [cell_to_text(row[0]) for row in rows]
        return [name for name in names if name not in SYSTEM_SCHEMAS]

    def list_tables(self, database: str) -> List[str]:
        _, rows = self._run(["SHOW TABLES"], database=database)
        return [cell_to_text(row[0]) for row in rows]

    def fetch_table_prefix(self, database: str, table: str) -> Tuple[List[str], List[List[str]]]:
        _, described = self._run([f"DESCRIBE {quote_identifier(table)}"], database=database)
        columns = [f"{cell_to_text(row[0])} ({cell_to_text(row[1])})" for row in described]

        _, data = self._run(
            [f"SELECT * FROM {quote_identifier(table)} LIMIT {ROW_PREFIX_LIMIT}"],
            database=database,
        )
        rows = [row_to_text(row, len(columns)) for row in data[:ROW_PREFIX_LIMIT]]
        logger.info("Fetched %d rows from %s.%s", len(rows), database, table)
        return columns, rows

    def execute(self, sql: str, database: Optional[str] = None) -> QueryResult:
        pymysql = self._driver()
        try:
            conn = self._connect()
            conn.ping(reconnect=True)
            if database:
                conn.select_db(database)
            with conn.cursor() as cursor:
                affected = cursor.execute(sql)
                if is_row_returning(sql):
                    description = cursor.description or []
                    columns = [
                        str(col[0]) if col and col[0] else f"Column_{i}"
                        for i, col in enumerate(description)
                    ]
                    rows = [row_to_text(row, len(columns)) for row in cursor.fetchall()]
                    return QueryResult(
                        columns=columns,
                        rows=rows,
                        message=f"Query executed successfully. {len(rows)} rows returned.",
                    )
                return QueryResult(message=f"Query executed successfully. {affected} rows affected.")
        except (BackendError, pymysql.MySQLError) as e:
            logger.info("Query failed: %s", e)
            return QueryResult(message=f"Error: {e}", error=str(e))
