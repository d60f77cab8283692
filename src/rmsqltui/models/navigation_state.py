"""Navigation state management for TUI."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class ViewMode(Enum):
    """Top-level views the browser can show."""
    DATABASES = "databases"
    TABLES = "tables"
    TABLE_DATA = "table_data"
    SQL_EDITOR = "sql_editor"


@dataclass
class SqlResult:
    """Output of the last statement run from the SQL editor."""
    columns: List[str] = field(default_factory=list)
    rows: List[List[str]] = field(default_factory=list)
    message: str = ""


@dataclass
class Cursor:
    """Selected row of a list or table view; ``None`` means nothing selected."""

    selected: Optional[int] = None

    def select(self, index: Optional[int]) -> None:
        self.selected = index

    def clamp(self, length: int) -> None:
        """Keep the selection inside ``[0, length)``, or clear it for empty data."""
        if length <= 0:
            self.selected = None
        elif self.selected is not None and self.selected >= length:
            self.selected = length - 1

    def copy(self) -> "Cursor":
        return Cursor(self.selected)


@dataclass
class NavigationState:
    """Track the current view and everything the views display.

    Only the methods below mutate the state; none of them perform I/O.
    """

    mode: ViewMode = ViewMode.DATABASES
    current_database: Optional[str] = None
    current_table: Optional[str] = None

    databases: List[str] = field(default_factory=list)
    tables: List[str] = field(default_factory=list)
    table_columns: List[str] = field(default_factory=list)
    table_rows: List[List[str]] = field(default_factory=list)

    expanded_columns: bool = False
    horizontal_scroll: int = 0
    visible_columns: int = 3

    sql_input: str = ""
    sql_history: List[str] = field(default_factory=list)
    sql_history_index: Optional[int] = None
    sql_result: Optional[SqlResult] = None

    database_cursor: Cursor = field(default_factory=Cursor)
    table_cursor: Cursor = field(default_factory=Cursor)
    data_cursor: Cursor = field(default_factory=Cursor)

    def _active(self) -> Optional[Tuple[Cursor, int]]:
        if self.mode is ViewMode.DATABASES:
            return self.database_cursor, len(self.databases)
        if self.mode is ViewMode.TABLES:
            return self.table_cursor, len(self.tables)
        if self.mode is ViewMode.TABLE_DATA:
            return self.data_cursor, len(self.table_rows)
        # No movement in SQL editor mode
        return None

    # Cursor motion

    def move_up(self) -> None:
        active = self._active()
        if active is None:
            return
        cursor, length = active
        if length == 0:
            return
        current = cursor.selected or 0
        cursor.select(max(0, current - 1))

    def move_down(self) -> None:
        active = self._active()
        if active is None:
            return
        cursor, length = active
        if length == 0:
            return
        if cursor.selected is None:
            cursor.select(0)
        else:
            cursor.select(min(cursor.selected + 1, length - 1))

    def move_to_top(self) -> None:
        active = self._active()
        if active is not None and active[1] > 0:
            active[0].select(0)

    def move_to_bottom(self) -> None:
        active = self._active()
        if active is not None and active[1] > 0:
            active[0].select(active[1] - 1)

    # Mode transitions

    def set_mode(self, mode: ViewMode) -> None:
        self.mode = mode

    def set_current_database(self, database: str) -> None:
        """Set database and reset downstream context."""
        self.current_database = database
        self.current_table = None
        self.tables = []
        self.table_columns = []
        self.table_rows = []
        self.horizontal_scroll = 0
        self.table_cursor.select(None)
        self.data_cursor.select(None)

    def set_current_table(self, table: str) -> None:
        """Set table and drop the previous table's data."""
        self.current_table = table
        self.table_columns = []
        self.table_rows = []
        self.horizontal_scroll = 0
        self.data_cursor.select(None)

    def set_databases(self, databases: Sequence[str]) -> None:
        self.databases = list(databases)
        self._reseat(self.database_cursor, len(self.databases))

    def set_tables(self, tables: Sequence[str]) -> None:
        self.tables = list(tables)
        self._reseat(self.table_cursor, len(self.tables))

    def set_table_data(self, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        self.table_columns = list(columns)
        width = len(self.table_columns)
        # every row carries exactly one cell per column
        self.table_rows = [(list(row) + [""] * width)[:width] for row in rows]
        self._reseat(self.data_cursor, len(self.table_rows))
        self.horizontal_scroll = min(self.horizontal_scroll, self._max_scroll())

    @staticmethod
    def _reseat(cursor: Cursor, length: int) -> None:
        if length > 0 and cursor.selected is None:
            cursor.select(0)
        cursor.clamp(length)

    def get_selected_database(self) -> Optional[str]:
        index = self.database_cursor.selected
        if index is None or index >= len(self.databases):
            return None
        return self.databases[index]

    def get_selected_table(self) -> Optional[str]:
        index = self.table_cursor.selected
        if index is None or index >= len(self.tables):
            return None
        return self.tables[index]

    def get_current_path(self) -> str:
        """Path shown in the header: ``db/table``, ``db`` or ``/``."""
        if self.current_database and self.current_table:
            return f"{self.current_database}/{self.current_table}"
        if self.current_database:
            return self.current_database
        return "/"

    # Horizontal window

    def _max_scroll(self) -> int:
        return max(0, len(self.table_columns) - self.visible_columns)

    def toggle_expanded_columns(self) -> None:
        if self.mode is not ViewMode.TABLE_DATA:
            return
        self.expanded_columns = not self.expanded_columns
        self.horizontal_scroll = 0

    def scroll_right(self) -> None:
        if self.mode is not ViewMode.TABLE_DATA or not self.expanded_columns:
            return
        self.horizontal_scroll = min(self.horizontal_scroll + 1, self._max_scroll())

    def scroll_left(self) -> None:
        if self.mode is not ViewMode.TABLE_DATA or not self.expanded_columns:
            return
        self.horizontal_scroll = max(0, self.horizontal_scroll - 1)

    def set_visible_columns(self, count: int) -> None:
        self.visible_columns = max(1, count)
        self.horizontal_scroll = min(self.horizontal_scroll, self._max_scroll())

    def get_visible_columns(self) -> Tuple[int, int]:
        """Half-open ``(start, end)`` range of columns currently on screen."""
        total = len(self.table_columns)
        if not self.expanded_columns or total == 0:
            return 0, total
        start = min(self.horizontal_scroll, total)
        return start, min(start + self.visible_columns, total)

    # SQL editor

    def add_to_sql_input(self, ch: str) -> None:
        self.sql_input += ch

    def backspace_sql_input(self) -> None:
        self.sql_input = self.sql_input[:-1]

    def execute_sql(self) -> str:
        """Move the trimmed input into history and return it ("" if blank)."""
        sql = self.sql_input.strip()
        if not sql:
            return ""
        self.sql_history.append(sql)
        self.sql_history_index = None
        self.sql_input = ""
        return sql

    def navigate_history_up(self) -> None:
        if not self.sql_history:
            return
        if self.sql_history_index is None:
            self.sql_history_index = len(self.sql_history) - 1
        elif self.sql_history_index > 0:
            self.sql_history_index -= 1
        else:
            return
        self.sql_input = self.sql_history[self.sql_history_index]

    def navigate_history_down(self) -> None:
        index = self.sql_history_index
        if index is None:
            return
        if index < len(self.sql_history) - 1:
            self.sql_history_index = index + 1
            self.sql_input = self.sql_history[index + 1]
        else:
            self.sql_history_index = None
            self.sql_input = ""

    def set_sql_result(self, result: SqlResult) -> None:
        self.sql_result = result

    def clear_sql_result(self) -> None:
        self.sql_result = None

    def set_sql_history(self, history: Sequence[str]) -> None:
        self.sql_history = list(history)
        self.sql_history_index = None
