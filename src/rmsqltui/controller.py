"""Key-event controller: maps one key press at a time onto NavigationState."""

import logging
import time
from typing import Callable, Optional

from rmsqllib.errors import BackendError, PersistenceError
from rmsqllib.history import HistoryEntry, HistoryStore

from .models.navigation_state import NavigationState, SqlResult, ViewMode
from .renderer import visible_column_budget

logger = logging.getLogger(__name__)

# Named keys; anything else is a single printable character.
ENTER = "enter"
ESCAPE = "escape"
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
BACKSPACE = "backspace"
NAMED_KEYS = frozenset({ENTER, ESCAPE, UP, DOWN, LEFT, RIGHT, BACKSPACE})

EDITOR_HISTORY_SIZE = 10

WELCOME = "Welcome to RMSQL - Press 'q' to quit, '?' for help"
HELP_TEXT = (
    "Help: j/k=up/down, h/l=back/forward, g/G=top/bottom, r=refresh, "
    "1/2/3=modes, i=SQL editor, Space=expand, q=quit"
)


class Controller:
    """Single-threaded dispatcher between key presses, state and the adapter.

    ``adapter`` must provide ``list_databases``, ``list_tables``,
    ``fetch_table_prefix`` and ``execute``. BackendError raised while
    refreshing a catalogue view propagates to the caller and ends the session.
    """

    def __init__(
        self,
        adapter,
        history: HistoryStore,
        connection_id: str,
        terminal_width: Callable[[], int] = lambda: 80,
    ):
        self.adapter = adapter
        self.history = history
        self.connection_id = connection_id
        self.terminal_width = terminal_width
        self.state = NavigationState()
        self.status_message = WELCOME
        self.should_quit = False

    def start(self, initial_database: Optional[str] = None) -> None:
        """Load the databases view, optionally opening ``initial_database``."""
        self.refresh_current_view()
        if initial_database and initial_database in self.state.databases:
            self.state.database_cursor.select(self.state.databases.index(initial_database))
            self.navigate_forward()

    def handle_key(self, key: str) -> None:
        if self.state.mode is ViewMode.SQL_EDITOR:
            self._handle_editor_key(key)
        else:
            self._handle_global_key(key)

    def _horizontal_mode(self) -> bool:
        return self.state.mode is ViewMode.TABLE_DATA and self.state.expanded_columns

    def _handle_global_key(self, key: str) -> None:
        state = self.state
        if key == "q":
            self.should_quit = True
        elif key in ("j", DOWN):
            state.move_down()
        elif key in ("k", UP):
            state.move_up()
        elif key == "g":
            state.move_to_top()
        elif key == "G":
            state.move_to_bottom()
        elif key == ENTER:
            self.navigate_forward()
        elif key == ESCAPE:
            self.navigate_back()
        elif key in ("h", LEFT):
            if self._horizontal_mode():
                state.scroll_left()
                self._update_scroll_status()
            else:
                self.navigate_back()
        elif key in ("l", RIGHT):
            if self._horizontal_mode():
                state.scroll_right()
                self._update_scroll_status()
            else:
                self.navigate_forward()
        elif key == "r":
            self.refresh_current_view()
        elif key == "?":
            self.show_help()
        elif key == " ":
            self._toggle_expanded()
        elif key == "i":
            self.enter_sql_editor()
        elif key == "1":
            self.switch_mode(ViewMode.DATABASES)
        elif key == "2":
            if state.current_database is not None:
                self.switch_mode(ViewMode.TABLES)
        elif key == "3":
            if state.current_table is not None:
                self.switch_mode(ViewMode.TABLE_DATA)

    def _handle_editor_key(self, key: str) -> None:
        state = self.state
        if key == ESCAPE:
            self.navigate_back()
        elif key == ENTER:
            sql = state.execute_sql()
            if sql:
                self.execute_sql_query(sql)
        elif key == UP:
            state.navigate_history_up()
        elif key == DOWN:
            state.navigate_history_down()
        elif key == BACKSPACE:
            state.backspace_sql_input()
        elif key not in NAMED_KEYS and len(key) == 1 and key.isprintable():
            state.add_to_sql_input(key)

    # Transitions

    def switch_mode(self, mode: ViewMode) -> None:
        logger.info("Switching to %s", mode.value)
        self.state.set_mode(mode)
        self.refresh_current_view()

    def enter_sql_editor(self) -> None:
        self.state.set_mode(ViewMode.SQL_EDITOR)
        self.state.clear_sql_result()
        self.refresh_current_view()
        self.status_message = "Entered SQL Editor mode - Type SQL and press Enter to execute"

    def navigate_forward(self) -> None:
        state = self.state
        if state.mode is ViewMode.DATABASES:
            selected = state.get_selected_database()
            if selected is None:
                return
            state.set_current_database(selected)
            self.switch_mode(ViewMode.TABLES)
            self.status_message = f"Switched to database: {selected}"
        elif state.mode is ViewMode.TABLES:
            selected = state.get_selected_table()
            if selected is None:
                return
            state.set_current_table(selected)
            self.switch_mode(ViewMode.TABLE_DATA)
            self.status_message = f"Viewing table: {selected}"

    def navigate_back(self) -> None:
        state = self.state
        if state.mode is ViewMode.TABLES:
            self.switch_mode(ViewMode.DATABASES)
            self.status_message = "Switched to databases view"
        elif state.mode is ViewMode.TABLE_DATA:
            self.switch_mode(ViewMode.TABLES)
            self.status_message = "Switched to tables view"
        elif state.mode is ViewMode.SQL_EDITOR:
            # deepest view the current context supports
            if state.current_table is not None:
                self.switch_mode(ViewMode.TABLE_DATA)
                self.status_message = "Exited SQL Editor, back to table data"
            elif state.current_database is not None:
                self.switch_mode(ViewMode.TABLES)
                self.status_message = "Exited SQL Editor, back to tables"
            else:
                self.switch_mode(ViewMode.DATABASES)
                self.status_message = "Exited SQL Editor, back to databases"

    def refresh_current_view(self) -> None:
        state = self.state
        logger.info("Refreshing %s view", state.mode.value)
        if state.mode is ViewMode.DATABASES:
            databases = self.adapter.list_databases()
            state.set_databases(databases)
            self.status_message = "Databases loaded"
            self._remember(self.history.add_databases, self.connection_id, databases)
        elif state.mode is ViewMode.TABLES and state.current_database is not None:
            database = state.current_database
            tables = self.adapter.list_tables(database)
            state.set_tables(tables)
            self.status_message = f"Tables loaded for database: {database}"
            self._remember(self.history.update_database_access, self.connection_id, database)
            self._remember(self.history.set_last_database, self.connection_id, database)
        elif state.mode is ViewMode.TABLE_DATA and state.current_database and state.current_table:
            database, table = state.current_database, state.current_table
            columns, rows = self.adapter.fetch_table_prefix(database, table)
            state.set_table_data(columns, rows)
            self.status_message = f"Data loaded for table: {database}.{table}"
        elif state.mode is ViewMode.SQL_EDITOR:
            # recent() is newest first; the editor walks history oldest to newest
            recent = self.history.recent(EDITOR_HISTORY_SIZE)
            state.set_sql_history(list(reversed(recent)))

    def show_help(self) -> None:
        self.status_message = HELP_TEXT

    def _toggle_expanded(self) -> None:
        state = self.state
        if state.mode is not ViewMode.TABLE_DATA or not state.table_columns:
            return
        state.toggle_expanded_columns()
        if state.expanded_columns:
            state.set_visible_columns(visible_column_budget(self.terminal_width(), len(state.table_columns)))
            self.status_message = "Expanded mode: Use ←→ arrows to navigate columns, Esc to go back"
        else:
            self.status_message = "Normal mode: Press Space to expand columns"

    def _update_scroll_status(self) -> None:
        start, end = self.state.get_visible_columns()
        total = len(self.state.table_columns)
        self.status_message = (
            f"Columns {start + 1}-{end} of {total} | Use ←→ to scroll, Space to exit expanded mode"
        )

    # SQL execution

    def execute_sql_query(self, sql: str) -> None:
        database = self.state.current_database
        started = time.monotonic()
        try:
            result = self.adapter.execute(sql, database)
            error = result.error
            columns, rows, message = result.columns, result.rows, result.message
        except BackendError as e:
            error = str(e)
            columns, rows, message = [], [], f"Error: {e}"
        elapsed_ms = int((time.monotonic() - started) * 1000)

        self.state.set_sql_result(SqlResult(columns=list(columns), rows=list(rows), message=message))
        if error is None:
            self.status_message = message
            if self.history.preferences.show_execution_time:
                self.status_message += f" ({elapsed_ms} ms)"
        else:
            self.status_message = f"SQL Error: {error}"
        logger.info("Executed query in %d ms (success=%s)", elapsed_ms, error is None)

        entry = HistoryEntry(
            sql=sql,
            connection_id=self.connection_id,
            success=error is None,
            database=database,
            execution_time_ms=elapsed_ms,
            error_message=error,
        )
        self._remember(self.history.append, entry)

    def _remember(self, write, *args) -> None:
        """Run a history-store write; failures are reported, never fatal."""
        try:
            write(*args)
        except PersistenceError as e:
            logger.warning("History store write failed: %s", e)
            self.status_message = f"{self.status_message} | History not saved: {e}"
