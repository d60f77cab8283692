"""Pure projection of NavigationState into a logical terminal frame.

Nothing here mutates the state. The Textual screen maps the returned
``Frame`` onto its widgets.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .models.navigation_state import NavigationState, SqlResult, ViewMode

NORMAL_CELL_BUDGET = 30
EXPANDED_CELL_BUDGET = 100
RESULT_CELL_BUDGET = 50
CHARS_PER_COLUMN = 22
MIN_EXPANDED_WIDTH = 20
ELLIPSIS = "..."

DATABASE_GLYPH = "📁"
TABLE_GLYPH = "📋"

MODE_TITLES = {
    ViewMode.DATABASES: "RMSQL - Databases",
    ViewMode.TABLES: "RMSQL - Tables",
    ViewMode.TABLE_DATA: "RMSQL - Table Data",
    ViewMode.SQL_EDITOR: "RMSQL - SQL Editor",
}

MODE_LABELS = {
    ViewMode.DATABASES: "[1] Databases",
    ViewMode.TABLES: "[2] Tables",
    ViewMode.TABLE_DATA: "[3] Data",
    ViewMode.SQL_EDITOR: "[i] SQL Editor",
}

STATUS_HELP = "Press '?' for help | q: quit | r: refresh | 1/2/3: switch modes | i: SQL editor | Space: expand columns"


@dataclass(frozen=True)
class ListBody:
    title: str
    items: Tuple[str, ...]
    selected: Optional[int]


@dataclass(frozen=True)
class Placeholder:
    title: str
    text: str


@dataclass(frozen=True)
class TableBody:
    title: str
    column_strip: str
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    widths: Tuple[int, ...]
    selected: Optional[int]


@dataclass(frozen=True)
class ResultTable:
    title: str
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...]
    widths: Tuple[int, ...]


@dataclass(frozen=True)
class EditorBody:
    title: str
    sql_input: str
    history_info: str
    result: Union[Placeholder, ResultTable]


Body = Union[ListBody, Placeholder, TableBody, EditorBody]


@dataclass(frozen=True)
class Frame:
    header: str
    body: Body
    status: str


def truncate_cell(text: str, budget: int) -> str:
    """Clip ``text`` to ``budget`` characters, ending in ``...`` when clipped.

    Python strings index by code point, so a multi-byte character is never split.
    """
    if len(text) <= budget:
        return text
    return text[: max(0, budget - len(ELLIPSIS))] + ELLIPSIS


def visible_column_budget(terminal_width: int, column_count: int) -> int:
    """How many columns fit side by side in expanded mode."""
    fit = max(0, terminal_width - 2) // CHARS_PER_COLUMN
    return max(1, min(fit, column_count))


def column_widths(frame_width: int, count: int, expanded: bool) -> Tuple[int, ...]:
    count = max(1, count)
    available = max(0, frame_width - 2)  # borders
    share = available // count
    if not expanded:
        return (share,) * count
    if MIN_EXPANDED_WIDTH * count > available:
        # columns clip at the right edge
        return (MIN_EXPANDED_WIDTH,) * count
    return (max(MIN_EXPANDED_WIDTH, share),) * count


def column_name(label: str) -> str:
    """``"id (int)"`` -> ``"id"``."""
    return label.split(" (", 1)[0]


def render_header(state: NavigationState) -> str:
    return f"{MODE_TITLES[state.mode]} [{state.get_current_path()}]"


def render_status(state: NavigationState, status_message: str) -> str:
    return f"{MODE_LABELS[state.mode]} | {status_message} | {STATUS_HELP}"


def render_databases(state: NavigationState) -> ListBody:
    return ListBody(
        title="Databases (j/k to navigate, l/Enter to open)",
        items=tuple(f"{DATABASE_GLYPH} {name}" for name in state.databases),
        selected=state.database_cursor.copy().selected,
    )


def render_tables(state: NavigationState) -> ListBody:
    database = state.current_database or "None"
    return ListBody(
        title=f"Tables in '{database}' (h to go back, l/Enter to view data)",
        items=tuple(f"{TABLE_GLYPH} {name}" for name in state.tables),
        selected=state.table_cursor.copy().selected,
    )


def render_table_data(state: NavigationState, width: int) -> Union[TableBody, Placeholder]:
    if not state.table_columns or not state.table_rows:
        return Placeholder("Table Data", "No data available or table is empty")

    total = len(state.table_columns)
    start, end = state.get_visible_columns()
    visible = state.table_columns[start:end]
    expanded = state.expanded_columns
    table = state.current_table or "Unknown"

    if expanded:
        column_strip = f"Columns {start + 1}-{end} of {total}: " + " | ".join(visible)
        title = f"Data from '{table}' [EXPANDED {start + 1}-{end}/{total}] (←→ navigate, Space compress, h back)"
    else:
        column_strip = " | ".join(visible)
        title = f"Data from '{table}' (h to go back, Space to expand, showing first 100 rows)"

    budget = EXPANDED_CELL_BUDGET if expanded else NORMAL_CELL_BUDGET
    rows = tuple(
        tuple(truncate_cell(cell, budget) for cell in row[start:end])
        for row in state.table_rows
    )
    return TableBody(
        title=title,
        column_strip=column_strip,
        headers=tuple(column_name(label) for label in visible),
        rows=rows,
        widths=column_widths(width, len(visible), expanded),
        selected=state.data_cursor.copy().selected,
    )


def render_result(result: Optional[SqlResult], width: int) -> Union[Placeholder, ResultTable]:
    if result is None:
        return Placeholder("Results", "Enter SQL query above and press Enter to execute")
    if not result.columns:
        return Placeholder("Result", result.message)
    rows = tuple(
        tuple(truncate_cell(cell, RESULT_CELL_BUDGET) for cell in row)
        for row in result.rows
    )
    return ResultTable(
        title=f"Result - {result.message}",
        headers=tuple(result.columns),
        rows=rows,
        widths=column_widths(width, len(result.columns), expanded=False),
    )


def render_sql_editor(state: NavigationState, width: int) -> EditorBody:
    database = state.current_database or "none"
    if state.sql_history:
        history_info = f"History: {len(state.sql_history)} queries saved"
    else:
        history_info = "No SQL history yet"
    return EditorBody(
        title=f"SQL Editor - Database: {database} (Enter to execute, Esc to exit, Up/Down for history)",
        sql_input=state.sql_input,
        history_info=history_info,
        result=render_result(state.sql_result, width),
    )


def render_body(state: NavigationState, width: int) -> Body:
    if state.mode is ViewMode.DATABASES:
        return render_databases(state)
    if state.mode is ViewMode.TABLES:
        return render_tables(state)
    if state.mode is ViewMode.TABLE_DATA:
        return render_table_data(state, width)
    return render_sql_editor(state, width)


def render_frame(state: NavigationState, status_message: str, width: int = 80) -> Frame:
    return Frame(
        header=render_header(state),
        body=render_body(state, width),
        status=render_status(state, status_message),
    )
