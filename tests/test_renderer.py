from __future__ import annotations

import pytest

from rmsqltui.models.navigation_state import NavigationState, SqlResult, ViewMode
from rmsqltui.renderer import (
    EditorBody,
    ListBody,
    Placeholder,
    ResultTable,
    TableBody,
    column_name,
    column_widths,
    render_frame,
    truncate_cell,
    visible_column_budget,
)


def data_state(expanded=False) -> NavigationState:
    state = NavigationState()
    state.set_current_database("app")
    state.set_current_table("users")
    state.set_mode(ViewMode.TABLE_DATA)
    state.set_table_data(
        ["id (int)", "name (varchar(20))", "bio (text)"],
        [["1", "alice", "x" * 120], ["2", "bob", "short"]],
    )
    if expanded:
        state.toggle_expanded_columns()
        state.set_visible_columns(2)
    return state


def test_truncate_cell_short_values_untouched():
    assert truncate_cell("hello", 30) == "hello"
    assert truncate_cell("x" * 30, 30) == "x" * 30


def test_truncate_cell_adds_ellipsis_within_budget():
    out = truncate_cell("x" * 31, 30)
    assert out == "x" * 27 + "..."
    assert len(out) == 30


def test_truncate_cell_never_splits_a_code_point():
    text = "ü日本語" * 20
    out = truncate_cell(text, 50)
    assert out.endswith("...")
    assert len(out) == 50
    assert out[:-3] == text[:47]
    out.encode("utf-8")


@pytest.mark.parametrize(
    "width,count,expected",
    [(80, 10, 3), (80, 2, 2), (30, 5, 1), (10, 5, 1), (200, 4, 4)],
)
def test_visible_column_budget(width, count, expected):
    assert visible_column_budget(width, count) == expected


def test_column_widths_normal_split_equally():
    assert column_widths(62, 3, expanded=False) == (20, 20, 20)


def test_column_widths_expanded_minimum_twenty():
    assert column_widths(102, 2, expanded=True) == (50, 50)
    assert column_widths(42, 3, expanded=True) == (20, 20, 20)


def test_column_name_strips_type():
    assert column_name("name (varchar(20))") == "name"
    assert column_name("plain") == "plain"


def test_databases_frame():
    state = NavigationState()
    state.set_databases(["app", "logs"])
    frame = render_frame(state, "Databases loaded")
    assert frame.header == "RMSQL - Databases [/]"
    assert isinstance(frame.body, ListBody)
    assert frame.body.items == ("📁 app", "📁 logs")
    assert frame.body.selected == 0
    assert frame.status.startswith("[1] Databases | Databases loaded | ")


def test_tables_frame_shows_database_in_title():
    state = NavigationState()
    state.set_current_database("app")
    state.set_mode(ViewMode.TABLES)
    state.set_tables(["users"])
    frame = render_frame(state, "")
    assert frame.header == "RMSQL - Tables [app]"
    assert frame.body.items == ("📋 users",)
    assert "'app'" in frame.body.title


def test_table_data_placeholder_when_empty():
    state = NavigationState()
    state.set_current_database("app")
    state.set_current_table("empty")
    state.set_mode(ViewMode.TABLE_DATA)
    state.set_table_data(["id (int)"], [])
    frame = render_frame(state, "")
    assert isinstance(frame.body, Placeholder)


def test_table_data_normal_mode_truncates_at_thirty():
    frame = render_frame(data_state(), "", width=92)
    body = frame.body
    assert isinstance(body, TableBody)
    assert body.headers == ("id", "name", "bio")
    assert body.column_strip == "id (int) | name (varchar(20)) | bio (text)"
    assert body.rows[0][2] == "x" * 27 + "..."
    assert body.widths == (30, 30, 30)
    assert frame.header == "RMSQL - Table Data [app/users]"


def test_table_data_expanded_shows_window_only():
    state = data_state(expanded=True)
    state.scroll_right()
    body = render_frame(state, "", width=100).body
    assert body.headers == ("name", "bio")
    assert body.column_strip.startswith("Columns 2-3 of 3: ")
    assert body.rows[0] == ("alice", "x" * 97 + "...")
    assert "EXPANDED 2-3/3" in body.title


def test_renderer_does_not_mutate_state():
    state = data_state(expanded=True)
    before = (state.data_cursor.selected, state.horizontal_scroll, list(state.table_rows))
    render_frame(state, "status", width=40)
    assert (state.data_cursor.selected, state.horizontal_scroll, list(state.table_rows)) == before


def test_sql_editor_placeholder_and_message_results():
    state = NavigationState()
    state.set_mode(ViewMode.SQL_EDITOR)
    body = render_frame(state, "").body
    assert isinstance(body, EditorBody)
    assert isinstance(body.result, Placeholder)
    assert body.history_info == "No SQL history yet"
    assert "Database: none" in body.title

    state.set_sql_result(SqlResult(message="Query executed successfully. 3 rows affected."))
    state.set_sql_history(["UPDATE t SET a = 1"])
    body = render_frame(state, "").body
    assert body.result.text == "Query executed successfully. 3 rows affected."
    assert body.history_info == "History: 1 queries saved"


def test_sql_editor_result_table_truncates_at_fifty():
    state = NavigationState()
    state.set_mode(ViewMode.SQL_EDITOR)
    state.sql_input = "SELECT body FROM posts"
    state.set_sql_result(SqlResult(columns=["body"], rows=[["é" * 60]], message="ok"))
    body = render_frame(state, "", width=52).body
    assert body.sql_input == "SELECT body FROM posts"
    assert isinstance(body.result, ResultTable)
    assert body.result.rows[0][0] == "é" * 47 + "..."
    assert body.result.widths == (50,)
    assert body.result.title == "Result - ok"
