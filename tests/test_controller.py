from __future__ import annotations

import random

import pytest

from rmsqllib.clients import QueryResult
from rmsqllib.errors import BackendError, PersistenceError
from rmsqllib.history import HistoryEntry
from rmsqltui.controller import HELP_TEXT, Controller
from rmsqltui.models.navigation_state import ViewMode


def press(ctl: Controller, *keys: str) -> None:
    for key in keys:
        ctl.handle_key(key)


def type_text(ctl: Controller, text: str) -> None:
    press(ctl, *text)


def test_start_loads_databases(controller, fake_adapter):
    assert controller.state.mode is ViewMode.DATABASES
    assert controller.state.databases == ["app", "logs"]
    assert controller.state.database_cursor.selected == 0
    assert fake_adapter.calls == [("list_databases",)]
    assert controller.status_message == "Databases loaded"


def test_start_opens_initial_database(fake_adapter, history_store):
    ctl = Controller(fake_adapter, history_store, "conn-1")
    ctl.start(initial_database="logs")
    assert ctl.state.mode is ViewMode.TABLES
    assert ctl.state.current_database == "logs"
    assert ctl.state.tables == []
    assert ctl.state.table_cursor.selected is None


def test_start_ignores_unknown_initial_database(fake_adapter, history_store):
    ctl = Controller(fake_adapter, history_store, "conn-1")
    ctl.start(initial_database="missing")
    assert ctl.state.mode is ViewMode.DATABASES
    assert ("list_tables", "missing") not in fake_adapter.calls


def test_drill_down_to_table_data(controller):
    press(controller, "enter", "enter")
    state = controller.state
    assert state.mode is ViewMode.TABLE_DATA
    assert state.current_database == "app"
    assert state.current_table == "users"
    assert state.table_columns == ["id (int)", "name (varchar)"]
    assert state.table_rows == [["1", "alice"], ["2", "bob"]]
    assert state.data_cursor.selected == 0
    assert controller.status_message == "Viewing table: users"


def test_j_moves_selection_before_drilling(controller):
    press(controller, "j", "l")
    assert controller.state.current_database == "logs"
    assert controller.state.mode is ViewMode.TABLES


def test_expand_and_scroll(controller):
    press(controller, "enter", "enter", " ")
    state = controller.state
    assert state.expanded_columns is True
    assert state.visible_columns == 1
    press(controller, "l", "l")
    assert state.horizontal_scroll == 1
    assert state.mode is ViewMode.TABLE_DATA
    press(controller, "h")
    assert state.horizontal_scroll == 0
    assert state.mode is ViewMode.TABLE_DATA
    assert controller.status_message.startswith("Columns 1-1 of 2")


def test_arrow_keys_scroll_when_expanded(controller):
    press(controller, "enter", "enter", " ", "right")
    assert controller.state.horizontal_scroll == 1
    press(controller, "left")
    assert controller.state.horizontal_scroll == 0
    assert controller.state.mode is ViewMode.TABLE_DATA


def test_h_navigates_back_when_not_expanded(controller):
    press(controller, "enter", "enter", "h")
    assert controller.state.mode is ViewMode.TABLES
    press(controller, "h")
    assert controller.state.mode is ViewMode.DATABASES


def test_space_outside_table_data_is_ignored(controller):
    press(controller, " ")
    assert controller.state.expanded_columns is False


def test_editor_history_navigation(controller, history_store):
    history_store.append(HistoryEntry(sql="SELECT 1", connection_id="conn-1", success=True))
    history_store.append(HistoryEntry(sql="SELECT 2", connection_id="conn-1", success=True))
    press(controller, "i")
    state = controller.state
    assert state.mode is ViewMode.SQL_EDITOR
    assert state.sql_history == ["SELECT 1", "SELECT 2"]

    press(controller, "up")
    assert state.sql_input == "SELECT 2"
    press(controller, "up")
    assert state.sql_input == "SELECT 1"
    press(controller, "down")
    assert state.sql_input == "SELECT 2"
    assert state.sql_history_index == 1


def test_editor_history_is_limited_to_recent_ten(controller, history_store):
    for i in range(15):
        history_store.append(HistoryEntry(sql=f"SELECT {i}", connection_id="conn-1", success=True))
    press(controller, "i")
    assert controller.state.sql_history == [f"SELECT {i}" for i in range(5, 15)]


def test_execute_appends_to_state_and_store(controller, history_store, fake_adapter):
    press(controller, "enter", "i")
    type_text(controller, "SELECT 1")
    press(controller, "enter")

    state = controller.state
    assert state.sql_result.columns == ["1"]
    assert state.sql_result.rows == [["1"]]
    assert state.sql_history[-1] == "SELECT 1"
    assert state.sql_input == ""
    assert ("execute", "SELECT 1", "app") in fake_adapter.calls

    entries = history_store.entries
    assert len(entries) == 1
    assert entries[0].success is True
    assert entries[0].database == "app"
    assert entries[0].connection_id == "conn-1"
    assert controller.status_message.startswith("Query executed successfully. 1 rows returned.")
    assert controller.status_message.endswith(" ms)")


def test_execution_time_hidden_when_disabled(controller, history_store):
    history_store.preferences.show_execution_time = False
    press(controller, "i")
    type_text(controller, "SELECT 1")
    press(controller, "enter")
    assert controller.status_message == "Query executed successfully. 1 rows returned."


def test_failed_query_recorded_as_failure(controller, fake_adapter, history_store):
    fake_adapter.results["SELEC 1"] = QueryResult(
        message="Error: (1064, 'You have an error in your SQL syntax')",
        error="(1064, 'You have an error in your SQL syntax')",
    )
    press(controller, "i")
    type_text(controller, "SELEC 1")
    press(controller, "enter")

    assert controller.state.sql_result.message.startswith("Error: ")
    assert controller.status_message.startswith("SQL Error: ")
    entry = history_store.entries[-1]
    assert entry.success is False
    assert "1064" in entry.error_message


def test_backend_error_during_execute_is_not_fatal(controller, fake_adapter, history_store):
    fake_adapter.results["SELECT sleep(1)"] = BackendError("Lost connection to MySQL server")
    press(controller, "i")
    type_text(controller, "SELECT sleep(1)")
    press(controller, "enter")
    assert controller.state.sql_result.message == "Error: Lost connection to MySQL server"
    assert history_store.entries[-1].success is False
    assert controller.should_quit is False


def test_enter_on_blank_input_executes_nothing(controller, fake_adapter):
    press(controller, "i", " ", " ", "enter")
    assert not [c for c in fake_adapter.calls if c[0] == "execute"]
    assert controller.state.sql_result is None


def test_q_is_typed_in_editor(controller):
    press(controller, "i")
    type_text(controller, "select q")
    assert controller.should_quit is False
    assert controller.state.sql_input == "select q"
    press(controller, "backspace")
    assert controller.state.sql_input == "select "


def test_q_quits_outside_editor(controller):
    press(controller, "q")
    assert controller.should_quit is True


def test_escape_from_editor_returns_to_deepest_view(controller):
    press(controller, "i", "escape")
    assert controller.state.mode is ViewMode.DATABASES

    press(controller, "enter", "i", "escape")
    assert controller.state.mode is ViewMode.TABLES

    press(controller, "enter", "i", "escape")
    assert controller.state.mode is ViewMode.TABLE_DATA
    assert controller.state.table_rows == [["1", "alice"], ["2", "bob"]]


def test_escape_in_tables_goes_to_databases(controller):
    press(controller, "enter", "escape")
    assert controller.state.mode is ViewMode.DATABASES
    assert controller.status_message == "Switched to databases view"


def test_switch_to_tables_without_database_is_ignored(controller, fake_adapter):
    calls_before = list(fake_adapter.calls)
    press(controller, "2")
    assert controller.state.mode is ViewMode.DATABASES
    assert fake_adapter.calls == calls_before


def test_switch_to_data_without_table_is_ignored(controller, fake_adapter):
    press(controller, "enter")
    calls_before = list(fake_adapter.calls)
    press(controller, "3")
    assert controller.state.mode is ViewMode.TABLES
    assert fake_adapter.calls == calls_before


def test_number_keys_switch_between_loaded_views(controller):
    press(controller, "enter", "enter", "1")
    assert controller.state.mode is ViewMode.DATABASES
    press(controller, "3")
    assert controller.state.mode is ViewMode.TABLE_DATA
    press(controller, "2")
    assert controller.state.mode is ViewMode.TABLES


def test_refresh_reloads_current_view(controller, fake_adapter):
    press(controller, "enter")
    fake_adapter.tables["app"] = ["users", "orders"]
    press(controller, "r")
    assert controller.state.tables == ["users", "orders"]
    assert fake_adapter.calls[-1] == ("list_tables", "app")


def test_refresh_failure_propagates(controller, fake_adapter):
    fake_adapter.databases.append("ghost")
    press(controller, "r", "G")
    with pytest.raises(BackendError):
        press(controller, "enter")


def test_help_sets_status_only(controller):
    press(controller, "?")
    assert controller.status_message == HELP_TEXT
    assert controller.state.mode is ViewMode.DATABASES


def test_tables_view_remembers_last_database(controller, history_store):
    press(controller, "j", "enter")
    assert history_store.get_last_database() == ("conn-1", "logs")
    assert "conn-1:app" in history_store.config.databases


def test_history_write_failure_is_reported_not_fatal(controller, history_store, monkeypatch):
    def broken(*args):
        raise PersistenceError("disk full")

    monkeypatch.setattr(history_store, "append", broken)
    press(controller, "i")
    type_text(controller, "SELECT 1")
    press(controller, "enter")
    assert controller.state.sql_result.columns == ["1"]
    assert "History not saved: disk full" in controller.status_message


def test_unknown_keys_are_ignored(controller):
    before = (controller.state.mode, controller.state.database_cursor.selected)
    press(controller, "z", "x", "backspace", "up")
    assert (controller.state.mode, controller.state.database_cursor.selected) == before


def test_invariants_hold_for_random_key_sequences(fake_adapter, history_store):
    fake_adapter.databases = ["app", "logs", "empty"]
    fake_adapter.tables["empty"] = []
    keys = ["j", "k", "g", "G", "h", "l", "enter", "escape", "left", "right",
            "up", "down", " ", "1", "2", "3", "r", "?", "i", "a", "backspace"]
    rng = random.Random(42)

    for _ in range(20):
        ctl = Controller(fake_adapter, history_store, "conn-1", terminal_width=lambda: 30)
        ctl.start()
        for _ in range(200):
            ctl.handle_key(rng.choice(keys))
            if ctl.should_quit:
                break
            state = ctl.state
            for items, cursor in (
                (state.databases, state.database_cursor),
                (state.tables, state.table_cursor),
                (state.table_rows, state.data_cursor),
            ):
                if not items:
                    assert cursor.selected is None
                else:
                    assert cursor.selected is None or 0 <= cursor.selected < len(items)
            if state.mode is ViewMode.TABLES:
                assert state.current_database is not None
            if state.mode is ViewMode.TABLE_DATA:
                assert state.current_table is not None
            if state.current_table is not None:
                assert state.current_database is not None
            for row in state.table_rows:
                assert len(row) == len(state.table_columns)
            assert state.visible_columns >= 1
            assert 0 <= state.horizontal_scroll <= max(0, len(state.table_columns) - state.visible_columns)
            if state.sql_history_index is not None:
                assert 0 <= state.sql_history_index < len(state.sql_history)
