"""Connection picker screen: saved connections in a filterable table."""

import logging
from typing import Optional

from textual.binding import Binding
from textual.containers import Vertical
from textual.message import Message
from textual.screen import Screen
from textual.widgets import Footer, Header, Static

from rmsqllib.config import ConnectionStore, create_root_connection, is_running_as_root
from rmsqllib.errors import ConfigError

from ..widgets.data_table import FilterableDataTable
from ..widgets.filter_input import FilterInput

logger = logging.getLogger(__name__)

ROOT_CONNECTION_KEY = "__root__"
COLUMNS = ["", "NAME", "TARGET", "DATABASE", "SSL"]


class ConnectionScreen(Screen):
    """Lists the root option (under sudo) and every saved connection."""

    BINDINGS = [
        Binding("escape", "cancel", "Back", priority=True),
        Binding("enter", "choose", "Connect", priority=True),
        ("q", "quit", "Quit"),
        ("/", "focus_filter", "Filter"),
        ("d", "delete_connection", "Delete"),
    ]

    class Chosen(Message):
        """The user picked a connection (``ROOT_CONNECTION_KEY`` for root)."""

        def __init__(self, connection_id: str) -> None:
            super().__init__()
            self.connection_id = connection_id

    class Cancelled(Message):
        pass

    def __init__(self, store: ConnectionStore, **kwargs):
        super().__init__(**kwargs)
        self.store = store
        self.table: Optional[FilterableDataTable] = None
        self.filter_input: Optional[FilterInput] = None

    def compose(self):
        with Vertical():
            yield Header()
            yield Static("RMSQL - Connection Manager", id="screen-title", markup=False)
            yield FilterInput(id="filter-input")
            yield FilterableDataTable(id="connections")
            yield Footer()

    def on_mount(self) -> None:
        self.table = self.query_one("#connections", FilterableDataTable)
        self.filter_input = self.query_one("#filter-input", FilterInput)
        self.table.focus()
        self.load_connections()

    def load_connections(self) -> None:
        rows = []
        if is_running_as_root():
            root = create_root_connection()
            rows.append({
                "": "⚡",
                "NAME": "Root (Auto-detect)",
                "TARGET": root.display_target(),
                "DATABASE": "",
                "SSL": "yes",
                "_connection_id": ROOT_CONNECTION_KEY,
            })

        last_used = self.store.last_used
        for conn in self.store.list():
            rows.append({
                "": "★" if conn.id == last_used else "",
                "NAME": conn.name,
                "TARGET": conn.display_target(),
                "DATABASE": conn.default_database or "",
                "SSL": "yes" if conn.use_ssl else "no",
                "_connection_id": conn.id,
            })

        if self.table:
            self.table.set_data(COLUMNS, rows)
        logger.info("Loaded %d connections", len(rows))

    def on_filter_input_filter_changed(self, event: FilterInput.FilterChanged) -> None:
        if self.table:
            self.table.set_filter(event.needle)

    def _selected_id(self) -> Optional[str]:
        if not self.table:
            return None
        row = self.table.get_selected_row()
        return row["_connection_id"] if row else None

    def action_choose(self) -> None:
        conn_id = self._selected_id()
        if conn_id is not None:
            self.post_message(self.Chosen(conn_id))

    def action_cancel(self) -> None:
        # Esc inside the filter box only returns to the table
        if self.filter_input and self.filter_input.has_focus and self.table:
            self.table.focus()
            return
        self.post_message(self.Cancelled())

    def action_quit(self) -> None:
        self.post_message(self.Cancelled())

    def action_focus_filter(self) -> None:
        if self.filter_input:
            self.filter_input.focus()

    def action_delete_connection(self) -> None:
        conn_id = self._selected_id()
        if conn_id is None or conn_id == ROOT_CONNECTION_KEY:
            return
        try:
            self.store.remove(conn_id)
        except ConfigError as e:
            logger.error("Failed to delete connection: %s", e)
            self.app.bell()
            return
        logger.info("Deleted connection %s", conn_id)
        self.load_connections()
