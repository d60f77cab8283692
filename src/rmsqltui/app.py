"""Textual applications: the database browser and the connection picker."""

import logging
from pathlib import Path
from typing import Optional

from textual.app import App

from rmsqllib.config import ConnectionConfig, ConnectionStore, cache_dir, create_root_connection
from rmsqllib.errors import ConfigError

from .controller import Controller
from .screens.browser_screen import BrowserScreen
from .screens.connection_screen import ROOT_CONNECTION_KEY, ConnectionScreen

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class TUIApp(App):
    """Main TUI application for browsing a MySQL server."""

    TITLE = "rmsql"
    SUB_TITLE = "MySQL browser"
    ENABLE_COMMAND_PALETTE = False

    CSS = """
    Screen {
        layout: vertical;
    }
    """

    def __init__(self, controller: Controller):
        super().__init__()
        self.controller = controller

    def on_mount(self) -> None:
        logger.info("TUI app initialized successfully")
        self.push_screen(BrowserScreen(self.controller))


class ConnectionPickerApp(App):
    """Let the user choose a saved connection; exits with it (or None)."""

    TITLE = "rmsql"
    SUB_TITLE = "Select a connection or create one with 'rmsql connections add'"
    ENABLE_COMMAND_PALETTE = False

    def __init__(self, store: ConnectionStore):
        super().__init__()
        self.store = store

    def on_mount(self) -> None:
        self.push_screen(ConnectionScreen(self.store))

    def on_connection_screen_chosen(self, message: ConnectionScreen.Chosen) -> None:
        conn_id = message.connection_id
        if conn_id == ROOT_CONNECTION_KEY:
            self.exit(create_root_connection())
            return

        selected = self.store.get(conn_id)
        if selected is None:
            return
        try:
            self.store.set_last_used(conn_id)
        except ConfigError as e:
            logger.warning("Could not record last used connection: %s", e)
        logger.info("Selected connection: %s", selected.name)
        self.exit(selected)

    def on_connection_screen_cancelled(self, message: ConnectionScreen.Cancelled) -> None:
        self.exit(None)


def configure_tui_logging(log_file: Optional[Path] = None) -> Path:
    """Send logs to a file; the terminal belongs to the UI."""
    log_file = log_file or cache_dir() / "rmsql.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG,
        format=LOG_FORMAT,
        handlers=[logging.FileHandler(log_file, mode="w")],
        force=True,
    )
    logging.getLogger("pymysql").setLevel(logging.WARNING)
    logger.info("Starting TUI, debug log at: %s", log_file)
    return log_file


def pick_connection(store: ConnectionStore) -> Optional[ConnectionConfig]:
    """Run the connection picker; None means the user quit."""
    return ConnectionPickerApp(store).run()


def run_tui(controller: Controller) -> int:
    """Run the browser until the user quits; returns the exit status."""
    app = TUIApp(controller)
    app.run()
    return app.return_code or 0
