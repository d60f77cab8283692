"""Browser screen: header, one body view per mode, status bar."""

import logging
from typing import Optional

from rich.markup import escape
from textual import events
from textual.containers import Vertical
from textual.screen import Screen
from textual.widgets import ContentSwitcher, Static

from rmsqllib.errors import BackendError, format_error_message

from ..controller import NAMED_KEYS, Controller
from ..renderer import (
    EditorBody,
    Frame,
    ListBody,
    Placeholder,
    TableBody,
    render_frame,
)
from ..widgets.data_table import GridTable

logger = logging.getLogger(__name__)


def translate_key(event: events.Key) -> Optional[str]:
    """Map a Textual key event onto the controller's key vocabulary."""
    if event.key in NAMED_KEYS:
        return event.key
    if event.character and len(event.character) == 1 and event.character.isprintable():
        return event.character
    return None


class BrowserScreen(Screen):
    """Draws whatever the controller's state says; owns no state of its own."""

    DEFAULT_CSS = """
    BrowserScreen #header, BrowserScreen #status {
        height: 3;
        border: round $accent;
    }
    BrowserScreen #status {
        background: $panel;
    }
    BrowserScreen #body {
        height: 1fr;
    }
    BrowserScreen #list-view, BrowserScreen #data-view,
    BrowserScreen #placeholder-view, BrowserScreen #editor-view {
        border: round $primary;
        height: 1fr;
    }
    BrowserScreen #column-strip, BrowserScreen #history-info {
        height: 3;
        border: round $secondary;
    }
    BrowserScreen #sql-input {
        height: 5;
        border: round $success;
    }
    BrowserScreen #result-switcher {
        height: 1fr;
    }
    """

    def __init__(self, controller: Controller, **kwargs):
        super().__init__(**kwargs)
        self.controller = controller

    def compose(self):
        yield Static(id="header", markup=False)
        with ContentSwitcher(initial="list-view", id="body"):
            with Vertical(id="list-view"):
                yield GridTable(id="list-grid", show_header=False)
            with Vertical(id="data-view"):
                yield Static(id="column-strip", markup=False)
                yield GridTable(id="data-grid")
            yield Static(id="placeholder-view", markup=False)
            with Vertical(id="editor-view"):
                yield Static(id="sql-input", markup=False)
                yield Static(id="history-info", markup=False)
                with ContentSwitcher(initial="result-message", id="result-switcher"):
                    yield Static(id="result-message", markup=False)
                    yield GridTable(id="result-grid")
        yield Static(id="status", markup=False)

    def on_mount(self) -> None:
        self.controller.terminal_width = lambda: self.size.width
        self.refresh_view()

    def on_resize(self, event: events.Resize) -> None:
        if self.is_mounted:
            self.refresh_view()

    def on_key(self, event: events.Key) -> None:
        key = translate_key(event)
        if key is None:
            return
        event.stop()
        event.prevent_default()

        try:
            self.controller.handle_key(key)
        except BackendError as e:
            logger.error("Backend failure while handling %r: %s", key, e, exc_info=True)
            self.app.exit(return_code=2, message=format_error_message("refresh view", e))
            return

        if self.controller.should_quit:
            self.app.exit()
            return
        self.refresh_view()

    def refresh_view(self) -> None:
        frame = render_frame(self.controller.state, self.controller.status_message, self.size.width or 80)
        self.query_one("#header", Static).update(frame.header)
        self.query_one("#status", Static).update(frame.status)
        self._show_body(frame)

    def _show_body(self, frame: Frame) -> None:
        body = frame.body
        switcher = self.query_one("#body", ContentSwitcher)

        if isinstance(body, ListBody):
            switcher.current = "list-view"
            self.query_one("#list-view").border_title = escape(body.title)
            grid = self.query_one("#list-grid", GridTable)
            grid.show(["Name"], [(item,) for item in body.items], selected=body.selected)

        elif isinstance(body, TableBody):
            switcher.current = "data-view"
            self.query_one("#data-view").border_title = escape(body.title)
            self.query_one("#column-strip", Static).update(body.column_strip)
            grid = self.query_one("#data-grid", GridTable)
            grid.show(body.headers, body.rows, body.widths, body.selected)

        elif isinstance(body, Placeholder):
            switcher.current = "placeholder-view"
            placeholder = self.query_one("#placeholder-view", Static)
            placeholder.border_title = escape(body.title)
            placeholder.update(body.text)

        elif isinstance(body, EditorBody):
            switcher.current = "editor-view"
            self.query_one("#editor-view").border_title = escape(body.title)
            self.query_one("#sql-input", Static).update(body.sql_input)
            self.query_one("#history-info", Static).update(body.history_info)
            self._show_result(body)

    def _show_result(self, body: EditorBody) -> None:
        result = body.result
        switcher = self.query_one("#result-switcher", ContentSwitcher)
        if isinstance(result, Placeholder):
            switcher.current = "result-message"
            message = self.query_one("#result-message", Static)
            message.border_title = escape(result.title)
            message.update(result.text)
        else:
            switcher.current = "result-grid"
            grid = self.query_one("#result-grid", GridTable)
            grid.border_title = escape(result.title)
            grid.show(result.headers, result.rows, result.widths)
