"""Data table widgets for the TUI."""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from rich.text import Text
from textual.reactive import reactive
from textual.widgets import DataTable


class FilterableDataTable(DataTable):
    """Data table with built-in filtering capability."""

    filter_text: reactive[str] = reactive("")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._columns: List[str] = []
        self._all_rows: List[Dict[str, Any]] = []
        self._filtered_rows: List[Dict[str, Any]] = []
        self.cursor_type = "row"

    def set_data(self, columns: List[str], rows: List[Dict[str, Any]]) -> None:
        """Set the data for the table; keys starting with ``_`` stay hidden."""
        self._columns = list(columns)
        self._all_rows = rows.copy()
        self.clear(columns=True)
        for col in columns:
            self.add_column(Text(col), key=col)
        self.apply_filter()

    def apply_filter(self) -> None:
        """Apply current filter to the data."""
        if not self.filter_text:
            self._filtered_rows = self._all_rows.copy()
        else:
            # filter_text arrives casefolded from FilterInput
            needle = self.filter_text.casefold()
            self._filtered_rows = [
                row for row in self._all_rows
                if any(needle in str(row.get(col, "")).casefold() for col in self._columns)
            ]

        self.clear(columns=False)
        for row in self._filtered_rows:
            self.add_row(*[Text(str(row.get(col, ""))) for col in self._columns])

    def set_filter(self, filter_text: str) -> None:
        """Set filter text and refresh display."""
        self.filter_text = filter_text
        self.apply_filter()

    def get_selected_row(self) -> Optional[Dict[str, Any]]:
        """Get the currently selected row data."""
        if not self._filtered_rows or self.cursor_row < 0:
            return None
        if self.cursor_row >= len(self._filtered_rows):
            return None
        return self._filtered_rows[self.cursor_row]


class GridTable(DataTable):
    """Read-only table driven entirely from outside.

    It never takes focus, so every key press reaches the screen's controller;
    the highlighted row is whatever the caller passes to ``show``.
    """

    can_focus = False

    def __init__(self, **kwargs):
        super().__init__(cursor_type="row", zebra_stripes=False, **kwargs)
        self._shown: Optional[Tuple[Any, ...]] = None

    def show(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        widths: Optional[Sequence[int]] = None,
        selected: Optional[int] = None,
    ) -> None:
        content = (tuple(headers), tuple(tuple(r) for r in rows), tuple(widths or ()))
        # Rebuild only when the content changed; cursor moves are cheap
        if content != self._shown:
            self.clear(columns=True)
            for i, header in enumerate(headers):
                width = max(1, widths[i]) if widths and i < len(widths) else None
                self.add_column(Text(header), width=width)
            for row in rows:
                self.add_row(*[Text(cell, no_wrap=True, overflow="ellipsis") for cell in row])
            self._shown = content

        self.show_cursor = selected is not None
        if selected is not None and selected < len(rows):
            self.move_cursor(row=selected)
