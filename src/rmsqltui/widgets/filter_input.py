"""Filter box for the connection picker."""

from textual.message import Message
from textual.widgets import Input


class FilterInput(Input):
    """One-line filter; posts the normalised needle whenever it changes."""

    class FilterChanged(Message):
        def __init__(self, needle: str) -> None:
            super().__init__()
            self.needle = needle

    def __init__(self, placeholder: str = "Filter by name or host...", **kwargs):
        super().__init__(placeholder=placeholder, **kwargs)
        self._needle = ""

    def on_input_changed(self, event: Input.Changed) -> None:
        event.stop()
        needle = event.value.strip().casefold()
        # whitespace-only edits do not change the match set
        if needle != self._needle:
            self._needle = needle
            self.post_message(self.FilterChanged(needle))
