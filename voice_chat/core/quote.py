"""Quoting selected reply text into the next outgoing message."""

from typing import Optional

from ..config.settings import SNIPPET_MARKERS


def format_quote(selected_text: str) -> str:
    return (
        "Assistant wrote:\n"
        f"{SNIPPET_MARKERS['begin']}\n"
        f"{selected_text}\n"
        f"{SNIPPET_MARKERS['end']}\n"
    )


class InputBuffer:
    """The pending, not yet sent, user input."""

    def __init__(self):
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        self._text = text

    def paste_text(self, text: str) -> None:
        self._text += text

    def clear(self) -> None:
        self._text = ""


class SelectionQuoteHelper:
    """
    Tracks the transcript selection and stages it as a quoted snippet.

    Only the input buffer is written; sent messages are never touched.
    """

    def __init__(self, input_buffer: InputBuffer):
        self.input_buffer = input_buffer
        self.selection: Optional[str] = None

    @property
    def action_visible(self) -> bool:
        return self.selection is not None

    def on_selection_change(self, selected_text: Optional[str]) -> None:
        if selected_text is None or selected_text.strip() == "":
            self.selection = None
        else:
            self.selection = selected_text

    def quote_selection(self) -> Optional[str]:
        """Paste the quoted selection into the input buffer and return it."""
        if self.selection is None:
            return None
        quoted = format_quote(self.selection)
        self.input_buffer.paste_text(quoted)
        return quoted
