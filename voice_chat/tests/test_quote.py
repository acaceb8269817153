"""Tests for the selection-quote helper."""

from voice_chat.core.quote import InputBuffer, SelectionQuoteHelper, format_quote


class TestSelectionQuoteHelper:
    """Test quoting selected reply text."""

    def setup_method(self):
        self.buffer = InputBuffer()
        self.helper = SelectionQuoteHelper(self.buffer)

    def test_format_quote(self):
        assert format_quote("x = 1") == (
            "Assistant wrote:\n----BEGIN-SNIPPET----\nx = 1\n----END-SNIPPET----\n"
        )

    def test_blank_selection_hides_action(self):
        self.helper.on_selection_change("some text")
        assert self.helper.action_visible is True

        self.helper.on_selection_change("   \n")
        assert self.helper.action_visible is False
        assert self.helper.quote_selection() is None
        assert self.buffer.text == ""

    def test_quote_appends_to_pending_input(self):
        self.buffer.set_text("Before. ")
        self.helper.on_selection_change("selected")

        quoted = self.helper.quote_selection()

        assert quoted == format_quote("selected")
        assert self.buffer.text == "Before. " + format_quote("selected")
