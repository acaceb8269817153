"""Tests for the command line interface."""

import asyncio
import json
import logging
import tempfile
from unittest.mock import patch
import pytest
from click.testing import CliRunner

from mocks.providers import MockChatTransport
from voice_chat.cli.main import TranscriptPrinter, cli, handle_command
from voice_chat.config.settings import Settings, settings
from voice_chat.core.chat_controller import ChatController
from voice_chat.core.messages import Message, MessageType, Role
from voice_chat.state.conversation_store import Conversation, ConversationStore
from voice_chat.state.settings_store import SettingsStore


class TestCLI:
    """Test CLI commands with a temporary data directory."""

    def setup_method(self):
        self.runner = CliRunner()
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.data_dir_patch = patch.object(settings.storage, "data_dir", self.tmp_dir.name)
        self.file_log_patch = patch.object(settings.logging, "file_enabled", False)
        self.data_dir_patch.start()
        self.file_log_patch.start()

    def teardown_method(self):
        for handler in logging.getLogger().handlers[:]:
            logging.getLogger().removeHandler(handler)
        self.file_log_patch.stop()
        self.data_dir_patch.stop()
        self.tmp_dir.cleanup()

    def test_providers_lists_registered(self):
        result = self.runner.invoke(cli, ["providers"])

        assert result.exit_code == 0
        assert "gemini (selected)" in result.output
        assert "http" in result.output
        assert "elevenlabs" in result.output

    def test_conversations_empty(self):
        result = self.runner.invoke(cli, ["conversations"])

        assert result.exit_code == 0
        assert "No conversations found." in result.output

    def test_conversations_json(self):
        store = ConversationStore(self.tmp_dir.name)
        conversation = Conversation(
            id=1700000000000,
            created_at=1700000000000,
            title="Hi",
            model_id="gemini-1.5-flash",
            system_prompt="prompt",
        )
        asyncio.run(store.add_conversation(conversation))

        result = self.runner.invoke(cli, ["conversations", "--format", "json"])

        assert result.exit_code == 0
        records = json.loads(result.stdout)
        assert records[0]["title"] == "Hi"

    def test_mock_chat_session(self):
        result = self.runner.invoke(
            cli, ["chat", "--mock"], input="Hello there\n/quote some text\n/new\n/quit\n"
        )

        assert result.exit_code == 0, result.output
        assert "assistant> Hello! How can I help you today?" in result.stdout
        assert "Quote staged" in result.output
        assert "New conversation" in result.output
        assert "Goodbye" in result.output

        conversations = self.runner.invoke(cli, ["conversations"])
        assert "Title: Hello there" in conversations.output


class TestTranscriptPrinter:
    def test_prints_only_new_text(self, capsys):
        printer = TranscriptPrinter()
        printer(Message(id=2, role=Role.ASSISTANT, content="Hel"))
        printer(Message(id=2, role=Role.ASSISTANT, content="Hello"))
        printer(Message(id=1, role=Role.USER, content="ignored"))

        output = capsys.readouterr().out
        assert output == "assistant> Hello"

    def test_error_messages_printed_whole(self, capsys):
        printer = TranscriptPrinter()
        printer(Message(id=2, role=Role.ASSISTANT, content="Quota", message_type=MessageType.ERROR))

        assert "Quota" in capsys.readouterr().out


class TestHandleCommand:
    """Test REPL line handling against a mock-backed controller."""

    def make_controller(self, tmp_path):
        return ChatController(
            transport=MockChatTransport(fragments=["ok"]),
            settings=Settings(),
            conversation_store=ConversationStore(str(tmp_path)),
            settings_store=SettingsStore(str(tmp_path)),
        )

    @pytest.mark.asyncio
    async def test_busy_rejection_clears_input(self, tmp_path, capsys):
        controller = self.make_controller(tmp_path)
        controller.assembler.begin_exchange()

        assert await handle_command(controller, TranscriptPrinter(), "Hello") is True

        assert "A reply is still in progress" in capsys.readouterr().out
        assert controller.input_buffer.text == ""
        assert len(controller.messages) == 0

    @pytest.mark.asyncio
    async def test_blank_rejection_has_own_message(self, tmp_path, capsys):
        controller = self.make_controller(tmp_path)

        await handle_command(controller, TranscriptPrinter(), "   ")

        output = capsys.readouterr().out
        assert "Nothing to send" in output
        assert "still in progress" not in output
        assert controller.input_buffer.text == ""
