"""Tests for conversation creation, persistence and loading."""

import json
import pytest
from unittest.mock import AsyncMock, patch

from voice_chat.config.settings import DEFAULT_INSTRUCTIONS, Settings
from voice_chat.core.conversation_sync import (
    ConversationSynchronizer,
    derive_title,
    get_first_valid_string,
)
from voice_chat.core.messages import MessageList, Role
from voice_chat.errors import ConversationNotFoundError
from voice_chat.state.conversation_store import ConversationStore
from voice_chat.state.settings_store import ChatSettings, SettingsStore


class TestTitleDerivation:
    """Test conversation title rules."""

    def test_title_stops_at_first_line(self):
        assert derive_title("Hello\nworld", 50) == "Hello"

    def test_title_truncated_to_max_length(self):
        assert derive_title("x" * 80, 50) == "x" * 50

    def test_title_trims_leading_whitespace_and_crlf(self):
        assert derive_title("  \n  Hello\r\nworld", 50) == "Hello"

    def test_first_valid_string_skips_blank_values(self):
        assert get_first_valid_string(None, "  ", "", "chosen", "later") == "chosen"
        assert get_first_valid_string(None, " ") == ""


class TestConversationSynchronizer:
    """Test the conversation binding against real JSON stores."""

    @pytest.fixture
    def synchronizer(self, tmp_path):
        settings = Settings()
        settings.system_prompts.user = ""
        settings.system_prompts.default = "Global default prompt"
        store = ConversationStore(str(tmp_path))
        settings_store = SettingsStore(str(tmp_path))
        return ConversationSynchronizer(store, settings_store, settings)

    @pytest.mark.asyncio
    async def test_start_conversation_persists_before_messages(self, synchronizer):
        conversation = await synchronizer.start_conversation("Hi there\nsecond line")

        stored = await synchronizer.store.get_conversation_by_id(conversation.id)
        assert stored is not None
        assert stored.title == "Hi there"
        assert stored.serialized_messages == "[]"
        assert stored.system_prompt == "Global default prompt"
        assert synchronizer.conversation is conversation

    @pytest.mark.asyncio
    async def test_conversation_ids_strictly_increase(self, synchronizer):
        with patch("voice_chat.core.conversation_sync.time.time", return_value=1700000000.0):
            first = await synchronizer.start_conversation("one")
            second = await synchronizer.start_conversation("two")

        assert second.id > first.id

    @pytest.mark.asyncio
    async def test_settings_instructions_take_precedence(self, synchronizer):
        chat_settings = ChatSettings(id=7, name="Physics", instructions="Be a physics tutor")
        await synchronizer.settings_store.put(chat_settings)

        conversation = await synchronizer.start_conversation(
            "Hi", chat_settings=chat_settings
        )

        assert conversation.system_prompt == "Be a physics tutor"
        assert conversation.group_id == 7
        stored_settings = await synchronizer.settings_store.get(7)
        assert stored_settings.show_in_sidebar == 1

    @pytest.mark.asyncio
    async def test_last_resort_instructions(self, synchronizer):
        synchronizer.settings.system_prompts.default = "   "
        conversation = await synchronizer.start_conversation("Hi")
        assert conversation.system_prompt == DEFAULT_INSTRUCTIONS

    @pytest.mark.asyncio
    async def test_sync_writes_messages(self, synchronizer, tmp_path):
        conversation = await synchronizer.start_conversation("Hi")
        messages = MessageList()
        messages.append(Role.USER, "Hi")
        messages.append(Role.ASSISTANT, "Hello")

        await synchronizer.sync(messages)

        path = tmp_path / "conversations" / f"{conversation.id}.json"
        data = json.loads(path.read_text())
        stored = json.loads(data["serialized_messages"])
        assert [m["content"] for m in stored] == ["Hi", "Hello"]

    @pytest.mark.asyncio
    async def test_sync_skips_unchanged_list(self, synchronizer):
        await synchronizer.start_conversation("Hi")
        messages = MessageList()
        messages.append(Role.USER, "Hi")
        synchronizer.store.update_conversation = AsyncMock(
            wraps=synchronizer.store.update_conversation
        )

        await synchronizer.sync(messages)
        await synchronizer.sync(messages)

        assert synchronizer.store.update_conversation.await_count == 1

    @pytest.mark.asyncio
    async def test_sync_empty_list_clears_binding(self, synchronizer):
        await synchronizer.start_conversation("Hi")
        await synchronizer.sync(MessageList())
        assert synchronizer.conversation is None

    @pytest.mark.asyncio
    async def test_load_conversation_round_trip(self, synchronizer):
        conversation = await synchronizer.start_conversation("Hi")
        messages = MessageList()
        messages.append(Role.USER, "Hi")
        await synchronizer.sync(messages)
        synchronizer.clear()

        loaded, loaded_messages = await synchronizer.load_conversation(conversation.id)

        assert loaded.id == conversation.id
        assert [m.content for m in loaded_messages] == ["Hi"]
        assert synchronizer.conversation.id == conversation.id

    @pytest.mark.asyncio
    async def test_load_missing_conversation_raises(self, synchronizer):
        with pytest.raises(ConversationNotFoundError) as exc_info:
            await synchronizer.load_conversation(12345)
        assert exc_info.value.conversation_id == 12345
        assert synchronizer.conversation is None

    @pytest.mark.asyncio
    async def test_resolve_system_prompt_prefers_conversation(self, synchronizer):
        await synchronizer.start_conversation("Hi")
        synchronizer.conversation.system_prompt = "Conversation prompt"
        chat_settings = ChatSettings(id=1, name="x", instructions="Settings prompt")

        assert synchronizer.resolve_system_prompt(chat_settings) == "Conversation prompt"
