"""Keeps the stored conversation record in step with the message list."""

import re
import time
from typing import Iterable, List, Optional, Sequence, Tuple
import structlog

from ..config.settings import DEFAULT_INSTRUCTIONS, Settings
from ..errors import ConversationNotFoundError
from ..state.conversation_store import Conversation, ConversationStore
from ..state.settings_store import ChatSettings, SettingsStore
from .messages import FileDataRef, Message, serialize_messages


logger = structlog.get_logger()

_LINE_BREAK = re.compile(r"\r?\n")


def get_first_valid_string(*values: Optional[str]) -> str:
    """Return the first value that is not None or blank."""
    for value in values:
        if value is not None and value.strip() != "":
            return value
    return ""


def derive_title(message: str, max_length: int) -> str:
    """Title from the first line of ``message``, at most ``max_length`` chars."""
    first_line = _LINE_BREAK.split(message.lstrip(), maxsplit=1)[0]
    return first_line[:max_length]


class ConversationSynchronizer:
    """
    Owns the live conversation binding.

    A non-empty message list always has a bound conversation record; an
    empty list never does. ``sync`` is called after every list mutation.
    """

    def __init__(
        self,
        store: ConversationStore,
        settings_store: SettingsStore,
        settings: Settings,
    ):
        self.store = store
        self.settings_store = settings_store
        self.settings = settings
        self.conversation: Optional[Conversation] = None
        self._last_serialized: Optional[str] = None
        self._last_issued_id = 0

    def _new_conversation_id(self) -> int:
        conversation_id = int(time.time() * 1000)
        # Two conversations started within the same millisecond
        if conversation_id <= self._last_issued_id:
            conversation_id = self._last_issued_id + 1
        self._last_issued_id = conversation_id
        return conversation_id

    def resolve_system_prompt(self, chat_settings: Optional[ChatSettings] = None) -> str:
        """System prompt for the next exchange."""
        return get_first_valid_string(
            self.conversation.system_prompt if self.conversation else None,
            chat_settings.instructions if chat_settings else None,
            self.settings.system_prompts.user,
            self.settings.system_prompts.default,
            DEFAULT_INSTRUCTIONS,
        )

    async def start_conversation(
        self,
        seed_message: str,
        attachments: Sequence[FileDataRef] = (),
        chat_settings: Optional[ChatSettings] = None,
        model_id: Optional[str] = None,
    ) -> Conversation:
        """Create, bind and persist a conversation before its first message."""
        conversation_id = self._new_conversation_id()
        instructions = get_first_valid_string(
            chat_settings.instructions if chat_settings else None,
            self.settings.system_prompts.user,
            self.settings.system_prompts.default,
            DEFAULT_INSTRUCTIONS,
        )
        conversation = Conversation(
            id=conversation_id,
            created_at=int(time.time() * 1000),
            title=derive_title(seed_message, self.settings.chat.max_title_length),
            model_id=model_id or self.settings.chat.model,
            system_prompt=instructions,
            group_id=chat_settings.id if chat_settings else None,
        )

        self.conversation = conversation
        self._last_serialized = conversation.serialized_messages
        await self.store.add_conversation(conversation)

        if chat_settings is not None:
            await self.settings_store.update_show_in_sidebar(chat_settings.id, 1)

        logger.info(
            "Conversation started",
            conversation_id=conversation.id,
            title=conversation.title,
            attachment_count=len(attachments),
        )
        return conversation

    async def sync(self, messages: Iterable[Message]) -> None:
        """Persist the list, or drop the binding when the list is empty."""
        snapshot = list(messages)

        if not snapshot:
            if self.conversation is not None:
                logger.debug("Conversation unbound", conversation_id=self.conversation.id)
            self.clear()
            return

        if self.conversation is None:
            return

        serialized = serialize_messages(snapshot)
        if serialized == self._last_serialized:
            return

        await self.store.update_conversation(self.conversation, snapshot)
        self._last_serialized = serialized

    async def load_conversation(
        self, conversation_id: int
    ) -> Tuple[Conversation, List[Message]]:
        """Bind a stored conversation and return it with its messages."""
        conversation = await self.store.get_conversation_by_id(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        messages = await self.store.get_messages(conversation)
        self.conversation = conversation
        self._last_serialized = conversation.serialized_messages
        logger.info(
            "Conversation loaded",
            conversation_id=conversation.id,
            message_count=len(messages),
        )
        return conversation, messages

    def clear(self) -> None:
        self.conversation = None
        self._last_serialized = None
