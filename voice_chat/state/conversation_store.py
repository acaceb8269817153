"""Conversation records and their JSON file persistence."""

import asyncio
import os
import json
import tempfile
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Optional, List, Dict, Any, Sequence
import structlog

from ..core.messages import Message, serialize_messages, deserialize_messages


logger = structlog.get_logger()


@dataclass
class Conversation:
    """A persisted conversation. The title is fixed at creation."""

    id: int
    created_at: int  # epoch milliseconds
    title: str
    model_id: str
    system_prompt: str
    group_id: Optional[int] = None
    serialized_messages: str = "[]"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Conversation":
        return cls(
            id=data["id"],
            created_at=data["created_at"],
            title=data["title"],
            model_id=data["model_id"],
            system_prompt=data.get("system_prompt", ""),
            group_id=data.get("group_id"),
            serialized_messages=data.get("serialized_messages", "[]"),
        )


class ConversationStore:
    """Stores one JSON document per conversation under ``base_path``."""

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or "~/.voice-chat").expanduser()
        self.conversations_dir = self.base_path / "conversations"
        self.conversations_dir.mkdir(parents=True, exist_ok=True)

    def _get_conversation_path(self, conversation_id: int) -> Path:
        return self.conversations_dir / f"{conversation_id}.json"

    def _atomic_write(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Atomically write data to file."""
        file_path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temporary file first
        with tempfile.NamedTemporaryFile(
            mode="w", dir=file_path.parent, delete=False, suffix=".tmp"
        ) as tmp_file:
            json.dump(data, tmp_file, indent=2, ensure_ascii=False)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            tmp_path = tmp_file.name

        os.replace(tmp_path, file_path)

    def _read(self, conversation_id: int) -> Optional[Conversation]:
        path = self._get_conversation_path(conversation_id)
        if not path.exists():
            return None
        with open(path, "r") as f:
            return Conversation.from_dict(json.load(f))

    def _read_all(self) -> List[Conversation]:
        conversations = []
        for path in self.conversations_dir.glob("*.json"):
            try:
                with open(path, "r") as f:
                    conversations.append(Conversation.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError) as e:
                logger.error(
                    "Failed to load conversation", file=path.name, error=str(e)
                )
        return conversations

    async def add_conversation(self, conversation: Conversation) -> None:
        """Persist a new conversation record."""
        await asyncio.to_thread(
            self._atomic_write,
            self._get_conversation_path(conversation.id),
            conversation.to_dict(),
        )
        logger.info(
            "Conversation added",
            conversation_id=conversation.id,
            title=conversation.title,
            group_id=conversation.group_id,
        )

    async def update_conversation(
        self, conversation: Conversation, messages: Sequence[Message]
    ) -> None:
        """Store ``messages`` as the conversation's serialized message list."""
        conversation.serialized_messages = serialize_messages(messages)
        try:
            await asyncio.to_thread(
                self._atomic_write,
                self._get_conversation_path(conversation.id),
                conversation.to_dict(),
            )
        except OSError as e:
            logger.error(
                "Failed to update conversation",
                conversation_id=conversation.id,
                error=str(e),
            )
            raise

        logger.debug(
            "Conversation updated",
            conversation_id=conversation.id,
            message_count=len(messages),
        )

    async def get_conversation_by_id(self, conversation_id: int) -> Optional[Conversation]:
        return await asyncio.to_thread(self._read, conversation_id)

    async def get_messages(self, conversation: Conversation) -> List[Message]:
        return deserialize_messages(conversation.serialized_messages)

    async def list_conversations(self, group_id: Optional[int] = None) -> List[Conversation]:
        """List stored conversations, newest first."""
        conversations = await asyncio.to_thread(self._read_all)
        if group_id is not None:
            conversations = [c for c in conversations if c.group_id == group_id]
        conversations.sort(key=lambda c: c.created_at, reverse=True)
        return conversations
