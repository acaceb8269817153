"""Chat message model and the append-mostly message list."""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class MessageType(str, Enum):
    NORMAL = "normal"
    ERROR = "error"


@dataclass(frozen=True)
class FileDataRef:
    """Reference to a file attached to a message. Carried through untouched."""

    id: int
    name: str
    mime_type: str = "application/octet-stream"
    data_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mime_type": self.mime_type,
            "data_url": self.data_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileDataRef":
        return cls(
            id=data["id"],
            name=data["name"],
            mime_type=data.get("mime_type", "application/octet-stream"),
            data_url=data.get("data_url", ""),
        )


@dataclass(frozen=True)
class Message:
    """A single chat message. Instances are never mutated in place."""

    id: int
    role: Role
    content: str
    message_type: MessageType = MessageType.NORMAL
    attachments: tuple = field(default_factory=tuple)
    is_newly_streamed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "message_type": self.message_type.value,
            "content": self.content,
            "attachments": [ref.to_dict() for ref in self.attachments],
            "is_newly_streamed": self.is_newly_streamed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        return cls(
            id=data["id"],
            role=Role(data["role"]),
            content=data.get("content", ""),
            message_type=MessageType(data.get("message_type", MessageType.NORMAL.value)),
            attachments=tuple(
                FileDataRef.from_dict(ref) for ref in data.get("attachments", [])
            ),
            is_newly_streamed=data.get("is_newly_streamed", False),
        )


def serialize_messages(messages: Iterable[Message]) -> str:
    """Encode messages as the JSON array stored on a conversation record."""
    return json.dumps([message.to_dict() for message in messages], ensure_ascii=False)


def deserialize_messages(payload: str) -> List[Message]:
    if not payload:
        return []
    return [Message.from_dict(item) for item in json.loads(payload)]


class MessageList:
    """
    Ordered, append-mostly sequence of messages.

    The only mutations are ``append`` (new trailing message) and
    ``update_last`` (replace the trailing message); earlier messages are
    never touched. ``clear`` empties the list wholesale for a new
    conversation.
    """

    def __init__(self, messages: Optional[Sequence[Message]] = None):
        self._messages: List[Message] = list(messages or [])

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __getitem__(self, index):
        return self._messages[index]

    def __bool__(self) -> bool:
        return bool(self._messages)

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def snapshot(self) -> List[Message]:
        return list(self._messages)

    def next_id(self) -> int:
        return len(self._messages) + 1

    def append(
        self,
        role: Role,
        content: str,
        message_type: MessageType = MessageType.NORMAL,
        attachments: Iterable[FileDataRef] = (),
        is_newly_streamed: bool = False,
    ) -> Message:
        """Append a new trailing message and return it."""
        message = Message(
            id=self.next_id(),
            role=role,
            content=content,
            message_type=message_type,
            attachments=tuple(attachments),
            is_newly_streamed=is_newly_streamed,
        )
        self._messages.append(message)
        return message

    def update_last(self, transform: Callable[[Message], Message]) -> Optional[Message]:
        """
        Replace the trailing message with ``transform(trailing)``.

        Returns the new trailing message, or None when the list is empty.
        The id of the trailing message is preserved.
        """
        if not self._messages:
            return None
        updated = transform(self._messages[-1])
        if updated.id != self._messages[-1].id:
            updated = replace(updated, id=self._messages[-1].id)
        self._messages[-1] = updated
        return updated

    def append_to_last(self, content: str) -> Optional[Message]:
        """Concatenate ``content`` onto the trailing message's content."""
        return self.update_last(lambda last: replace(last, content=last.content + content))

    def replace_all(self, messages: Sequence[Message]) -> None:
        """Load a stored conversation's messages."""
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages.clear()
