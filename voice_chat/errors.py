"""Exception types shared across the chat, audio and storage layers."""

from typing import Optional


class VoiceChatError(Exception):
    """Base class for voice chat client failures."""


class ChatError(VoiceChatError):
    """Classified client error reported by a chat transport.

    The ``reason`` is human readable and is shown to the user as an
    error message in the transcript.
    """

    def __init__(self, reason: str, code: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.code = code


class MediaAccessError(VoiceChatError):
    """The microphone could not be opened."""

    def __init__(self, message: str, unsupported: bool = False):
        super().__init__(message)
        self.unsupported = unsupported


class TranscriptionError(VoiceChatError):
    """The transcription service call failed."""


class ConversationNotFoundError(VoiceChatError):
    """No stored conversation matches the requested id."""

    def __init__(self, conversation_id: int):
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id
