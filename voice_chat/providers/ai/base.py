"""Base interface for chat transports."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence

from ...core.messages import FileDataRef, Message
from ...state.settings_store import ChatSettings
from ...utils.cancellation import CancellationToken


FragmentHandler = Callable[[str, Sequence[FileDataRef], bool], Awaitable[None]]


@dataclass
class ExchangeContext:
    """Who the assistant is talking to, passed along with every exchange."""
    user_name: Optional[str] = None
    course: Optional[str] = None
    is_first_message: bool = True


def build_system_instruction(system_prompt: str, context: Optional[ExchangeContext]) -> str:
    """Extend the system prompt with the exchange context."""
    if context is None:
        return system_prompt

    parts = [system_prompt]
    if context.user_name:
        parts.append(f"The user's name is {context.user_name}.")
    if context.course:
        parts.append(f"The conversation is about the course: {context.course}.")
    if context.is_first_message and context.user_name:
        parts.append("Greet the user by name in your first reply.")
    return "\n\n".join(parts)


class ChatTransport(ABC):
    """
    Abstract base class for chat transports.

    ``stream_completion`` calls ``on_fragment(content, attachments, False)``
    zero or more times and then ``on_fragment("", [], True)`` exactly once.
    Failures the user should read are raised as ``ChatError``.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the transport."""
        pass

    @abstractmethod
    async def stream_completion(
        self,
        chat_settings: ChatSettings,
        messages: List[Message],
        on_fragment: FragmentHandler,
        context: Optional[ExchangeContext],
        cancellation: CancellationToken,
    ) -> str:
        """
        Stream a reply to ``messages``.

        Args:
            chat_settings: Effective chat settings (model, temperature)
            messages: System prompt message followed by the conversation
            on_fragment: Receives each fragment, then the terminal signal
            context: Exchange context for the system instruction
            cancellation: Checked between fragments

        Returns:
            The full reply text
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Release transport resources."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the transport."""
        pass
