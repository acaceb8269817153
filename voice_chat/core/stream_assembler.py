"""
Folds streamed reply fragments into the trailing assistant message.

The chat transport calls ``handle_fragment`` zero or more times with
``is_terminal=False`` and then once with ``is_terminal=True``. The
assembler owns the per-exchange stream flags and makes the terminal
bookkeeping run exactly once, including on cancellation and failure.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence
import structlog

from .messages import FileDataRef, Message, MessageList, MessageType, Role


logger = structlog.get_logger()


ChangeObserver = Callable[[MessageList], Awaitable[None]]
CompletionListener = Callable[[Message], None]


@dataclass
class StreamState:
    """Flags for the exchange in flight."""

    is_first_message: bool = True
    is_stream_ended: bool = False
    is_response_complete: bool = False
    last_completed_message_id: Optional[int] = None
    loading: bool = False
    exchange_in_progress: bool = False


class StreamAssembler:
    """Applies fragments from one exchange at a time to a MessageList."""

    def __init__(
        self,
        messages: MessageList,
        on_change: Optional[ChangeObserver] = None,
        state: Optional[StreamState] = None,
    ):
        self.messages = messages
        self.state = state or StreamState()
        self._on_change = on_change
        self._completion_listeners: List[CompletionListener] = []
        # Fragments that arrived with an empty message list
        self.anomaly_count = 0

    def add_completion_listener(self, listener: CompletionListener) -> None:
        """Called with the completed assistant message when a stream ends."""
        self._completion_listeners.append(listener)

    def begin_exchange(self) -> None:
        if self.state.exchange_in_progress:
            raise RuntimeError("An exchange is already in progress")

        self.state.is_stream_ended = False
        self.state.is_response_complete = False
        self.state.loading = True
        self.state.exchange_in_progress = True

    async def finish_exchange(self) -> None:
        """Close the exchange whether it ended, failed or was cancelled."""
        if not self.state.is_stream_ended:
            await self.handle_fragment("", (), True)

        self.state.loading = False
        self.state.is_first_message = False
        self.state.exchange_in_progress = False

    def reset(self) -> None:
        """Forget completion state, as on a new or freshly opened conversation."""
        self.state.last_completed_message_id = None
        self.state.is_response_complete = False
        self.state.loading = False

    async def handle_fragment(
        self,
        content: str,
        attachments: Sequence[FileDataRef] = (),
        is_terminal: bool = False,
    ) -> None:
        if is_terminal:
            self._end_stream()
            return

        trailing = self.messages.last

        if trailing is None:
            # Should be unreachable once an exchange has started
            self.anomaly_count += 1
            logger.error(
                "Fragment received with an empty message list",
                anomaly_count=self.anomaly_count,
            )
            self.messages.append(
                Role.ASSISTANT, content, attachments=attachments, is_newly_streamed=True
            )
        elif trailing.role == Role.USER:
            self.messages.append(
                Role.ASSISTANT, content, attachments=attachments, is_newly_streamed=True
            )
        elif trailing.role == Role.ASSISTANT:
            self.messages.append_to_last(content)
        else:
            logger.error(
                "Unexpected trailing message for fragment",
                role=trailing.role.value,
                message_id=trailing.id,
            )
            return

        if self._on_change is not None:
            await self._on_change(self.messages)

    def _end_stream(self) -> None:
        if self.state.is_stream_ended:
            return

        self.state.is_stream_ended = True
        self.state.is_response_complete = True
        self.state.loading = False

        trailing = self.messages.last
        if (
            trailing is not None
            and trailing.role == Role.ASSISTANT
            and trailing.message_type == MessageType.NORMAL
        ):
            self.state.last_completed_message_id = trailing.id
            logger.info(
                "Response complete",
                message_id=trailing.id,
                length=len(trailing.content),
            )
            for listener in self._completion_listeners:
                try:
                    listener(trailing)
                except Exception as e:
                    logger.error("Completion listener failed", error=str(e))
        else:
            logger.info("Stream ended without an assistant reply")
