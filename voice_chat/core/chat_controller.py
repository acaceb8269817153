"""
Chat controller that orchestrates one conversation view.

Typed input and transcribed speech both enter through
``send_user_message``. The controller makes sure a conversation record
exists, appends the user message, runs one streamed exchange against the
chat transport and lets the stream assembler and synchronizer keep the
transcript and its stored copy in step.
"""

import asyncio
import re
from typing import Callable, List, Optional, Sequence, Set
import structlog

from ..config.settings import Settings
from ..errors import ChatError, ConversationNotFoundError
from ..providers.ai.base import ChatTransport, ExchangeContext
from ..providers.stt.base import MicrophoneDevice, TranscriptionClient
from ..providers.tts.base import TTSProvider
from ..state.conversation_store import ConversationStore
from ..state.settings_store import ChatSettings, SettingsStore
from ..utils.cancellation import CancellationToken
from .audio_pipeline import AudioCapturePipeline
from .conversation_sync import ConversationSynchronizer
from .messages import FileDataRef, Message, MessageList, MessageType, Role
from .notifications import NotificationService
from .quote import InputBuffer, SelectionQuoteHelper
from .read_aloud import ReadAloudPlayer
from .stream_assembler import StreamAssembler


logger = structlog.get_logger()

VIRTUAL_ASSISTANT_PREFIX = "Asistente Virtual"
UNEXPECTED_ERROR_MESSAGE = "Something went wrong. Please try again."

_VIRTUAL_ASSISTANT = re.compile(r"^\s*" + VIRTUAL_ASSISTANT_PREFIX + r"\s*")


def clean_course_name(course: Optional[str]) -> str:
    """Strip the virtual assistant prefix from a course name."""
    course = course or ""
    if course.lstrip().startswith(VIRTUAL_ASSISTANT_PREFIX):
        return _VIRTUAL_ASSISTANT.sub("", course, count=1)
    return course


class ChatController:
    """Owns the message list and runs exchanges one at a time."""

    def __init__(
        self,
        transport: ChatTransport,
        settings: Settings,
        conversation_store: ConversationStore,
        settings_store: SettingsStore,
        notifications: Optional[NotificationService] = None,
        tts: Optional[TTSProvider] = None,
        user_name: Optional[str] = None,
        course: Optional[str] = None,
    ):
        self.transport = transport
        self.settings = settings
        self.settings_store = settings_store
        self.notifications = notifications or NotificationService()
        self.user_name = user_name or settings.chat.user_name or None
        self.course = course if course is not None else settings.chat.course

        self.messages = MessageList()
        self.synchronizer = ConversationSynchronizer(
            conversation_store, settings_store, settings
        )
        self.assembler = StreamAssembler(self.messages, on_change=self._on_messages_changed)
        self.assembler.add_completion_listener(self._on_response_complete)

        self.input_buffer = InputBuffer()
        self.quote_helper = SelectionQuoteHelper(self.input_buffer)
        self.read_aloud = ReadAloudPlayer(tts, settings.speech) if tts else None
        self.audio_pipeline: Optional[AudioCapturePipeline] = None

        self.chat_settings: Optional[ChatSettings] = None
        self.bound_group_id: Optional[int] = None
        self._unsubscribe = settings_store.subscribe(self._on_settings_changed)

        self._cancellation: Optional[CancellationToken] = None
        self._exchange_idle = asyncio.Event()
        self._exchange_idle.set()
        self._initial_greeting_sent = False
        self._playback_tasks: Set[asyncio.Task] = set()
        self._message_listeners: List[Callable[[Message], None]] = []

    def add_message_listener(self, listener: Callable[[Message], None]) -> None:
        """Called with the trailing message after every streamed change."""
        self._message_listeners.append(listener)

    async def _on_messages_changed(self, messages: MessageList) -> None:
        await self.synchronizer.sync(messages)
        trailing = messages.last
        if trailing is None:
            return
        for listener in self._message_listeners:
            try:
                listener(trailing)
            except Exception as e:
                logger.error("Message listener failed", error=str(e))

    @property
    def state(self):
        return self.assembler.state

    @property
    def conversation(self):
        return self.synchronizer.conversation

    @property
    def clean_course(self) -> str:
        return clean_course_name(self.course)

    def effective_chat_settings(self) -> ChatSettings:
        if self.chat_settings is not None:
            return self.chat_settings
        return ChatSettings(
            id=0,
            name="default",
            author="system",
            model=self.settings.chat.model,
        )

    async def bind_settings(self, group_id: Optional[int]) -> Optional[ChatSettings]:
        """Bind the chat to a settings group, or unbind it with None."""
        self.bound_group_id = group_id
        if group_id is None:
            self.chat_settings = None
            return None

        self.chat_settings = await self.settings_store.get(group_id)
        if self.chat_settings is None:
            logger.warning("Chat settings not found", group_id=group_id)
        return self.chat_settings

    async def _on_settings_changed(self, group_id: Optional[int]) -> None:
        if self.bound_group_id is None:
            return
        if group_id is None or group_id == self.bound_group_id:
            self.chat_settings = await self.settings_store.get(self.bound_group_id)
            logger.debug("Chat settings refreshed", group_id=self.bound_group_id)

    def attach_audio(
        self,
        microphone: MicrophoneDevice,
        transcriber: TranscriptionClient,
    ) -> AudioCapturePipeline:
        """Create the audio pipeline that feeds transcripts into this chat."""
        self.audio_pipeline = AudioCapturePipeline(
            microphone=microphone,
            transcriber=transcriber,
            settings=self.settings,
            get_chat_settings=lambda: self.chat_settings,
            on_transcript=self.send_user_message,
            notifications=self.notifications,
        )
        return self.audio_pipeline

    async def send_user_message(
        self,
        text: str,
        attachments: Sequence[FileDataRef] = (),
    ) -> bool:
        """
        Append a user message and stream the assistant's reply.

        Returns False when the message was rejected because an exchange is
        still running or the text is blank.
        """
        if self.state.exchange_in_progress:
            logger.warning("Exchange in progress, message rejected", length=len(text))
            return False
        if not text.strip() and not attachments:
            return False

        # Claimed before the first await so overlapping sends are rejected
        token = CancellationToken()
        self._cancellation = token
        self.assembler.begin_exchange()
        self._exchange_idle.clear()

        try:
            if self.synchronizer.conversation is None:
                await self.synchronizer.start_conversation(
                    text,
                    attachments,
                    chat_settings=self.chat_settings,
                    model_id=self.effective_chat_settings().model,
                )

            self.messages.append(Role.USER, text, attachments=attachments)
            await self._on_messages_changed(self.messages)
            self.input_buffer.clear()

            await self._run_exchange(token)
        finally:
            await self.assembler.finish_exchange()
            self._cancellation = None
            self._exchange_idle.set()
        return True

    async def send_input(self) -> bool:
        """Send whatever is staged in the input buffer."""
        return await self.send_user_message(self.input_buffer.text)

    async def send_initial_greeting(self) -> bool:
        """Greet once on behalf of the user when opened from a course."""
        if self._initial_greeting_sent:
            return False

        course = self.course or ""
        if not course.strip() or course.lstrip().startswith(VIRTUAL_ASSISTANT_PREFIX):
            return False

        self._initial_greeting_sent = True
        logger.info("Sending initial greeting", course=course)
        return await self.send_user_message(self.settings.chat.initial_greeting)

    def _outgoing_messages(self) -> List[Message]:
        system_prompt = self.synchronizer.resolve_system_prompt(self.chat_settings)
        history = [m for m in self.messages if m.message_type != MessageType.ERROR]
        return [Message(id=0, role=Role.SYSTEM, content=system_prompt)] + history

    async def _run_exchange(self, token: CancellationToken) -> None:
        context = ExchangeContext(
            user_name=self.user_name,
            course=self.clean_course or None,
            is_first_message=self.state.is_first_message,
        )

        try:
            await self.transport.stream_completion(
                self.effective_chat_settings(),
                self._outgoing_messages(),
                self.assembler.handle_fragment,
                context,
                token,
            )
        except ChatError as e:
            logger.warning("Chat request failed", reason=e.reason, code=e.code)
            self.messages.append(Role.ASSISTANT, e.reason, message_type=MessageType.ERROR)
            await self._on_messages_changed(self.messages)
        except Exception as e:
            self.notifications.handle_unexpected_error(e, UNEXPECTED_ERROR_MESSAGE)

    def cancel(self) -> bool:
        """Cancel the exchange in flight. Returns False if there is none."""
        if self._cancellation is None:
            return False
        self._cancellation.cancel()
        logger.info("Exchange cancelled")
        return True

    async def _end_exchange(self) -> None:
        """Cancel any exchange in flight and wait for its bookkeeping to finish."""
        while not self._exchange_idle.is_set():
            self.cancel()
            await self._exchange_idle.wait()

    def _on_response_complete(self, message: Message) -> None:
        if self.read_aloud is None or not self.settings.speech.auto_play:
            return
        task = asyncio.get_running_loop().create_task(self.read_aloud.play(message.content))
        self._playback_tasks.add(task)
        task.add_done_callback(self._playback_tasks.discard)

    def last_completed_message(self) -> Optional[Message]:
        message_id = self.state.last_completed_message_id
        if message_id is None:
            return None
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    async def toggle_read_aloud(self, message: Optional[Message] = None) -> bool:
        """Read ``message`` (default: the last completed reply) aloud, or stop."""
        if self.read_aloud is None:
            return False
        message = message or self.last_completed_message()
        if message is None:
            return False
        return await self.read_aloud.toggle(message.content)

    async def new_conversation(self) -> None:
        await self._end_exchange()
        self.messages.clear()
        await self.synchronizer.sync(self.messages)
        self.input_buffer.clear()
        self.quote_helper.on_selection_change(None)
        self.assembler.reset()
        logger.info("New conversation")

    async def open_conversation(self, conversation_id: int) -> bool:
        await self._end_exchange()
        try:
            conversation, messages = await self.synchronizer.load_conversation(conversation_id)
        except ConversationNotFoundError as e:
            self.notifications.handle_error(str(e))
            await self.new_conversation()
            return False

        self.messages.replace_all(messages)
        self.assembler.reset()
        self.input_buffer.clear()
        if not messages:
            logger.warning("Possible state problem", conversation_id=conversation.id)
        return True

    async def close(self) -> None:
        """Release subscriptions, playback and the audio session."""
        self._unsubscribe()
        self.cancel()

        for task in list(self._playback_tasks):
            task.cancel()
        if self._playback_tasks:
            await asyncio.gather(*self._playback_tasks, return_exceptions=True)

        if self.read_aloud is not None:
            self.read_aloud.stop()
        if self.audio_pipeline is not None:
            self.audio_pipeline.close()
        logger.info("Chat controller closed")
