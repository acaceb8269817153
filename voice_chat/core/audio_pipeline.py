"""
Microphone recording, remote transcription and transcript injection.

A session moves Idle -> Ready once the device is acquired, then alternates
Ready <-> Recording. Stopping a recording packages every buffered chunk
into one asset and submits it; the normalized transcript is injected as a
user message through the same path as typed input.
"""

import random
import re
import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional
import structlog

from ..config.settings import Settings
from ..errors import MediaAccessError, TranscriptionError
from ..providers.stt.base import (
    AudioAsset,
    MicrophoneDevice,
    TranscriptionClient,
    TranscriptionOptions,
)
from ..state.settings_store import ChatSettings
from .notifications import NotificationService


logger = structlog.get_logger()

UNSUPPORTED_MESSAGE = "Media devices are not supported in this environment"
ACCESS_ERROR_MESSAGE = "Error accessing the microphone"

_CUE_TIMING = re.compile(r"^\d{2}:\d{2}:\d{2}\.\d{3} --> \d{2}:\d{2}:\d{2}\.\d{3}$")


def normalize_transcript(text: str) -> str:
    """Flatten a (possibly WebVTT) transcript to a single line of text."""
    lines = []
    for line in text.splitlines():
        if line.startswith("WEBVTT"):
            continue
        if _CUE_TIMING.match(line):
            continue
        if line.strip() == "":
            continue
        lines.append(line)
    return " ".join(lines).strip()


def new_asset_name() -> str:
    return f"file{int(time.time() * 1000)}{random.randint(0, 100000)}"


class PipelineState(Enum):
    IDLE = "idle"
    READY = "ready"
    RECORDING = "recording"


class AudioCapturePipeline:
    """Owns the microphone session and the recording buffer."""

    def __init__(
        self,
        microphone: MicrophoneDevice,
        transcriber: TranscriptionClient,
        settings: Settings,
        get_chat_settings: Callable[[], Optional[ChatSettings]],
        on_transcript: Callable[[str], Awaitable[object]],
        notifications: Optional[NotificationService] = None,
    ):
        self.microphone = microphone
        self.transcriber = transcriber
        self.settings = settings
        self.get_chat_settings = get_chat_settings
        self.on_transcript = on_transcript
        self.notifications = notifications

        self.state = PipelineState.IDLE
        self.buffered_chunks: List[bytes] = []
        self.error_message: Optional[str] = None
        self.is_submitting = False

    async def acquire_device(self) -> bool:
        """Open the microphone. Returns False when the device is unavailable."""
        if self.state != PipelineState.IDLE:
            return True

        try:
            await self.microphone.open(self._on_chunk)
        except MediaAccessError as e:
            self.error_message = UNSUPPORTED_MESSAGE if e.unsupported else ACCESS_ERROR_MESSAGE
            logger.error(
                "Microphone unavailable",
                error=str(e),
                unsupported=e.unsupported,
            )
            if self.notifications is not None:
                self.notifications.show_banner(self.error_message)
            return False

        self.error_message = None
        self.state = PipelineState.READY
        logger.info("Microphone ready")
        return True

    def _on_chunk(self, chunk: bytes) -> None:
        if self.state == PipelineState.RECORDING and chunk:
            self.buffered_chunks.append(chunk)

    def start(self) -> bool:
        """Begin recording. Returns True if recording began."""
        if self.state != PipelineState.READY:
            logger.debug("Cannot start recording", state=self.state.value)
            return False
        if self.is_submitting:
            logger.debug("Cannot start recording while a transcription is pending")
            return False

        self.buffered_chunks = []
        # Chunks can arrive as soon as the device starts
        self.state = PipelineState.RECORDING
        try:
            self.microphone.start()
        except Exception as e:
            self.state = PipelineState.READY
            logger.error("Failed to start recording", error=str(e))
            return False
        logger.info("Recording started")
        return True

    async def stop(self) -> bool:
        """Stop recording and submit what was captured."""
        if self.state != PipelineState.RECORDING:
            logger.debug("Cannot stop recording", state=self.state.value)
            return False

        self.microphone.stop()
        chunks = self.buffered_chunks
        self.buffered_chunks = []
        self.state = PipelineState.READY
        logger.info("Recording stopped", chunk_count=len(chunks))

        try:
            data = self.microphone.encode(chunks)
        except Exception as e:
            logger.error("Failed to encode recording", error=str(e))
            return True

        asset = AudioAsset(
            name=new_asset_name(),
            data=data,
            file_extension=self.settings.audio.file_extension,
            mime_type=self.settings.audio.mime_type,
        )
        await self.submit(asset)
        return True

    async def toggle(self) -> bool:
        """Stop when recording, otherwise start. Returns True if the state changed."""
        if self.state == PipelineState.RECORDING:
            return await self.stop()
        return self.start()

    def _options(self) -> TranscriptionOptions:
        chat_settings = self.get_chat_settings()
        language = chat_settings.language if chat_settings else None
        temperature = chat_settings.temperature if chat_settings else None
        return TranscriptionOptions(
            language=language or self.settings.transcription.default_language,
            temperature=(
                temperature
                if temperature is not None
                else self.settings.transcription.default_temperature
            ),
        )

    async def submit(self, asset: AudioAsset) -> Optional[str]:
        """
        Transcribe ``asset`` and inject the text as a user message.

        Returns the injected text, or None when nothing was injected.
        Failures are logged and never raised.
        """
        if self.is_submitting:
            logger.warning("Transcription already in flight, dropping recording", name=asset.name)
            return None

        self.is_submitting = True
        try:
            raw = await self.transcriber.transcribe(asset, self._options())
        except TranscriptionError as e:
            logger.error("Transcription failed", name=asset.name, error=str(e))
            return None
        except Exception as e:
            logger.error("Unexpected transcription error", name=asset.name, error=str(e))
            return None
        finally:
            self.is_submitting = False

        text = normalize_transcript(raw or "")
        if not text:
            logger.warning("Empty transcription", name=asset.name)
            return None

        logger.info("Transcription ready", name=asset.name, length=len(text))
        try:
            await self.on_transcript(text)
        except Exception as e:
            logger.error("Failed to inject transcription", error=str(e))
            return None
        return text

    def close(self) -> None:
        """Release the device session."""
        if self.state == PipelineState.RECORDING:
            self.microphone.stop()
        if self.state != PipelineState.IDLE:
            self.microphone.close()
        self.buffered_chunks = []
        self.state = PipelineState.IDLE
        logger.info("Microphone released")
