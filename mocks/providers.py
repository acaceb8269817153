"""
Mock provider implementations for testing the voice chat client.
"""

import asyncio
import time
from typing import Callable, List, Optional, Sequence

from voice_chat.config.settings import SpeechSettings
from voice_chat.errors import MediaAccessError, TranscriptionError
from voice_chat.providers.ai.base import ChatTransport
from voice_chat.providers.stt.base import (
    AudioAsset,
    MicrophoneDevice,
    TranscriptionClient,
    TranscriptionOptions,
)
from voice_chat.providers.tts.base import TTSProvider
from voice_chat.utils.cancellation import ExchangeCancelled


class MockChatTransport(ChatTransport):
    """Mock chat transport that streams canned replies word by word."""

    def __init__(
        self,
        responses: Optional[Sequence[str]] = None,
        fragment_delay: float = 0.0,
        error: Optional[Exception] = None,
        fragments: Optional[Sequence[str]] = None,
    ):
        self.mock_responses = list(responses or [
            "Hello! How can I help you today?",
            "That is a great question. Let me think about it.",
            "Here is a short answer: it depends on the context.",
        ])
        self.fragment_delay = fragment_delay
        self.error = error
        self.fragments = list(fragments) if fragments is not None else None
        self.response_index = 0
        self.calls: List[dict] = []
        self.is_initialized = False

    def initialize(self) -> None:
        """Initialize mock chat transport."""
        self.is_initialized = True

    def _next_fragments(self) -> List[str]:
        if self.fragments is not None:
            return self.fragments
        text = self.mock_responses[self.response_index % len(self.mock_responses)]
        self.response_index += 1
        words = text.split(" ")
        return [word if i == 0 else " " + word for i, word in enumerate(words)]

    async def stream_completion(self, chat_settings, messages, on_fragment, context, cancellation):
        """Stream a mock reply, or raise the configured error."""
        self.calls.append(
            {"settings": chat_settings, "messages": list(messages), "context": context}
        )

        full_response = ""
        for fragment in self._next_fragments():
            if cancellation.is_cancelled:
                break
            if self.fragment_delay:
                try:
                    await cancellation.run(asyncio.sleep(self.fragment_delay))
                except ExchangeCancelled:
                    break
            full_response += fragment
            await on_fragment(fragment, [], False)

        if self.error is not None:
            raise self.error

        await on_fragment("", [], True)
        return full_response

    def stop(self) -> None:
        """Stop mock chat transport."""
        self.is_initialized = False

    def get_status(self) -> dict:
        """Get mock chat transport status."""
        return {
            "provider": "mock_chat",
            "initialized": self.is_initialized,
            "responses_generated": self.response_index,
        }


class MockTranscriber(TranscriptionClient):
    """Mock transcription client returning canned transcripts."""

    def __init__(self, transcriptions: Optional[Sequence[str]] = None, error: Optional[Exception] = None):
        self.mock_transcriptions = list(transcriptions or [
            "WEBVTT\n\n00:00:00.000 --> 00:00:02.000\nHello, how are you today?\n",
        ])
        self.error = error
        self.requests: List[tuple] = []
        self.transcript_index = 0

    async def transcribe(self, asset: AudioAsset, options: TranscriptionOptions) -> str:
        self.requests.append((asset, options))
        if self.error is not None:
            raise TranscriptionError(str(self.error))
        text = self.mock_transcriptions[self.transcript_index % len(self.mock_transcriptions)]
        self.transcript_index += 1
        return text

    async def close(self) -> None:
        pass


class MockTTSProvider(TTSProvider):
    """Mock TTS provider that pretends to play audio for a fixed time."""

    def __init__(self, playback_duration: float = 0.05, fail: bool = False):
        self.playback_duration = playback_duration
        self.fail = fail
        self.synthesized: List[str] = []
        self.played: List[bytes] = []
        self._playing_until = 0.0

    def initialize(self) -> None:
        """Initialize mock TTS provider."""
        pass

    def synthesize(self, text: str, speech: SpeechSettings) -> bytes:
        if self.fail:
            raise RuntimeError("Mock synthesis failure")
        self.synthesized.append(text)
        return f"mock-audio:{speech.voice_id}:{text}".encode("utf-8")

    def play(self, audio: bytes) -> None:
        self.played.append(audio)
        self._playing_until = time.time() + self.playback_duration

    def stop_playback(self) -> None:
        self._playing_until = 0.0

    def is_playing(self) -> bool:
        return time.time() < self._playing_until

    def stop(self) -> None:
        """Stop mock TTS provider."""
        self.stop_playback()

    def get_status(self) -> dict:
        """Get mock TTS provider status."""
        return {
            "provider": "mock_tts",
            "is_playing": self.is_playing(),
            "played": len(self.played),
        }


class MockMicrophone(MicrophoneDevice):
    """Mock microphone that delivers a few fixed chunks when started."""

    def __init__(self, chunks: Optional[Sequence[bytes]] = None, open_error: Optional[MediaAccessError] = None):
        self.mock_chunks = list(chunks if chunks is not None else [b"\x00\x01", b"\x02\x03"])
        self.open_error = open_error
        self.on_chunk: Optional[Callable[[bytes], None]] = None
        self.is_open = False
        self.is_capturing = False

    async def open(self, on_chunk: Callable[[bytes], None]) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.on_chunk = on_chunk
        self.is_open = True

    def start(self) -> None:
        self.is_capturing = True
        for chunk in self.mock_chunks:
            self.on_chunk(chunk)

    def stop(self) -> None:
        self.is_capturing = False

    def encode(self, chunks: Sequence[bytes]) -> bytes:
        return b"".join(chunks)

    def close(self) -> None:
        self.is_open = False
        self.is_capturing = False
