"""Read assistant replies aloud through the configured TTS provider."""

import asyncio
import re
from typing import Callable, Optional
import structlog

from ..config.settings import SpeechSettings
from ..providers.tts.base import TTSProvider


logger = structlog.get_logger()

_CODE_BLOCK = re.compile(r"```[\s\S]*?```")


def simple_checksum(text: str) -> int:
    checksum = 0
    for i, char in enumerate(text):
        checksum = (checksum + ord(char) * (i + 1)) % 65535
    return checksum


def generate_identifier(content: str, speech: SpeechSettings) -> str:
    """Cache key for the synthesized audio of ``content``."""
    return f"{simple_checksum(content)}-{speech.model_id}-{speech.voice_id}-{speech.speed}"


def preprocess_content(content: str) -> str:
    """Drop fenced code blocks, which read badly as speech."""
    return _CODE_BLOCK.sub("", content)


class ReadAloudPlayer:
    """
    Plays one piece of content at a time and keeps the last synthesis.

    Replaying unchanged content with unchanged speech settings reuses the
    cached audio instead of synthesizing again.
    """

    def __init__(
        self,
        tts: TTSProvider,
        speech: SpeechSettings,
        on_audio_play: Optional[Callable[[bool], None]] = None,
    ):
        self.tts = tts
        self.speech = speech
        self.on_audio_play = on_audio_play

        self.is_loading = False
        self.is_playing = False
        self.last_identifier: Optional[str] = None
        self._audio: Optional[bytes] = None

    def _notify(self, playing: bool) -> None:
        if self.on_audio_play is not None:
            self.on_audio_play(playing)

    async def play(self, content: str) -> bool:
        """Play ``content``, synthesizing it first unless cached."""
        identifier = generate_identifier(content, self.speech)

        if identifier != self.last_identifier or self._audio is None:
            self.is_loading = True
            try:
                audio = await asyncio.to_thread(
                    self.tts.synthesize, preprocess_content(content), self.speech
                )
            except Exception as e:
                logger.error("Error fetching audio", error=str(e), identifier=identifier)
                return False
            finally:
                self.is_loading = False

            self._audio = audio
            self.last_identifier = identifier
        else:
            logger.debug("Replaying cached audio", identifier=identifier)

        self.tts.play(self._audio)
        self.is_playing = True
        self._notify(True)
        return True

    def stop(self) -> None:
        """Stop and rewind; the next play starts from the beginning."""
        self.tts.stop_playback()
        if self.is_playing:
            self.is_playing = False
            self._notify(False)

    async def toggle(self, content: str) -> bool:
        """Stop when playing, start otherwise. Ignored while loading."""
        if self.is_playing:
            self.stop()
            return True
        if self.is_loading:
            logger.debug("Audio still loading, ignoring toggle")
            return False
        return await self.play(content)

    async def wait_until_finished(self) -> None:
        while self.is_playing and self.tts.is_playing():
            await asyncio.sleep(self.speech.poll_interval)

        if self.is_playing:
            self.is_playing = False
            self._notify(False)
