"""ElevenLabs TTS provider implementation."""

import os
from io import BytesIO
from typing import Optional
import pygame
from elevenlabs import VoiceSettings
from elevenlabs.client import ElevenLabs
import structlog

from .base import TTSProvider
from ...config.settings import SpeechSettings


logger = structlog.get_logger()


class ElevenLabsProvider(TTSProvider):
    """
    ElevenLabs synthesis with pygame mixer playback.
    """

    def __init__(
        self,
        output_format: str = "mp3_22050_32",
        stability: float = 0.5,
        similarity_boost: float = 0.8,
        style: float = 0.0,
        use_speaker_boost: bool = True,
    ):
        self.output_format = output_format
        self.stability = stability
        self.similarity_boost = similarity_boost
        self.style = style
        self.use_speaker_boost = use_speaker_boost

        self.client: Optional[ElevenLabs] = None
        self._last_voice_id: Optional[str] = None

    def initialize(self) -> None:
        """Initialize ElevenLabs client and pygame mixer."""
        logger.info("Initializing ElevenLabs provider", output_format=self.output_format)

        api_key = os.getenv("ELEVENLABS_API_KEY")
        if not api_key:
            raise ValueError("ELEVENLABS_API_KEY environment variable not set")

        self.client = ElevenLabs(api_key=api_key)

        pygame.mixer.pre_init(frequency=22050, size=-16, channels=2, buffer=1024)
        pygame.mixer.init()

        logger.info("ElevenLabs provider initialized")

    def synthesize(self, text: str, speech: SpeechSettings) -> bytes:
        """Generate the full audio for ``text``."""
        if not self.client:
            raise RuntimeError("ElevenLabs not initialized")

        logger.debug(
            "Generating TTS audio",
            text_length=len(text),
            voice_id=speech.voice_id,
            model_id=speech.model_id,
        )

        try:
            audio = self.client.text_to_speech.convert(
                voice_id=speech.voice_id,
                text=text,
                model_id=speech.model_id,
                output_format=self.output_format,
                voice_settings=VoiceSettings(
                    stability=self.stability,
                    similarity_boost=self.similarity_boost,
                    style=self.style,
                    use_speaker_boost=self.use_speaker_boost,
                    speed=speech.speed,
                ),
            )

            if isinstance(audio, (bytes, bytearray)):
                audio_data = bytes(audio)
            else:
                # The SDK streams the body as an iterator of byte chunks
                audio_data = b"".join(audio)

        except Exception as e:
            logger.error("Error generating TTS audio", error=str(e))
            raise

        self._last_voice_id = speech.voice_id
        logger.debug("TTS generation complete", total_bytes=len(audio_data))
        return audio_data

    def play(self, audio: bytes) -> None:
        pygame.mixer.music.load(BytesIO(audio))
        pygame.mixer.music.play()
        logger.debug("Started audio playback", size_bytes=len(audio))

    def stop_playback(self) -> None:
        """Stop current audio playback."""
        if pygame.mixer.get_init() and pygame.mixer.music.get_busy():
            logger.debug("Stopping audio playback")
            pygame.mixer.music.stop()

    def is_playing(self) -> bool:
        return bool(pygame.mixer.get_init()) and pygame.mixer.music.get_busy()

    def stop(self) -> None:
        """Stop ElevenLabs provider."""
        logger.info("Stopping ElevenLabs provider")
        self.stop_playback()
        pygame.mixer.quit()
        self.client = None

    def get_status(self) -> dict:
        """Get ElevenLabs provider status."""
        return {
            "provider": "elevenlabs",
            "voice_id": self._last_voice_id,
            "output_format": self.output_format,
            "is_playing": self.is_playing(),
            "initialized": self.client is not None,
            "mixer_initialized": pygame.mixer.get_init() is not None,
        }
