"""Base interface for Text-to-Speech providers."""

from abc import ABC, abstractmethod

from ...config.settings import SpeechSettings


class TTSProvider(ABC):
    """Abstract base class for TTS providers."""

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the TTS provider."""
        pass

    @abstractmethod
    def synthesize(self, text: str, speech: SpeechSettings) -> bytes:
        """
        Convert text to encoded audio.

        Blocking; callers on the event loop run it with ``asyncio.to_thread``.

        Args:
            text: The text to convert to speech
            speech: Model, voice and speed to synthesize with

        Returns:
            The complete encoded audio
        """
        pass

    @abstractmethod
    def play(self, audio: bytes) -> None:
        """Start playing encoded audio from the beginning."""
        pass

    @abstractmethod
    def stop_playback(self) -> None:
        """Stop current audio playback."""
        pass

    @abstractmethod
    def is_playing(self) -> bool:
        """Whether audio is currently playing."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the TTS provider and clean up resources."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the TTS provider."""
        pass
