"""Base interfaces for microphone capture and remote transcription."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Sequence


@dataclass
class AudioAsset:
    """One recording, packaged for upload."""

    name: str
    data: bytes
    file_extension: str = "webm"
    mime_type: str = "audio/webm;codecs=opus"

    @property
    def filename(self) -> str:
        return f"{self.name}.{self.file_extension}"


@dataclass
class TranscriptionOptions:
    language: str
    temperature: float = 0.0

    def to_dict(self) -> dict:
        return {"language": self.language, "temperature": self.temperature}


class TranscriptionClient(ABC):
    """Abstract base class for transcription services."""

    @abstractmethod
    async def transcribe(self, asset: AudioAsset, options: TranscriptionOptions) -> str:
        """
        Transcribe a recording.

        Returns:
            The raw transcription text (may be WebVTT formatted)

        Raises:
            TranscriptionError: On transport or protocol failure
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        pass


class MicrophoneDevice(ABC):
    """
    Abstract base class for a microphone device session.

    ``on_chunk`` is always invoked on the event loop thread.
    """

    @abstractmethod
    async def open(self, on_chunk: Callable[[bytes], None]) -> None:
        """
        Acquire the device.

        Raises:
            MediaAccessError: Permission denied or no usable input device
        """
        pass

    @abstractmethod
    def start(self) -> None:
        """Begin delivering chunks."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering chunks."""
        pass

    @abstractmethod
    def encode(self, chunks: Sequence[bytes]) -> bytes:
        """Merge captured chunks into a single encoded recording."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the device."""
        pass
