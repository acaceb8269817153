"""Microphone capture using sounddevice for low-latency input."""

import asyncio
import io
from typing import Callable, Optional, Sequence
import numpy as np
import soundfile as sf
import structlog

from .base import MicrophoneDevice
from ...errors import MediaAccessError


logger = structlog.get_logger()


class SoundDeviceMicrophone(MicrophoneDevice):
    """
    Captures float32 PCM blocks from the default input device.

    The PortAudio callback runs on its own thread, so each block is handed
    to the event loop with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        block_duration: float = 0.1,
        container: str = "OGG",
        subtype: str = "OPUS",
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_size = int(sample_rate * block_duration)
        self.container = container
        self.subtype = subtype

        self.audio_stream = None
        self.is_capturing = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_chunk: Optional[Callable[[bytes], None]] = None
        self.audio_callback_count = 0

    async def open(self, on_chunk: Callable[[bytes], None]) -> None:
        try:
            # PortAudio is loaded on import; a missing library means no audio support
            import sounddevice as sd
        except (ImportError, OSError) as e:
            raise MediaAccessError(
                f"Audio input is not supported: {e}", unsupported=True
            ) from e

        self._loop = asyncio.get_running_loop()
        self._on_chunk = on_chunk

        try:
            device = sd.query_devices(kind="input")
            logger.info(
                "Opening microphone",
                device=device.get("name") if isinstance(device, dict) else str(device),
                sample_rate=self.sample_rate,
            )
            self.audio_stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                blocksize=self.block_size,
                callback=self.audio_callback,
            )
        except sd.PortAudioError as e:
            raise MediaAccessError(f"Could not open the microphone: {e}") from e
        except ValueError as e:
            # query_devices raises ValueError when there is no input device
            raise MediaAccessError(
                f"No audio input device: {e}", unsupported=True
            ) from e

    def audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        """Low-latency audio callback for sounddevice."""
        if status:
            logger.warning("Audio callback status", status=str(status))
        if not self.is_capturing or self._loop is None:
            return

        self.audio_callback_count += 1
        chunk = indata.copy().tobytes()
        self._loop.call_soon_threadsafe(self._deliver, chunk)

    def _deliver(self, chunk: bytes) -> None:
        if self.is_capturing and self._on_chunk is not None:
            self._on_chunk(chunk)

    def start(self) -> None:
        if self.audio_stream is None:
            raise RuntimeError("Microphone not opened")
        self.is_capturing = True
        self.audio_stream.start()

    def stop(self) -> None:
        if self.audio_stream is not None:
            self.audio_stream.stop()
        self.is_capturing = False

    def encode(self, chunks: Sequence[bytes]) -> bytes:
        """Encode float32 PCM chunks into the configured container."""
        samples = np.frombuffer(b"".join(chunks), dtype=np.float32)
        if self.channels > 1:
            samples = samples.reshape(-1, self.channels)

        buffer = io.BytesIO()
        sf.write(
            buffer,
            samples,
            self.sample_rate,
            format=self.container,
            subtype=self.subtype,
        )
        return buffer.getvalue()

    def close(self) -> None:
        if self.audio_stream is not None:
            try:
                self.audio_stream.stop()
                self.audio_stream.close()
            except Exception as e:
                logger.warning("Error closing microphone", error=str(e))
            self.audio_stream = None
        self.is_capturing = False
