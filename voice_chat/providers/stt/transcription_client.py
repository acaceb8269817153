"""HTTP transcription client for the /transcribe endpoint."""

import json
import time
from datetime import datetime, timezone
from typing import Optional
import httpx
import structlog

from .base import AudioAsset, TranscriptionClient, TranscriptionOptions
from ...errors import TranscriptionError


logger = structlog.get_logger()


class HTTPTranscriptionClient(TranscriptionClient):
    """
    Posts recordings as multipart form data and reads back
    ``{"transcription": "..."}``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        timeout: float = 60.0,
        mime_type: str = "audio/webm;codecs=opus",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.mime_type = mime_type
        self._client = client
        self._owns_client = client is None
        self.last_latency_ms: Optional[float] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def transcribe(self, asset: AudioAsset, options: TranscriptionOptions) -> str:
        url = f"{self.base_url}/transcribe"
        files = {"file": (asset.filename, asset.data, asset.mime_type or self.mime_type)}
        data = {
            "name": asset.name,
            "datetime": datetime.now(timezone.utc).isoformat(),
            "options": json.dumps(options.to_dict()),
        }

        logger.info(
            "Sending recording for transcription",
            url=url,
            name=asset.name,
            size_bytes=len(asset.data),
            language=options.language,
        )
        start_time = time.time()

        try:
            response = await self._get_client().post(
                url,
                files=files,
                data=data,
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            raise TranscriptionError(
                f"Transcription service returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TranscriptionError(f"Transcription request failed: {e}") from e
        except ValueError as e:
            raise TranscriptionError("Transcription response is not valid JSON") from e

        self.last_latency_ms = (time.time() - start_time) * 1000
        logger.debug("Transcription received", latency_ms=self.last_latency_ms)

        if not isinstance(result, dict):
            raise TranscriptionError("Transcription response is not a JSON object")
        return result.get("transcription") or ""

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
