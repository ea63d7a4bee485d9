"""Voice note download and transcription."""

import time
from dataclasses import dataclass
from typing import Protocol

import httpx

from ..errors import MediaError
from ..logging_config import get_logger

logger = get_logger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"
MAX_AUDIO_BYTES = 25 * 1024 * 1024
ALLOWED_AUDIO_TYPES = ("audio/ogg", "audio/mp3", "audio/mpeg", "audio/wav", "audio/aac", "audio/mp4", "audio/amr")

_EXTENSIONS = {
    "audio/ogg": ".ogg",
    "audio/mp3": ".mp3",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/aac": ".aac",
    "audio/mp4": ".m4a",
    "audio/amr": ".amr",
}


@dataclass
class TranscriptionResult:
    success: bool
    text: str | None = None
    error: str | None = None
    language: str | None = None
    processing_time: float | None = None


class IMediaTranscriber(Protocol):
    """Media download plus speech-to-text collaborator."""

    async def download_and_transcribe(self, media_id: str) -> TranscriptionResult:
        ...


class MediaTranscriber:
    """Downloads WhatsApp media over the Graph API and transcribes it with Whisper."""

    def __init__(
        self,
        meta_token: str,
        openai_api_key: str | None,
        meta_base_url: str = "https://graph.facebook.com/v21.0",
        openai_base_url: str = OPENAI_BASE_URL,
        model: str = "whisper-1",
        language: str | None = "es",
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._meta_token = meta_token
        self._openai_api_key = openai_api_key
        self._meta_base_url = meta_base_url.rstrip("/")
        self._openai_base_url = openai_base_url.rstrip("/")
        self._model = model
        self._language = language
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

        if not openai_api_key:
            logger.warning("OPENAI_API_KEY not set, audio transcription disabled")

    @property
    def available(self) -> bool:
        return bool(self._openai_api_key)

    async def close(self) -> None:
        await self._client.aclose()

    async def download_and_transcribe(self, media_id: str) -> TranscriptionResult:
        """Fetch and transcribe a voice note. Never raises."""
        started = time.monotonic()
        try:
            if not self._openai_api_key:
                raise MediaError("Transcription is not configured", media_id=media_id)
            audio, content_type = await self._download(media_id)
            text = await self._transcribe(media_id, audio, content_type)
        except MediaError as e:
            logger.error(
                "Audio processing failed",
                extra={"context": {"media_id": media_id, "error": str(e)}},
            )
            return TranscriptionResult(success=False, error=str(e))
        except httpx.HTTPError as e:
            logger.error(
                "Audio processing failed",
                extra={"context": {"media_id": media_id, "error": str(e)}},
            )
            return TranscriptionResult(success=False, error=f"HTTP error: {e}")

        elapsed = time.monotonic() - started
        logger.info(
            "Audio transcribed",
            extra={
                "context": {
                    "media_id": media_id,
                    "length": len(text),
                    "processing_time": round(elapsed, 3),
                }
            },
        )
        return TranscriptionResult(
            success=True,
            text=text,
            language=self._language,
            processing_time=elapsed,
        )

    async def _download(self, media_id: str) -> tuple[bytes, str]:
        headers = {"Authorization": f"Bearer {self._meta_token}"}

        meta = await self._client.get(f"{self._meta_base_url}/{media_id}", headers=headers)
        if meta.status_code != 200:
            raise MediaError(f"Media lookup failed: HTTP {meta.status_code}", media_id=media_id)
        try:
            body = meta.json()
        except ValueError:
            body = None
        media_url = body.get("url") if isinstance(body, dict) else None
        if not media_url:
            raise MediaError("Media URL missing from lookup response", media_id=media_id)

        response = await self._client.get(media_url, headers=headers)
        if response.status_code != 200:
            raise MediaError(f"Media download failed: HTTP {response.status_code}", media_id=media_id)

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if content_type and not content_type.startswith(ALLOWED_AUDIO_TYPES):
            raise MediaError(f"Unsupported media type: {content_type}", media_id=media_id)

        audio = response.content
        if not audio:
            raise MediaError("Downloaded audio is empty", media_id=media_id)
        if len(audio) > MAX_AUDIO_BYTES:
            raise MediaError(
                f"Audio too large: {len(audio)} bytes (max {MAX_AUDIO_BYTES})",
                media_id=media_id,
            )
        return audio, content_type or "audio/ogg"

    async def _transcribe(self, media_id: str, audio: bytes, content_type: str) -> str:
        data = {"model": self._model}
        if self._language:
            data["language"] = self._language
        filename = f"{media_id}{_EXTENSIONS.get(content_type, '.ogg')}"

        response = await self._client.post(
            f"{self._openai_base_url}/audio/transcriptions",
            headers={"Authorization": f"Bearer {self._openai_api_key}"},
            data=data,
            files={"file": (filename, audio, content_type)},
        )
        if response.status_code != 200:
            raise MediaError(
                f"Transcription API error: HTTP {response.status_code} - {response.text[:200]}",
                media_id=media_id,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise MediaError("Transcription response is not JSON", media_id=media_id) from e
        text = body.get("text") if isinstance(body, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise MediaError("Transcription is empty", media_id=media_id)
        return text.strip()
