"""OpenAI Whisper API transcription provider.

Cloud transcription used by the ``audio:transcribe`` extractor.  The API
accepts mp3, mp4, mpeg, mpga, m4a, wav and webm uploads of up to 25 MB and
handles all decoding server-side.
"""

from __future__ import annotations

from typing import Any

import openai
import structlog

from ragkit.interfaces.transcription_provider import (
    ITranscriptionProvider,
    TranscriptionResult,
    TranscriptSegment,
)
from ragkit.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


def _field(obj: Any, key: str, default: Any) -> Any:
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


class WhisperAPIProvider(ITranscriptionProvider):
    """Transcription via the OpenAI audio API.

    Parameters
    ----------
    api_key:
        OpenAI API key.
    base_url:
        Optional OpenAI-compatible endpoint.
    client:
        Pre-built ``AsyncOpenAI`` client (tests inject a mock here).
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "",
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        self._api_key = api_key
        if client is not None:
            self._client = client
        else:
            kwargs: dict[str, Any] = {"api_key": api_key or None}
            if base_url:
                kwargs["base_url"] = base_url
            self._client = openai.AsyncOpenAI(**kwargs)

    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        model: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        kwargs: dict[str, Any] = {
            "model": model,
            "file": (filename, audio),
            "response_format": "verbose_json",
        }
        if language:
            kwargs["language"] = language

        try:
            response = await self._client.audio.transcriptions.create(**kwargs)
        except openai.APIError as exc:
            raise ExtractionError(
                message=f"Whisper transcription failed: {exc}",
                provider_name="openai",
                kind="parse",
            ) from exc

        segments = [
            TranscriptSegment(
                start=float(_field(seg, "start", 0.0) or 0.0),
                end=float(_field(seg, "end", 0.0) or 0.0),
                text=str(_field(seg, "text", "")).strip(),
            )
            for seg in (_field(response, "segments", None) or [])
        ]

        duration = float(_field(response, "duration", 0.0) or 0.0)
        detected_language = _field(response, "language", None) or language

        logger.info(
            "whisper_api_transcription_complete",
            model=model,
            duration=duration,
            language=detected_language,
            segments=len(segments),
        )

        return TranscriptionResult(
            text=str(_field(response, "text", "") or ""),
            language=detected_language,
            duration_seconds=duration,
            segments=segments,
        )

    def get_provider_name(self) -> str:
        return "whisper_api (OpenAI)"

    def is_available(self) -> bool:
        return bool(self._api_key)
