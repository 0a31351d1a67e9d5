"""Abstract base class for audio transcription providers.

Used by the ``audio:transcribe`` extractor.  Providers receive the raw
audio bytes already fetched and size-checked by the extraction layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field


class TranscriptSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: float = Field(default=0.0, description="Segment start in seconds.")
    end: float = Field(default=0.0, description="Segment end in seconds.")
    text: str = Field(description="Segment text.")


class TranscriptionResult(BaseModel):
    """Immutable result from an audio transcription.

    Contains the full transcribed text, detected language, segment-level
    timing data, and the duration of the audio.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Full transcribed text.")
    language: str | None = Field(default=None, description="Detected or specified language code.")
    duration_seconds: float = Field(default=0.0, description="Audio duration in seconds.")
    segments: list[TranscriptSegment] = Field(default_factory=list)


class ITranscriptionProvider(ABC):
    """Contract for audio transcription backends."""

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        filename: str,
        model: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe audio bytes to text.

        Parameters
        ----------
        audio:
            Encoded audio (mp3, m4a, wav, webm...).
        filename:
            File name sent with the upload; its extension tells the
            backend the container format.
        model:
            Transcription model, e.g. ``"whisper-1"``.
        language:
            Optional ISO 639-1 language code.  ``None`` auto-detects.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable name for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the provider is ready to accept transcription requests."""
