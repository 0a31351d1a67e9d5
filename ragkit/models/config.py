"""Engine-level configuration models.

These models describe *how* the context engine processes assets, batches
embeddings and stores chunk text.  Defaults are cost-safe: network-backed
model extraction (PDF via LLM, audio transcription) is disabled until the
caller opts in, while local parsers (PDF text layer, office files, EPUB,
plain text) are enabled.

Per-call overrides are plain nested dicts deep-merged over the engine's
configuration with :func:`resolve_asset_processing`.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ragkit.config.loader import deep_merge

_MB = 1024 * 1024

AssetPolicy = Literal["skip", "fail"]

DEFAULT_PDF_LLM_PROMPT = (
    "Extract all readable text from this PDF as faithfully as possible. "
    "Preserve structure with headings and lists when obvious. "
    "Output plain text or markdown only. Do not add commentary."
)


class FetchConfig(BaseModel):
    """Policy for fetching URL-based assets."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    allowed_hosts: list[str] | None = Field(
        default=None,
        description="If set, only these hostnames (or their subdomains) may be fetched.",
    )
    max_bytes: int = Field(default=15 * _MB, gt=0)
    timeout_s: float = Field(default=20.0, gt=0)
    headers: dict[str, str] | None = None


class TextLayerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    max_bytes: int = Field(default=15 * _MB, gt=0)
    max_output_chars: int = Field(default=200_000, gt=0)
    min_chars: int = Field(default=200, ge=0)


class PdfLlmExtractionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    model: str = "gpt-4o-mini"
    prompt: str = DEFAULT_PDF_LLM_PROMPT
    timeout_s: float = Field(default=60.0, gt=0)
    max_bytes: int = Field(default=15 * _MB, gt=0)
    max_output_chars: int = Field(default=200_000, gt=0)


class PdfConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    text_layer: TextLayerConfig = Field(default_factory=TextLayerConfig)
    llm_extraction: PdfLlmExtractionConfig = Field(default_factory=PdfLlmExtractionConfig)


class TranscriptionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    model: str = "whisper-1"
    timeout_s: float = Field(default=120.0, gt=0)
    max_bytes: int = Field(default=25 * _MB, gt=0)


class AudioConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)


class FileFormatConfig(BaseModel):
    """Limits for one local file format parser."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    max_bytes: int = Field(default=15 * _MB, gt=0)
    max_output_chars: int = Field(default=200_000, gt=0)
    min_chars: int = Field(default=50, ge=0)


class FileConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: FileFormatConfig = Field(default_factory=lambda: FileFormatConfig(max_bytes=5 * _MB))
    docx: FileFormatConfig = Field(default_factory=lambda: FileFormatConfig(max_bytes=15 * _MB))
    pptx: FileFormatConfig = Field(default_factory=lambda: FileFormatConfig(max_bytes=30 * _MB))
    xlsx: FileFormatConfig = Field(default_factory=lambda: FileFormatConfig(max_bytes=30 * _MB))
    epub: FileFormatConfig = Field(default_factory=lambda: FileFormatConfig(max_bytes=30 * _MB))


class AssetProcessingConfig(BaseModel):
    """Everything the extraction stage needs to know.

    ``on_unsupported_asset`` applies when no extractor handles an asset;
    ``on_error`` applies when an extractor raises.  ``concurrency`` bounds
    how many assets of one ingest call are extracted at once.
    """

    model_config = ConfigDict(frozen=True)

    on_unsupported_asset: AssetPolicy = "skip"
    on_error: AssetPolicy = "skip"
    concurrency: int = Field(default=1, ge=1)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    pdf: PdfConfig = Field(default_factory=PdfConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    file: FileConfig = Field(default_factory=FileConfig)

    def extraction_enabled(self, kind: str) -> bool:
        """Return ``True`` if any built-in extraction path is enabled for *kind*."""
        if kind == "pdf":
            return self.pdf.text_layer.enabled or self.pdf.llm_extraction.enabled
        if kind == "audio":
            return self.audio.transcription.enabled
        if kind == "file":
            f = self.file
            return any(c.enabled for c in (f.text, f.docx, f.pptx, f.xlsx, f.epub))
        return True


class EmbeddingProcessingConfig(BaseModel):
    """Batching and concurrency for the embedding stage of ingest."""

    model_config = ConfigDict(frozen=True)

    concurrency: int = Field(default=4, ge=1, description="Maximum in-flight embedding calls.")
    batch_size: int = Field(default=32, ge=1, description="Texts per embed_many call.")
    timeout_s: float = Field(default=60.0, gt=0, description="Deadline for a single embedding call.")


class StorageConfig(BaseModel):
    """What text is persisted alongside the vectors."""

    model_config = ConfigDict(frozen=True)

    store_chunk_content: bool = True
    store_document_content: bool = True


def resolve_asset_processing(
    base: AssetProcessingConfig,
    overrides: dict[str, Any] | AssetProcessingConfig | None,
) -> AssetProcessingConfig:
    """Deep-merge per-call *overrides* onto *base*.

    ``None`` values in *overrides* are ignored, so callers can pass sparse
    dicts such as ``{"pdf": {"llm_extraction": {"enabled": True}}}``.
    """
    if overrides is None:
        return base
    if isinstance(overrides, AssetProcessingConfig):
        return overrides
    merged = deep_merge(base.model_dump(), overrides)
    return AssetProcessingConfig.model_validate(merged)
