"""Result models returned by the context engine.

Every operation returns a frozen model carrying its output plus a
``durations`` block (milliseconds) and, where partial success is possible,
a list of warnings.  Warnings never replace errors: a warning means the
operation completed and something was deliberately skipped.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ragkit.models.assets import AssetKind
from ragkit.models.chunks import ScoredChunk

# Warning codes emitted by ingest.
ASSET_SKIPPED_UNSUPPORTED_KIND = "asset_skipped_unsupported_kind"
ASSET_SKIPPED_EXTRACTION_DISABLED = "asset_skipped_extraction_disabled"
ASSET_SKIPPED_PDF_LLM_EXTRACTION_DISABLED = "asset_skipped_pdf_llm_extraction_disabled"
ASSET_SKIPPED_EXTRACTION_EMPTY = "asset_skipped_extraction_empty"
ASSET_SKIPPED_IMAGE_NO_CAPTION = "asset_skipped_image_no_caption"
ASSET_PROCESSING_ERROR = "asset_processing_error"


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------
class IngestWarning(BaseModel):
    """A structured note that an asset was skipped or failed during ingest."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Machine-readable warning code.")
    message: str = Field(description="Human-readable explanation.")
    asset_id: str
    asset_kind: AssetKind
    asset_uri: str | None = None
    asset_media_type: str | None = None
    stage: str | None = Field(default=None, description='Pipeline stage for errors, e.g. "extract".')


class IngestDurations(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_ms: float = 0.0
    chunking_ms: float = 0.0
    embedding_ms: float = 0.0
    storage_ms: float = 0.0


class IngestResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_id: str
    chunk_count: int = Field(ge=0)
    embedding_model: str
    warnings: list[IngestWarning] = Field(default_factory=list)
    durations: IngestDurations = Field(default_factory=IngestDurations)


class AssetPlan(BaseModel):
    """Which extractors would be tried for one asset, in order."""

    model_config = ConfigDict(frozen=True)

    asset_id: str
    asset_kind: AssetKind
    extractors: list[str] = Field(default_factory=list)
    warning: IngestWarning | None = None


class PlannedChunk(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    content: str
    token_count: int = Field(ge=0)


class IngestPlan(BaseModel):
    """Dry-run result: the text chunks and asset routing an ingest would use.

    Assets are routed but not extracted, so ``chunks`` covers the text
    content only.  ``document_id`` is known up front only with
    deterministic ids.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str
    document_id: str | None = None
    chunks: list[PlannedChunk] = Field(default_factory=list)
    assets: list[AssetPlan] = Field(default_factory=list)
    warnings: list[IngestWarning] = Field(default_factory=list)
    chunking_ms: float = 0.0


# ---------------------------------------------------------------------------
# Retrieve
# ---------------------------------------------------------------------------
class RetrieveDurations(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_ms: float = 0.0
    embedding_ms: float = 0.0
    retrieval_ms: float = 0.0


class RetrieveResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunks: list[ScoredChunk] = Field(default_factory=list)
    embedding_model: str
    durations: RetrieveDurations = Field(default_factory=RetrieveDurations)


# ---------------------------------------------------------------------------
# Rerank
# ---------------------------------------------------------------------------
class RerankerOutput(BaseModel):
    """What a reranker returns: a permutation of document indices.

    ``order[i]`` is the index (into the documents passed to the reranker)
    of the i-th most relevant document.  ``scores``, when present, is
    aligned with ``order``.
    """

    model_config = ConfigDict(frozen=True)

    order: list[int]
    scores: list[float] | None = None
    model: str | None = None


class RerankRankingItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Index into the original candidate list.")
    rerank_score: float | None = None


class RerankMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    reranker_name: str
    model: str | None = None


class RerankDurations(BaseModel):
    model_config = ConfigDict(frozen=True)

    rerank_ms: float = 0.0
    total_ms: float = 0.0


class RerankResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunks: list[ScoredChunk] = Field(default_factory=list)
    ranking: list[RerankRankingItem] = Field(default_factory=list)
    meta: RerankMeta
    durations: RerankDurations = Field(default_factory=RerankDurations)
    warnings: list[str] = Field(default_factory=list)
