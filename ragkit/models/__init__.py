"""ragkit domain models: re-exports the public model classes.

The models are organized by pipeline concern:
    - assets.py     -- non-text inputs and extraction output
    - chunks.py     -- chunking options, chunk text, persisted and scored chunks
    - config.py     -- asset processing, embedding batching and storage policy
    - results.py    -- ingest / retrieve / rerank results and warnings
    - evaluation.py -- eval dataset, report and diff files

Evaluation models are imported from ``ragkit.models.evaluation`` directly.
"""

from __future__ import annotations

from ragkit.models.assets import (
    Asset,
    AssetKind,
    BytesAssetData,
    ExtractedTextItem,
    ExtractionResult,
    UrlAssetData,
)
from ragkit.models.chunks import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MIN_CHUNK_SIZE,
    Chunk,
    ChunkingOptions,
    ChunkText,
    QueryScope,
    ScoredChunk,
)
from ragkit.models.config import (
    AssetProcessingConfig,
    EmbeddingProcessingConfig,
    StorageConfig,
    resolve_asset_processing,
)
from ragkit.models.results import (
    AssetPlan,
    IngestDurations,
    IngestPlan,
    IngestResult,
    IngestWarning,
    PlannedChunk,
    RerankDurations,
    RerankerOutput,
    RerankMeta,
    RerankRankingItem,
    RerankResult,
    RetrieveDurations,
    RetrieveResult,
)

__all__ = [
    "DEFAULT_CHUNK_OVERLAP",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MIN_CHUNK_SIZE",
    "Asset",
    "AssetKind",
    "AssetPlan",
    "AssetProcessingConfig",
    "BytesAssetData",
    "Chunk",
    "ChunkText",
    "ChunkingOptions",
    "EmbeddingProcessingConfig",
    "ExtractedTextItem",
    "ExtractionResult",
    "IngestDurations",
    "IngestPlan",
    "IngestResult",
    "IngestWarning",
    "PlannedChunk",
    "QueryScope",
    "RerankDurations",
    "RerankMeta",
    "RerankRankingItem",
    "RerankResult",
    "RerankerOutput",
    "RetrieveDurations",
    "RetrieveResult",
    "ScoredChunk",
    "StorageConfig",
    "UrlAssetData",
    "resolve_asset_processing",
]
