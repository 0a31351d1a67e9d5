"""Chunk data models for the ragkit pipeline.

Defines Pydantic v2 models for the chunking contract (:class:`ChunkText`,
:class:`ChunkingOptions`), persisted chunks (:class:`Chunk`) and scored
retrieval results (:class:`ScoredChunk`).  All models are frozen; attach an
embedding with ``chunk.model_copy(update={"embedding": vector})``.

Lifecycle:
    1. CHUNKING: a chunker turns document text into ordered ChunkText items.
    2. ENRICHMENT: the context engine wraps each ChunkText into a Chunk with
       ids, source id and metadata.
    3. EMBEDDING: each Chunk receives its vector.
    4. STORAGE: the vector store upserts Chunks by ``id``.
    5. RETRIEVAL: the store returns ScoredChunks ordered by score.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_CHUNK_SIZE = 512
DEFAULT_CHUNK_OVERLAP = 50
DEFAULT_MIN_CHUNK_SIZE = 24


# ---------------------------------------------------------------------------
# ChunkText -- the output unit of every chunker.
# ---------------------------------------------------------------------------
class ChunkText(BaseModel):
    """One ordered slice of a document produced by a chunker."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0, description="Zero-based position within the document's chunk list.")
    content: str = Field(description="Trimmed, non-empty chunk text.")
    token_count: int = Field(ge=0, description="Token count of ``content`` under the chunker's tokenizer.")


# ---------------------------------------------------------------------------
# ChunkingOptions -- size budget and strategy hints.
# ---------------------------------------------------------------------------
class ChunkingOptions(BaseModel):
    """Options passed to every chunker call.

    ``chunk_overlap`` must be strictly smaller than ``chunk_size``.
    ``min_chunk_size`` is the smallest trailing chunk (in tokens) that is
    emitted on its own; smaller tails are merged into the previous chunk.
    """

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1, description="Maximum tokens per chunk.")
    chunk_overlap: int = Field(
        default=DEFAULT_CHUNK_OVERLAP,
        ge=0,
        description="Tokens carried from the end of one chunk into the next.",
    )
    min_chunk_size: int = Field(
        default=DEFAULT_MIN_CHUNK_SIZE,
        ge=0,
        description="Minimum token count for a trailing chunk.",
    )
    separators: tuple[str, ...] | None = Field(
        default=None,
        description="Separator hierarchy for the recursive chunker (None = built-in hierarchy).",
    )
    tokenizer: str = Field(default="regex", description='Tokenizer name: "regex" or "tiktoken".')
    model: str | None = Field(
        default=None,
        description="LLM model used by the semantic / agentic chunkers.",
    )
    language: str | None = Field(default=None, description="Source language hint for the code chunker.")
    source_id: str | None = Field(default=None, description="Source id of the document being chunked.")
    metadata: dict[str, Any] | None = Field(
        default=None,
        description="Document metadata, available to chunkers that adapt to it.",
    )

    @model_validator(mode="after")
    def _check_overlap(self) -> ChunkingOptions:
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than "
                f"chunk_size ({self.chunk_size})"
            )
        return self


# ---------------------------------------------------------------------------
# Chunk -- the persisted record.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A chunk ready for (or returned from) the vector store.

    ``id`` is the upsert key: re-upserting the same id replaces the row.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Globally unique chunk id.")
    document_id: str = Field(description="Id shared by all chunks of one ingest call.")
    source_id: str = Field(description="Caller-provided logical document id (e.g. 'docs:intro').")
    index: int = Field(ge=0, description="Position of the chunk within its document.")
    content: str = Field(default="", description="Chunk text (empty when content storage is disabled).")
    token_count: int = Field(default=0, ge=0, description="Token count of the chunk text.")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Document and asset metadata.")
    embedding: list[float] | None = Field(default=None, description="Embedding vector, once computed.")
    document_content: str | None = Field(
        default=None,
        description="Full document text, stored when document content storage is enabled.",
    )


class ScoredChunk(Chunk):
    """A chunk returned by a vector-store query, with its similarity score."""

    score: float = Field(default=0.0, description="Similarity score; higher is more relevant.")


class QueryScope(BaseModel):
    """Optional restriction applied to vector-store queries."""

    model_config = ConfigDict(frozen=True)

    source_id: str | None = Field(
        default=None,
        description="Source id prefix; only chunks whose source_id starts with it match.",
    )
