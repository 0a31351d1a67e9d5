"""Read/maintenance view over a vector store, used by debugging tools."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StoredDocument(BaseModel):
    """One logical document (all chunks sharing a source id)."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    document_id: str | None = None
    chunk_count: int = Field(ge=0)
    content: str | None = Field(default=None, description="Stored document text, if kept.")
    metadata: dict[str, Any] = Field(default_factory=dict)


class StoredChunkSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    index: int
    content: str
    token_count: int = 0


class StoredDocumentDetail(StoredDocument):
    chunks: list[StoredChunkSummary] = Field(default_factory=list)


class DocumentPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    documents: list[StoredDocument]
    total: int = Field(ge=0)


class StoreStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    backend: str
    document_count: int = Field(ge=0)
    chunk_count: int = Field(ge=0)
    embedding_dimensions: int | None = None


class IStoreInspector(ABC):
    """Contract for listing and pruning stored content."""

    @abstractmethod
    async def list_documents(
        self,
        prefix: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> DocumentPage:
        """Page through stored documents, sorted by source id."""

    @abstractmethod
    async def get_document(self, source_id: str) -> StoredDocumentDetail | None:
        """Return one document with its chunks in index order, or ``None``."""

    @abstractmethod
    async def delete_document(
        self,
        source_id: str | None = None,
        source_id_prefix: str | None = None,
    ) -> int:
        """Delete by exact source id or prefix; returns chunks deleted."""

    @abstractmethod
    async def delete_chunks(self, chunk_ids: list[str]) -> int:
        """Delete individual chunks by id; returns chunks deleted."""

    @abstractmethod
    async def store_stats(self) -> StoreStats:
        """Return aggregate counts for the store."""
