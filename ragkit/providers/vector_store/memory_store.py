"""Process-local vector store using numpy cosine similarity.

Suitable for tests, evaluation runs and small corpora.  Chunks live in an
insertion-ordered dict keyed by chunk id, so re-upserting an id replaces
the row in place and score ties resolve in insertion order.
"""

from __future__ import annotations

import numpy as np
import structlog

from ragkit.interfaces.store_inspector import (
    DocumentPage,
    IStoreInspector,
    StoredChunkSummary,
    StoredDocument,
    StoredDocumentDetail,
    StoreStats,
)
from ragkit.interfaces.vector_store import IVectorStore
from ragkit.models.chunks import Chunk, QueryScope, ScoredChunk
from ragkit.utils.errors import StoreError, ValidationError

logger = structlog.get_logger(logger_name=__name__)


def _matches(chunk: Chunk, source_id: str | None, source_id_prefix: str | None) -> bool:
    if source_id is not None:
        return chunk.source_id == source_id
    return chunk.source_id.startswith(source_id_prefix or "")


class InMemoryVectorStore(IVectorStore, IStoreInspector):
    """Vector store held entirely in memory."""

    def __init__(self) -> None:
        self._rows: dict[str, Chunk] = {}

    def __len__(self) -> int:
        return len(self._rows)

    # ------------------------------------------------------------------
    # IVectorStore implementation
    # ------------------------------------------------------------------

    @staticmethod
    def _check_embeddings(chunks: list[Chunk]) -> None:
        for chunk in chunks:
            if not chunk.embedding:
                raise StoreError(
                    message=f"Chunk {chunk.id} has no embedding",
                    provider_name="memory",
                )

    async def upsert(self, chunks: list[Chunk]) -> None:
        self._check_embeddings(chunks)
        for chunk in chunks:
            self._rows[chunk.id] = chunk
        logger.debug("memory_store_upsert", count=len(chunks), total=len(self._rows))

    async def replace_source(self, source_id: str, chunks: list[Chunk]) -> None:
        # Validate before touching any row so a bad batch leaves the old version intact.
        self._check_embeddings(chunks)
        kept = {cid: c for cid, c in self._rows.items() if c.source_id != source_id}
        replaced = len(self._rows) - len(kept)
        kept.update((c.id, c) for c in chunks)
        self._rows = kept
        logger.debug(
            "memory_store_replace_source",
            source_id=source_id,
            replaced=replaced,
            count=len(chunks),
        )

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        scope: QueryScope | None = None,
    ) -> list[ScoredChunk]:
        prefix = scope.source_id if scope else None
        candidates = [
            chunk for chunk in self._rows.values()
            if prefix is None or chunk.source_id.startswith(prefix)
        ]
        if not candidates or top_k <= 0:
            return []

        query_vec = np.asarray(embedding, dtype=np.float64)
        try:
            matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
        except ValueError as exc:
            raise StoreError(
                message=f"Stored embeddings have inconsistent dimensions: {exc}",
                provider_name="memory",
            ) from exc
        if matrix.shape[1] != query_vec.shape[0]:
            raise StoreError(
                message=(
                    f"Query embedding has {query_vec.shape[0]} dimensions, "
                    f"stored embeddings have {matrix.shape[1]}"
                ),
                provider_name="memory",
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
        dots = matrix @ query_vec
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)
        order = np.argsort(-scores, kind="stable")[:top_k]

        return [
            ScoredChunk(
                **candidates[i].model_dump(exclude={"embedding"}),
                score=float(scores[i]),
            )
            for i in order
        ]

    async def delete(
        self,
        source_id: str | None = None,
        source_id_prefix: str | None = None,
    ) -> int:
        if (source_id is None) == (source_id_prefix is None):
            raise ValidationError("Provide exactly one of source_id or source_id_prefix.")
        doomed = [cid for cid, c in self._rows.items() if _matches(c, source_id, source_id_prefix)]
        for cid in doomed:
            del self._rows[cid]
        logger.debug(
            "memory_store_delete",
            source_id=source_id,
            source_id_prefix=source_id_prefix,
            deleted=len(doomed),
        )
        return len(doomed)

    # ------------------------------------------------------------------
    # IStoreInspector implementation
    # ------------------------------------------------------------------

    def _documents(self, prefix: str | None = None) -> dict[str, list[Chunk]]:
        grouped: dict[str, list[Chunk]] = {}
        for chunk in self._rows.values():
            if prefix and not chunk.source_id.startswith(prefix):
                continue
            grouped.setdefault(chunk.source_id, []).append(chunk)
        return grouped

    @staticmethod
    def _summary(source_id: str, chunks: list[Chunk]) -> StoredDocument:
        first = min(chunks, key=lambda c: c.index)
        return StoredDocument(
            source_id=source_id,
            document_id=first.document_id,
            chunk_count=len(chunks),
            content=first.document_content,
            metadata=first.metadata,
        )

    async def list_documents(
        self,
        prefix: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> DocumentPage:
        grouped = self._documents(prefix)
        source_ids = sorted(grouped)
        page = source_ids[offset : offset + limit]
        return DocumentPage(
            documents=[self._summary(sid, grouped[sid]) for sid in page],
            total=len(source_ids),
        )

    async def get_document(self, source_id: str) -> StoredDocumentDetail | None:
        chunks = [c for c in self._rows.values() if c.source_id == source_id]
        if not chunks:
            return None
        chunks.sort(key=lambda c: c.index)
        summary = self._summary(source_id, chunks)
        return StoredDocumentDetail(
            **summary.model_dump(),
            chunks=[
                StoredChunkSummary(id=c.id, index=c.index, content=c.content, token_count=c.token_count)
                for c in chunks
            ],
        )

    async def delete_document(
        self,
        source_id: str | None = None,
        source_id_prefix: str | None = None,
    ) -> int:
        return await self.delete(source_id=source_id, source_id_prefix=source_id_prefix)

    async def delete_chunks(self, chunk_ids: list[str]) -> int:
        deleted = 0
        for cid in chunk_ids:
            if self._rows.pop(cid, None) is not None:
                deleted += 1
        return deleted

    async def store_stats(self) -> StoreStats:
        first = next(iter(self._rows.values()), None)
        return StoreStats(
            backend="memory",
            document_count=len(self._documents()),
            chunk_count=len(self._rows),
            embedding_dimensions=len(first.embedding) if first and first.embedding else None,
        )
