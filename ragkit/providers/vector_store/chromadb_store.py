"""ChromaDB vector store adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStore` and
:class:`IStoreInspector`.  Uses cosine distance and always receives
pre-computed embeddings; ChromaDB's built-in embedding function is never
invoked.

ChromaDB metadata values must be scalars, so chunk metadata is stored as a
JSON string next to the structural fields (``source_id``, ``document_id``,
``index``, ``token_count``).  ChromaDB has no prefix operator: prefix
scopes are resolved to the matching source ids by paging metadata, then
queried with ``$in``.
"""

from __future__ import annotations

import json
import os
from typing import Any

# Telemetry must be off before chromadb is imported.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
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

_PAGE_SIZE = 5000
_UPSERT_BATCH = 500


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Embedding function that is never called; vectors are always supplied."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError("ragkit passes pre-computed embeddings to ChromaDB.")

    def name(self) -> str:
        return "noop_precomputed"


class ChromaVectorStore(IVectorStore, IStoreInspector):
    """Vector store backed by a persistent ChromaDB collection."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "ragkit_chunks",
        client: Any = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by other tools may carry a different persisted
        # embedding function; open those without one.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: Chunk) -> dict[str, str | int | float | bool]:
        meta: dict[str, str | int | float | bool] = {
            "source_id": chunk.source_id,
            "document_id": chunk.document_id,
            "index": chunk.index,
            "token_count": chunk.token_count,
            "metadata_json": json.dumps(chunk.metadata, default=str),
        }
        if chunk.document_content is not None:
            meta["document_content"] = chunk.document_content
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str | None) -> Chunk:
        return Chunk(
            id=chunk_id,
            document_id=str(meta.get("document_id", "")),
            source_id=str(meta.get("source_id", "")),
            index=int(meta.get("index", 0)),
            content=text or "",
            token_count=int(meta.get("token_count", 0)),
            metadata=json.loads(meta.get("metadata_json") or "{}"),
            document_content=meta.get("document_content"),
        )

    def _iter_metadata(
        self,
        where: dict[str, Any] | None = None,
        include_documents: bool = False,
    ) -> list[tuple[str, dict[str, Any], str | None]]:
        """Page through the collection, returning ``(id, metadata, document)`` rows."""
        include = ["metadatas", "documents"] if include_documents else ["metadatas"]
        rows: list[tuple[str, dict[str, Any], str | None]] = []
        offset = 0
        while True:
            kwargs: dict[str, Any] = {"include": include, "limit": _PAGE_SIZE, "offset": offset}
            if where:
                kwargs["where"] = where
            page = self._collection.get(**kwargs)
            ids = page["ids"] or []
            if not ids:
                break
            metadatas = page.get("metadatas") or [{}] * len(ids)
            documents = page.get("documents") if include_documents else None
            documents = documents or [None] * len(ids)
            rows.extend(zip(ids, metadatas, documents))
            if len(ids) < _PAGE_SIZE:
                break
            offset += _PAGE_SIZE
        return rows

    def _source_ids_with_prefix(self, prefix: str) -> list[str]:
        seen: dict[str, None] = {}
        for _, meta, _ in self._iter_metadata():
            sid = str(meta.get("source_id", ""))
            if sid.startswith(prefix):
                seen[sid] = None
        return list(seen)

    def _where_for(self, source_id: str | None, source_id_prefix: str | None) -> dict[str, Any] | None:
        """Build a ``where`` clause; ``None`` means the prefix matched nothing."""
        if source_id is not None:
            return {"source_id": source_id}
        source_ids = self._source_ids_with_prefix(source_id_prefix or "")
        if not source_ids:
            return None
        if len(source_ids) == 1:
            return {"source_id": source_ids[0]}
        return {"source_id": {"$in": source_ids}}

    # ------------------------------------------------------------------
    # IVectorStore implementation
    # ------------------------------------------------------------------

    async def upsert(self, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        try:
            for start in range(0, len(chunks), _UPSERT_BATCH):
                batch = chunks[start : start + _UPSERT_BATCH]
                self._collection.upsert(
                    ids=[c.id for c in batch],
                    embeddings=[c.embedding for c in batch],
                    documents=[c.content for c in batch],
                    metadatas=[self._chunk_to_metadata(c) for c in batch],
                )
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name="chromadb",
            ) from exc
        logger.info("chromadb_upsert", count=len(chunks), collection=self._collection_name)

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        scope: QueryScope | None = None,
    ) -> list[ScoredChunk]:
        try:
            total = self._collection.count()
            if total == 0 or top_k <= 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [embedding],
                "n_results": min(top_k, total),
                "include": ["metadatas", "documents", "distances"],
            }
            if scope and scope.source_id is not None:
                where = self._where_for(None, scope.source_id)
                if where is None:
                    return []
                kwargs["where"] = where
            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name="chromadb",
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [1.0] * len(ids)

        out: list[ScoredChunk] = []
        for chunk_id, meta, text, distance in zip(ids, metadatas, documents, distances):
            chunk = self._metadata_to_chunk(chunk_id, meta, text)
            out.append(ScoredChunk(**chunk.model_dump(), score=1.0 - float(distance)))
        logger.debug("chromadb_query", results_count=len(out), scoped=bool(scope and scope.source_id))
        return out

    async def delete(
        self,
        source_id: str | None = None,
        source_id_prefix: str | None = None,
    ) -> int:
        if (source_id is None) == (source_id_prefix is None):
            raise ValidationError("Provide exactly one of source_id or source_id_prefix.")
        try:
            where = self._where_for(source_id, source_id_prefix)
            if where is None:
                return 0
            existing = self._collection.get(where=where, include=[])
            ids = existing["ids"] or []
            if ids:
                self._collection.delete(ids=ids)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete failed: {exc}",
                provider_name="chromadb",
            ) from exc
        logger.info(
            "chromadb_delete",
            source_id=source_id,
            source_id_prefix=source_id_prefix,
            deleted_count=len(ids),
        )
        return len(ids)

    async def replace_source(self, source_id: str, chunks: list[Chunk]) -> None:
        # Write the new rows first, then drop ids the new version no longer has.
        await self.upsert(chunks)
        keep = {c.id for c in chunks}
        try:
            existing = self._collection.get(where={"source_id": source_id}, include=[])
            stale = [cid for cid in existing["ids"] or [] if cid not in keep]
            if stale:
                self._collection.delete(ids=stale)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB replace failed: {exc}",
                provider_name="chromadb",
            ) from exc
        logger.info(
            "chromadb_replace_source",
            source_id=source_id,
            count=len(chunks),
            stale_deleted=len(stale),
        )

    # ------------------------------------------------------------------
    # IStoreInspector implementation
    # ------------------------------------------------------------------

    def _grouped(self, prefix: str | None) -> dict[str, list[tuple[str, dict[str, Any]]]]:
        grouped: dict[str, list[tuple[str, dict[str, Any]]]] = {}
        for chunk_id, meta, _ in self._iter_metadata():
            sid = str(meta.get("source_id", ""))
            if prefix and not sid.startswith(prefix):
                continue
            grouped.setdefault(sid, []).append((chunk_id, meta))
        return grouped

    @staticmethod
    def _summary(source_id: str, rows: list[tuple[str, dict[str, Any]]]) -> StoredDocument:
        _, first = min(rows, key=lambda row: int(row[1].get("index", 0)))
        return StoredDocument(
            source_id=source_id,
            document_id=first.get("document_id"),
            chunk_count=len(rows),
            content=first.get("document_content"),
            metadata=json.loads(first.get("metadata_json") or "{}"),
        )

    async def list_documents(
        self,
        prefix: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> DocumentPage:
        grouped = self._grouped(prefix)
        source_ids = sorted(grouped)
        page = source_ids[offset : offset + limit]
        return DocumentPage(
            documents=[self._summary(sid, grouped[sid]) for sid in page],
            total=len(source_ids),
        )

    async def get_document(self, source_id: str) -> StoredDocumentDetail | None:
        rows = self._iter_metadata(where={"source_id": source_id}, include_documents=True)
        if not rows:
            return None
        chunks = sorted(
            (self._metadata_to_chunk(cid, meta, text) for cid, meta, text in rows),
            key=lambda c: c.index,
        )
        summary = self._summary(source_id, [(cid, meta) for cid, meta, _ in rows])
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
        if not chunk_ids:
            return 0
        try:
            existing = self._collection.get(ids=chunk_ids, include=[])
            ids = existing["ids"] or []
            if ids:
                self._collection.delete(ids=ids)
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB delete_chunks failed: {exc}",
                provider_name="chromadb",
            ) from exc
        return len(ids)

    async def store_stats(self) -> StoreStats:
        try:
            count = self._collection.count()
            dimensions = None
            if count:
                sample = self._collection.peek(limit=1)
                embeddings = sample.get("embeddings") if sample else None
                if embeddings is not None and len(embeddings) > 0:
                    dimensions = len(embeddings[0])
            documents = len(self._grouped(None))
        except Exception as exc:
            raise StoreError(
                message=f"ChromaDB stats failed: {exc}",
                provider_name="chromadb",
            ) from exc
        return StoreStats(
            backend="chromadb",
            document_count=documents,
            chunk_count=count,
            embedding_dimensions=dimensions,
        )
