"""Abstract base class for vector stores.

A vector store persists embedded chunks and answers similarity queries.
The contract is deliberately small: upsert, scoped query and delete.
Richer inspection (listing documents, stats) lives on
:class:`~ragkit.interfaces.store_inspector.IStoreInspector`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragkit.models.chunks import Chunk, QueryScope, ScoredChunk


# Concrete implementations (ragkit/providers/vector_store/):
#   InMemoryVectorStore -- numpy cosine similarity, process-local
#   ChromaVectorStore   -- chromadb persistent collection, cosine space
class IVectorStore(ABC):
    """Contract for vector-store services used by the context engine.

    All methods are async so network-backed stores do not block the event
    loop.  Failures surface as :class:`~ragkit.utils.errors.StoreError`.
    """

    @abstractmethod
    async def upsert(self, chunks: list[Chunk]) -> None:
        """Insert or replace embedded chunks.

        Parameters
        ----------
        chunks:
            Chunks with ``embedding`` set.  ``chunk.id`` is the primary
            key: upserting an existing id replaces the stored row, so
            repeated ingestion with deterministic ids creates no
            duplicates.
        """

    @abstractmethod
    async def query(
        self,
        embedding: list[float],
        top_k: int,
        scope: QueryScope | None = None,
    ) -> list[ScoredChunk]:
        """Return at most *top_k* chunks most similar to *embedding*.

        Results are ordered by descending score; ties keep insertion
        order.  When ``scope.source_id`` is set, only chunks whose
        ``source_id`` starts with it are considered.
        """

    @abstractmethod
    async def delete(
        self,
        source_id: str | None = None,
        source_id_prefix: str | None = None,
    ) -> int:
        """Delete chunks by exact source id or by source id prefix.

        Returns
        -------
        int
            The number of chunks deleted.
        """

    async def replace_source(self, source_id: str, chunks: list[Chunk]) -> None:
        """Replace every stored chunk of *source_id* with *chunks*.

        Re-ingesting a source must not leave rows from its previous
        version behind, whatever ids those rows had.  The default deletes
        then upserts; stores that can do better override it.
        """
        await self.delete(source_id=source_id)
        if chunks:
            await self.upsert(chunks)
