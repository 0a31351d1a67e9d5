"""Orchestrator for ingest, retrieve, rerank and delete.

Pipeline stages for ingest: **chunk -> extract -> embed -> store**.

The :class:`ContextEngine` coordinates its collaborators (chunker,
extractors, embedding provider, vector store, optional reranker) without
any of them knowing about each other.  All collaborators are injected
through :class:`ContextEngineConfig`, so providers can be swapped (OpenAI
-> FastEmbed, in-memory -> ChromaDB) without changing this class.

    1. Chunker -- splits the document text into ordered ChunkText items
    2. Extractors -- turn assets (PDF, audio, office files...) into text,
       which is chunked the same way; chunk indices continue across assets
    3. EmbeddingClient -- batched, concurrency-bounded vector generation
    4. IVectorStore -- the embedded chunks replace the source's previous rows

Nothing is written to the store unless every chunk was embedded.
"""

from __future__ import annotations

import asyncio
import hashlib
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
import pydantic
import structlog

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.interfaces.reranker import IReranker
from ragkit.interfaces.text_splitter import TextSplitter
from ragkit.interfaces.vector_store import IVectorStore
from ragkit.models.assets import Asset
from ragkit.models.chunks import Chunk, ChunkingOptions, ChunkText, QueryScope, ScoredChunk
from ragkit.models.config import (
    AssetProcessingConfig,
    EmbeddingProcessingConfig,
    StorageConfig,
    resolve_asset_processing,
)
from ragkit.models.results import (
    IngestDurations,
    IngestPlan,
    IngestResult,
    IngestWarning,
    PlannedChunk,
    RerankResult,
    RetrieveDurations,
    RetrieveResult,
)
from ragkit.services.chunking.registry import (
    Chunker,
    ChunkerRegistry,
    default_chunker_registry,
    run_chunker,
)
from ragkit.services.embedding_client import EmbeddingClient
from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.services.extraction.registry import default_extractors
from ragkit.services.extraction.runner import AssetOutcome, extract_asset, plan_asset
from ragkit.services.rerank import (
    DEFAULT_RERANK_TIMEOUT_S,
    MissingPolicy,
    TextResolver,
    rerank_candidates,
)
from ragkit.utils.concurrency import throttled_gather
from ragkit.utils.errors import IngestError, ValidationError
from ragkit.utils.timing import elapsed_ms, now

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_TOP_K = 8


def _uuid4() -> str:
    return str(uuid.uuid4())


def deterministic_document_id(source_id: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"ragkit:{source_id}"))


def deterministic_chunk_id(source_id: str, index: int, content: str) -> str:
    """Stable chunk id: identical content at the same position maps to the same id."""
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"ragkit:{source_id}:{index}:{digest}"))


@dataclass
class ContextEngineConfig:
    """Everything a :class:`ContextEngine` is built from.

    Only ``embedding`` and ``store`` are required.  ``chunker`` overrides
    ``chunking_method``; ``extractors`` defaults to
    :func:`~ragkit.services.extraction.registry.default_extractors`.
    With ``deterministic_ids`` set, document and chunk ids are derived
    from the source id, chunk index and content, so re-ingesting the same
    document reuses the same ids. Either way, ingest replaces every chunk
    the source held before.
    With ``owns_http_client`` set, :meth:`ContextEngine.aclose` closes
    ``http_client``.
    """

    embedding: IEmbeddingProvider
    store: IVectorStore
    reranker: IReranker | None = None
    rerank_timeout_s: float | None = DEFAULT_RERANK_TIMEOUT_S
    chunker: Chunker | None = None
    chunking_method: str = "recursive"
    chunker_registry: ChunkerRegistry | None = None
    text_splitter: TextSplitter | None = None
    defaults: ChunkingOptions = field(default_factory=ChunkingOptions)
    id_generator: Callable[[], str] = _uuid4
    deterministic_ids: bool = False
    extractors: list[AssetExtractor] | None = None
    asset_processing: AssetProcessingConfig = field(default_factory=AssetProcessingConfig)
    embedding_processing: EmbeddingProcessingConfig = field(default_factory=EmbeddingProcessingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    http_client: httpx.AsyncClient | None = None
    owns_http_client: bool = False


@dataclass
class _PreparedChunk:
    chunk: Chunk
    text: str


class ContextEngine:
    """Ingest documents into a vector store and query them back.

    Parameters
    ----------
    config:
        Collaborators and processing policy; see :class:`ContextEngineConfig`.
    """

    def __init__(self, config: ContextEngineConfig) -> None:
        self._config = config
        if config.chunker is not None:
            self._chunker: Chunker = config.chunker
        else:
            registry = config.chunker_registry or default_chunker_registry(config.text_splitter)
            self._chunker = registry.resolve(config.chunking_method, config.defaults)
        self._extractors = (
            list(config.extractors) if config.extractors is not None else default_extractors()
        )
        self._embedding = EmbeddingClient(
            config.embedding, timeout_s=config.embedding_processing.timeout_s
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> ContextEngineConfig:
        return self._config

    @property
    def store(self) -> IVectorStore:
        return self._config.store

    @property
    def reranker(self) -> IReranker | None:
        return self._config.reranker

    @property
    def embedding_model(self) -> str:
        return self._embedding.name

    @property
    def extractors(self) -> list[AssetExtractor]:
        return list(self._extractors)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        source_id: str,
        content: str = "",
        assets: Sequence[Asset] = (),
        metadata: dict[str, Any] | None = None,
        chunking: ChunkingOptions | dict[str, Any] | None = None,
        asset_processing: AssetProcessingConfig | dict[str, Any] | None = None,
    ) -> IngestResult:
        """Chunk, embed and store one document and its assets.

        Raises
        ------
        ValidationError
            If *source_id* is empty or the chunking options are invalid.
        IngestError
            If a stage aborts; ``stage`` tells which, and the original
            exception is chained.
        """
        if not source_id:
            raise ValidationError("source_id must be a non-empty string.")
        total_start = now()
        metadata = dict(metadata or {})
        options = self._chunking_options(chunking, source_id, metadata)
        processing = resolve_asset_processing(self._config.asset_processing, asset_processing)
        document_id = (
            deterministic_document_id(source_id) if self._config.deterministic_ids else self._config.id_generator()
        )
        document_content = content if self._config.storage.store_document_content else None

        # Stage 1-2: chunk the text, then extract and chunk every asset.
        chunking_start = now()
        prepared: list[_PreparedChunk] = []
        warnings: list[IngestWarning] = []

        base_chunks = await self._chunk(content, options)
        for c in base_chunks:
            prepared.append(
                self._prepare(source_id, document_id, c.index, c.content, c.token_count, metadata, document_content)
            )

        next_index = len(base_chunks)
        outcomes = await self._extract_assets(list(assets), processing)
        for outcome in outcomes:
            if outcome.warning is not None:
                warnings.append(outcome.warning)
                continue
            asset_meta = self._asset_metadata(outcome, metadata)
            for item in outcome.texts:
                item_meta = {**asset_meta, "label": item.label}
                if item.time_range_sec is not None:
                    item_meta["time_range_sec"] = list(item.time_range_sec)
                item_chunks = await self._chunk(item.content, options)
                for c in item_chunks:
                    prepared.append(
                        self._prepare(
                            source_id,
                            document_id,
                            next_index + c.index,
                            c.content,
                            c.token_count,
                            item_meta,
                            document_content,
                        )
                    )
                next_index += len(item_chunks)
        chunking_ms = elapsed_ms(chunking_start)

        # Stage 3: embed.
        embedding_start = now()
        vectors = await self._embed_all([p.text for p in prepared])
        embedded = [p.chunk.model_copy(update={"embedding": v}) for p, v in zip(prepared, vectors)]
        embedding_ms = elapsed_ms(embedding_start)

        # Stage 4: store. The new chunks replace whatever the source held before.
        storage_start = now()
        try:
            await self._config.store.replace_source(source_id, embedded)
        except Exception as exc:
            raise IngestError(
                message=f"Storing chunks for {source_id!r} failed: {exc}", stage="store"
            ) from exc
        storage_ms = elapsed_ms(storage_start)

        result = IngestResult(
            document_id=document_id,
            chunk_count=len(embedded),
            embedding_model=self._embedding.name,
            warnings=warnings,
            durations=IngestDurations(
                total_ms=elapsed_ms(total_start),
                chunking_ms=chunking_ms,
                embedding_ms=embedding_ms,
                storage_ms=storage_ms,
            ),
        )
        logger.info(
            "ingest_complete",
            source_id=source_id,
            document_id=document_id,
            chunks=result.chunk_count,
            assets=len(assets),
            warnings=len(warnings),
            total_ms=round(result.durations.total_ms, 2),
        )
        return result

    async def plan_ingest(
        self,
        source_id: str,
        content: str = "",
        assets: Sequence[Asset] = (),
        metadata: dict[str, Any] | None = None,
        chunking: ChunkingOptions | dict[str, Any] | None = None,
        asset_processing: AssetProcessingConfig | dict[str, Any] | None = None,
    ) -> IngestPlan:
        """Dry run of :meth:`ingest`: chunk the text and route the assets.

        Nothing is embedded, fetched, extracted or written.  Each asset
        is matched against the extractor chain to show which extractors
        would be tried; assets no extractor takes get the warning ingest
        would record.  LLM-guided chunking methods still call their
        splitter.
        """
        if not source_id:
            raise ValidationError("source_id must be a non-empty string.")
        metadata = dict(metadata or {})
        options = self._chunking_options(chunking, source_id, metadata)
        processing = resolve_asset_processing(self._config.asset_processing, asset_processing)

        chunking_start = now()
        chunks = await self._chunk(content, options)
        chunking_ms = elapsed_ms(chunking_start)

        ctx = ExtractionContext(asset_processing=processing)
        asset_plans = [plan_asset(asset, self._extractors, ctx) for asset in assets]
        plan = IngestPlan(
            source_id=source_id,
            document_id=deterministic_document_id(source_id) if self._config.deterministic_ids else None,
            chunks=[PlannedChunk(index=c.index, content=c.content, token_count=c.token_count) for c in chunks],
            assets=asset_plans,
            warnings=[p.warning for p in asset_plans if p.warning is not None],
            chunking_ms=chunking_ms,
        )
        logger.info(
            "ingest_planned",
            source_id=source_id,
            chunks=len(plan.chunks),
            assets=len(plan.assets),
            warnings=len(plan.warnings),
        )
        return plan

    async def retrieve(
        self,
        query: str,
        top_k: int = DEFAULT_TOP_K,
        scope: QueryScope | str | None = None,
    ) -> RetrieveResult:
        """Embed *query* and return the ``top_k`` most similar chunks.

        *scope* restricts results to source ids starting with a prefix; a
        bare string is taken as that prefix.
        """
        total_start = now()
        if isinstance(scope, str):
            scope = QueryScope(source_id=scope)

        embedding_start = now()
        vector = await self._embedding.embed(query)
        embedding_ms = elapsed_ms(embedding_start)

        retrieval_start = now()
        chunks = await self._config.store.query(vector, top_k, scope)
        retrieval_ms = elapsed_ms(retrieval_start)

        total_ms = elapsed_ms(total_start)
        logger.info(
            "retrieve_complete",
            top_k=top_k,
            scope=scope.source_id if scope else None,
            results=len(chunks),
            embedding_ms=round(embedding_ms, 2),
            retrieval_ms=round(retrieval_ms, 2),
        )
        return RetrieveResult(
            chunks=chunks,
            embedding_model=self._embedding.name,
            durations=RetrieveDurations(
                total_ms=total_ms, embedding_ms=embedding_ms, retrieval_ms=retrieval_ms
            ),
        )

    async def rerank(
        self,
        query: str,
        candidates: Sequence[ScoredChunk],
        top_k: int | None = None,
        on_missing_reranker: MissingPolicy = "throw",
        on_missing_text: MissingPolicy = "throw",
        resolve_text: TextResolver | None = None,
    ) -> RerankResult:
        """Rerank retrieval candidates with the configured reranker.

        See :func:`ragkit.services.rerank.rerank_candidates`.  The reranker
        call is bounded by ``ContextEngineConfig.rerank_timeout_s``.
        """
        return await rerank_candidates(
            self._config.reranker,
            query,
            candidates,
            top_k=top_k,
            on_missing_reranker=on_missing_reranker,
            on_missing_text=on_missing_text,
            resolve_text=resolve_text,
            timeout_s=self._config.rerank_timeout_s,
        )

    async def delete(
        self,
        source_id: str | None = None,
        source_id_prefix: str | None = None,
    ) -> int:
        """Delete every chunk of one source id, or of all source ids with a prefix.

        Exactly one of the two arguments must be given.
        """
        if (source_id is None) == (source_id_prefix is None):
            raise ValidationError('Provide exactly one of "source_id" or "source_id_prefix".')
        start = now()
        deleted = await self._config.store.delete(source_id=source_id, source_id_prefix=source_id_prefix)
        logger.info(
            "delete_complete",
            source_id=source_id,
            source_id_prefix=source_id_prefix,
            deleted=deleted,
            duration_ms=round(elapsed_ms(start), 2),
        )
        return deleted

    async def aclose(self) -> None:
        """Release the shared HTTP client when this engine owns it."""
        client = self._config.http_client
        if client is not None and self._config.owns_http_client and not client.is_closed:
            await client.aclose()
            logger.debug("engine_closed", message="HTTP client closed")

    async def __aenter__(self) -> ContextEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _chunking_options(
        self,
        overrides: ChunkingOptions | dict[str, Any] | None,
        source_id: str,
        metadata: dict[str, Any],
    ) -> ChunkingOptions:
        base = self._config.defaults.model_dump()
        if isinstance(overrides, ChunkingOptions):
            base.update(overrides.model_dump(exclude_unset=True))
        elif overrides:
            base.update({k: v for k, v in overrides.items() if v is not None})
        base["source_id"] = source_id
        base["metadata"] = metadata
        try:
            return ChunkingOptions.model_validate(base)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid chunking options: {exc}") from exc

    async def _chunk(self, text: str, options: ChunkingOptions) -> list[ChunkText]:
        try:
            return await run_chunker(self._chunker, text, options)
        except Exception as exc:
            raise IngestError(message=f"Chunking failed: {exc}", stage="chunk") from exc

    def _prepare(
        self,
        source_id: str,
        document_id: str,
        index: int,
        text: str,
        token_count: int,
        metadata: dict[str, Any],
        document_content: str | None,
    ) -> _PreparedChunk:
        chunk_id = (
            deterministic_chunk_id(source_id, index, text)
            if self._config.deterministic_ids
            else self._config.id_generator()
        )
        chunk = Chunk(
            id=chunk_id,
            document_id=document_id,
            source_id=source_id,
            index=index,
            content=text if self._config.storage.store_chunk_content else "",
            token_count=token_count,
            metadata=metadata,
            document_content=document_content,
        )
        return _PreparedChunk(chunk=chunk, text=text)

    @staticmethod
    def _asset_metadata(outcome: AssetOutcome, metadata: dict[str, Any]) -> dict[str, Any]:
        asset = outcome.asset
        meta: dict[str, Any] = {
            **metadata,
            **asset.metadata,
            "asset_kind": asset.kind,
            "asset_id": asset.asset_id,
            "extractor": outcome.extractor,
        }
        if asset.resolved_uri:
            meta["asset_uri"] = asset.resolved_uri
        if asset.media_type:
            meta["asset_media_type"] = asset.media_type
        return meta

    async def _extract_assets(
        self,
        assets: list[Asset],
        processing: AssetProcessingConfig,
    ) -> list[AssetOutcome]:
        if not assets:
            return []
        ctx = ExtractionContext(asset_processing=processing, http_client=self._config.http_client)
        semaphore = asyncio.Semaphore(processing.concurrency)
        results = await throttled_gather(
            [extract_asset(asset, self._extractors, ctx) for asset in assets],
            semaphore=semaphore,
        )
        outcomes: list[AssetOutcome] = []
        for asset, result in zip(assets, results):
            if isinstance(result, BaseException):
                raise IngestError(
                    message=f"Asset {asset.asset_id!r} ({asset.kind}) failed: {result}",
                    stage="extract",
                ) from result
            outcomes.append(result)
        return outcomes

    async def _embed_all(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in order, in batches when the provider supports it."""
        if not texts:
            return []
        proc = self._config.embedding_processing
        semaphore = asyncio.Semaphore(proc.concurrency)

        if self._embedding.supports_batch:
            batches = [texts[i : i + proc.batch_size] for i in range(0, len(texts), proc.batch_size)]
            results = await throttled_gather(
                [self._embedding.embed_many(batch) for batch in batches], semaphore=semaphore
            )
        else:
            results = await throttled_gather(
                [self._embedding.embed(text) for text in texts], semaphore=semaphore
            )

        for result in results:
            if isinstance(result, BaseException):
                raise IngestError(message=f"Embedding failed: {result}", stage="embed") from result

        if self._embedding.supports_batch:
            vectors = [vector for batch in results for vector in batch]
        else:
            vectors = list(results)
        logger.debug("embedding_batch", chunks=len(texts), calls=len(results))
        return vectors
