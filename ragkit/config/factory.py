"""Build a fully wired :class:`ContextEngine` from settings and YAML config.

This is the only place that knows which concrete providers exist.  Optional
backends (ChromaDB, FastEmbed) are imported lazily so the core install
stays light; a missing backend raises :class:`MissingDependencyError` with
the extra to install.

Provider selection:
  - Embedding:    ``openai`` (needs OPENAI_API_KEY) | ``fastembed`` (local ONNX)
  - Vector store: ``memory`` | ``chromadb`` (persistent, on disk)
  - Reranker:     Cohere when COHERE_API_KEY is set, otherwise none
  - Splitter:     OpenAI chat model for semantic / agentic chunking, when keyed
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ragkit.config.loader import load_config
from ragkit.config.settings import Settings
from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.interfaces.reranker import IReranker
from ragkit.interfaces.text_splitter import TextSplitter
from ragkit.interfaces.vector_store import IVectorStore
from ragkit.models.chunks import ChunkingOptions
from ragkit.models.config import AssetProcessingConfig, EmbeddingProcessingConfig, StorageConfig
from ragkit.services.context_engine import ContextEngine, ContextEngineConfig
from ragkit.services.extraction.registry import default_extractors
from ragkit.utils.errors import ConfigurationError, MissingDependencyError

logger = structlog.get_logger(logger_name=__name__)


def _build_embedding_provider(settings: Settings, section: dict[str, Any]) -> IEmbeddingProvider:
    provider = section.get("provider", settings.embedding_provider)
    if provider == "openai":
        if not settings.openai_api_key:
            raise ConfigurationError(
                'embedding.provider is "openai" but OPENAI_API_KEY is not set.'
            )
        from ragkit.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(
            api_key=settings.openai_api_key,
            model=section.get("model", settings.openai_embedding_model),
            base_url=settings.openai_base_url,
        )
    if provider == "fastembed":
        from ragkit.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        return FastEmbedEmbeddingProvider(model_name=section.get("fastembed_model", settings.fastembed_model))
    raise ConfigurationError(f'Unknown embedding provider "{provider}". Use "openai" or "fastembed".')


def _build_vector_store(settings: Settings, section: dict[str, Any]) -> IVectorStore:
    provider = section.get("provider", settings.vector_store)
    if provider == "memory":
        from ragkit.providers.vector_store.memory_store import InMemoryVectorStore

        return InMemoryVectorStore()
    if provider == "chromadb":
        try:
            from ragkit.providers.vector_store.chromadb_store import ChromaVectorStore
        except ImportError as exc:
            raise MissingDependencyError(
                package="chromadb",
                install_hint='pip install "ragkit[chroma]"',
                component="ChromaDB vector store",
            ) from exc
        return ChromaVectorStore(
            persist_directory=section.get("persist_dir", settings.chromadb_persist_dir),
            collection_name=section.get("collection", settings.chromadb_collection),
        )
    raise ConfigurationError(f'Unknown vector store "{provider}". Use "memory" or "chromadb".')


def _build_reranker(
    settings: Settings, section: dict[str, Any], http_client: httpx.AsyncClient
) -> IReranker | None:
    if not settings.cohere_api_key:
        return None
    from ragkit.providers.rerank.cohere import CohereReranker

    return CohereReranker(
        api_key=settings.cohere_api_key,
        model=section.get("model", settings.cohere_rerank_model),
        http_client=http_client,
    )


def _build_text_splitter(settings: Settings, section: dict[str, Any]) -> TextSplitter | None:
    if not settings.openai_api_key:
        return None
    from ragkit.providers.llm.openai_splitter import OpenAITextSplitter

    return OpenAITextSplitter(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        default_model=section.get("model", settings.openai_text_model),
    )


def build_engine(
    settings: Settings | None = None,
    config: dict[str, Any] | None = None,
) -> ContextEngine:
    """Construct every provider and the engine that coordinates them.

    Parameters
    ----------
    settings:
        Environment settings; read fresh when omitted.
    config:
        Resolved configuration dict (see :func:`load_config`); loaded from
        ``config/config.yaml`` when omitted.

    Raises
    ------
    ConfigurationError
        For unknown provider names or a selected provider without credentials.
    MissingDependencyError
        When a selected backend's optional extra is not installed.
    """
    settings = settings or Settings()
    config = config if config is not None else load_config(settings=settings)

    embedding_section = config.get("embedding") or {}
    chunking_section = dict(config.get("chunking") or {})
    http_client = httpx.AsyncClient(timeout=30.0)

    embedding = _build_embedding_provider(settings, embedding_section)
    store = _build_vector_store(settings, config.get("vector_store") or {})
    reranker = _build_reranker(settings, config.get("rerank") or {}, http_client)
    splitter = _build_text_splitter(settings, chunking_section)
    transcriber = None
    if settings.openai_api_key:
        from ragkit.providers.transcription.whisper_api_provider import WhisperAPIProvider

        transcriber = WhisperAPIProvider(api_key=settings.openai_api_key, base_url=settings.openai_base_url)

    method = chunking_section.pop("method", settings.chunking_method)
    defaults = ChunkingOptions(
        chunk_size=chunking_section.get("chunk_size", settings.chunk_size),
        chunk_overlap=chunking_section.get("chunk_overlap", settings.chunk_overlap),
        min_chunk_size=chunking_section.get("min_chunk_size", settings.min_chunk_size),
        tokenizer=chunking_section.get("tokenizer", settings.tokenizer),
        model=chunking_section.get("model"),
    )
    embedding_processing = EmbeddingProcessingConfig(
        batch_size=embedding_section.get("batch_size", settings.embedding_batch_size),
        concurrency=embedding_section.get("concurrency", settings.embedding_concurrency),
        timeout_s=embedding_section.get("timeout_s", settings.embedding_timeout_s),
    )

    engine = ContextEngine(
        ContextEngineConfig(
            embedding=embedding,
            store=store,
            reranker=reranker,
            rerank_timeout_s=(config.get("rerank") or {}).get("timeout_s", settings.rerank_timeout_s),
            chunking_method=method,
            text_splitter=splitter,
            defaults=defaults,
            deterministic_ids=bool((config.get("ingest") or {}).get("deterministic_ids", False)),
            extractors=default_extractors(
                openai_api_key=settings.openai_api_key,
                openai_base_url=settings.openai_base_url,
                transcriber=transcriber,
            ),
            asset_processing=AssetProcessingConfig.model_validate(config.get("asset_processing") or {}),
            embedding_processing=embedding_processing,
            storage=StorageConfig.model_validate(config.get("storage") or {}),
            http_client=http_client,
            owns_http_client=True,
        )
    )
    logger.info(
        "engine_built",
        embedding=engine.embedding_model,
        store=type(store).__name__,
        reranker=reranker.name if reranker else None,
        chunking_method=method,
    )
    return engine
