"""Public interface definitions for every pluggable collaborator.

The context engine talks to embedding services, vector stores, rerankers,
LLM splitters and transcription backends only through the abstract base
classes defined here.  Concrete adapters live in ``ragkit/providers/`` and
are injected through :class:`~ragkit.services.context_engine.ContextEngineConfig`
(or built from settings by :func:`ragkit.config.factory.build_engine`).
Tests inject mocks built with ``MagicMock(spec=...)`` against the same
interfaces.

CONCRETE PROVIDER MAP:
    Interface               ->  Concrete implementations (in ragkit/providers/)
    -------------------------------------------------------------------------
    IEmbeddingProvider      ->  OpenAIEmbeddingProvider, FastEmbedEmbeddingProvider
    IVectorStore            ->  InMemoryVectorStore, ChromaVectorStore
    IStoreInspector         ->  InMemoryVectorStore, ChromaVectorStore
    IReranker               ->  CohereReranker, CustomReranker
    TextSplitter            ->  OpenAITextSplitter
    ITranscriptionProvider  ->  WhisperAPIProvider
"""

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.interfaces.reranker import IReranker
from ragkit.interfaces.store_inspector import IStoreInspector
from ragkit.interfaces.text_splitter import TextSplitter
from ragkit.interfaces.transcription_provider import ITranscriptionProvider
from ragkit.interfaces.vector_store import IVectorStore

__all__ = [
    "IEmbeddingProvider",
    "IReranker",
    "IStoreInspector",
    "ITranscriptionProvider",
    "IVectorStore",
    "TextSplitter",
]
