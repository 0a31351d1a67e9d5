"""Shared pytest fixtures for the ragkit test suite."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.interfaces.reranker import IReranker
from ragkit.models.chunks import ChunkingOptions, ScoredChunk
from ragkit.models.results import RerankerOutput
from ragkit.providers.vector_store.memory_store import InMemoryVectorStore
from ragkit.services.context_engine import ContextEngine, ContextEngineConfig

_WORD_RE = re.compile(r"\w+")
_DIMS = 64


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class HashingEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embeddings: texts sharing words are similar."""

    def __init__(self, dims: int = _DIMS, supports_batch: bool = False) -> None:
        self._dims = dims
        self.supports_batch = supports_batch
        self.embed_calls: list[str] = []
        self.embed_many_calls: list[list[str]] = []

    @property
    def name(self) -> str:
        return "hashing:test"

    @property
    def dimensions(self) -> int:
        return self._dims

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * self._dims
        for word in _WORD_RE.findall(text.lower()):
            bucket = int(hashlib.sha256(word.encode()).hexdigest(), 16) % self._dims
            vec[bucket] += 1.0
        if not any(vec):
            vec[0] = 1e-6
        return vec

    async def embed(self, text: str) -> list[float]:
        self.embed_calls.append(text)
        return self.vector(text)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        self.embed_many_calls.append(list(texts))
        return [self.vector(t) for t in texts]


class ReverseReranker(IReranker):
    """Reranker that reverses candidate order."""

    @property
    def name(self) -> str:
        return "reverse"

    async def rerank(self, query: str, documents: list[str]) -> RerankerOutput:
        order = list(reversed(range(len(documents))))
        return RerankerOutput(order=order, scores=[float(i) for i in order], model="reverse-1")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def embedding_provider() -> HashingEmbeddingProvider:
    return HashingEmbeddingProvider()


@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def small_options() -> ChunkingOptions:
    """Chunking options small enough to split short test texts."""
    return ChunkingOptions(chunk_size=20, chunk_overlap=0, min_chunk_size=1)


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    mock = MagicMock(spec=IEmbeddingProvider)
    mock.name = "mock:embed"
    mock.dimensions = 3
    mock.supports_batch = False
    mock.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    mock.embed_many = AsyncMock(side_effect=lambda texts: [[0.1, 0.2, 0.3] for _ in texts])
    return mock


@pytest.fixture
def make_engine(embedding_provider, memory_store):
    """Factory building a ContextEngine over the hashing provider and memory store."""

    def _make(**overrides: Any) -> ContextEngine:
        config = ContextEngineConfig(
            embedding=overrides.pop("embedding", embedding_provider),
            store=overrides.pop("store", memory_store),
            extractors=overrides.pop("extractors", []),
            **overrides,
        )
        return ContextEngine(config)

    return _make


@pytest.fixture
def scored_chunks() -> list[ScoredChunk]:
    """Three retrieval candidates from three documents."""
    return [
        ScoredChunk(
            id=f"c{i}",
            document_id=f"d{i}",
            source_id=f"docs:{name}",
            index=0,
            content=text,
            score=1.0 - i * 0.1,
        )
        for i, (name, text) in enumerate(
            [("a", "alpha text"), ("b", "beta text"), ("c", "gamma text")]
        )
    ]


@pytest.fixture
def minimal_dataset() -> dict[str, Any]:
    return {
        "version": "1",
        "id": "sample",
        "defaults": {"scopePrefix": "eval:sample:", "topK": 3},
        "documents": [
            {"sourceId": "eval:sample:doc-cats", "content": "Cats purr and sleep in the sun all day."},
            {"sourceId": "eval:sample:doc-rockets", "content": "Rockets burn fuel to reach orbit around earth."},
        ],
        "queries": [
            {"id": "q1", "query": "why do cats purr", "relevant": {"sourceIds": ["eval:sample:doc-cats"]}},
            {"id": "q2", "query": "rocket fuel orbit", "relevant": {"sourceIds": ["eval:sample:doc-rockets"]}},
        ],
    }


@pytest.fixture
def reverse_reranker() -> ReverseReranker:
    return ReverseReranker()
