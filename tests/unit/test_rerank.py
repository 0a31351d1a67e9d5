"""Unit tests for rerank selection and the reranker adapters."""

from __future__ import annotations

import json

import httpx
import pytest

from ragkit.models.results import RerankerOutput
from ragkit.providers.rerank.cohere import CohereReranker
from ragkit.providers.rerank.custom import CustomReranker
from ragkit.services.rerank import rerank_candidates
from ragkit.utils.errors import (
    ConfigurationError,
    RerankError,
    RerankerNotConfiguredError,
    ValidationError,
)


# ======================================================================
# rerank_candidates
# ======================================================================


class TestRerankCandidates:
    @pytest.mark.asyncio
    async def test_reorders_and_truncates(self, scored_chunks, reverse_reranker) -> None:
        result = await rerank_candidates(reverse_reranker, "q", scored_chunks, top_k=2)
        assert [c.id for c in result.chunks] == ["c2", "c1"]
        assert [item.index for item in result.ranking] == [2, 1, 0]
        assert result.meta.reranker_name == "reverse"
        assert result.meta.model == "reverse-1"
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_missing_reranker_skip(self, scored_chunks) -> None:
        result = await rerank_candidates(None, "q", scored_chunks, top_k=2, on_missing_reranker="skip")
        assert [c.id for c in result.chunks] == ["c0", "c1"]
        assert len(result.warnings) >= 1
        assert result.meta.reranker_name == "none"
        assert result.durations.rerank_ms == 0

    @pytest.mark.asyncio
    async def test_missing_reranker_throws_with_install_hint(self, scored_chunks) -> None:
        with pytest.raises(RerankerNotConfiguredError) as exc_info:
            await rerank_candidates(None, "q", scored_chunks)
        assert "pip install" in str(exc_info.value)
        assert "on_missing_reranker" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_candidates(self, reverse_reranker) -> None:
        result = await rerank_candidates(reverse_reranker, "q", [])
        assert result.chunks == []
        assert result.warnings

    @pytest.mark.asyncio
    async def test_top_k_clamped_to_candidate_count(self, scored_chunks, reverse_reranker) -> None:
        result = await rerank_candidates(reverse_reranker, "q", scored_chunks, top_k=99)
        assert len(result.chunks) == 3
        result = await rerank_candidates(reverse_reranker, "q", scored_chunks, top_k=0)
        assert len(result.chunks) == 1

    @pytest.mark.asyncio
    async def test_missing_text_throws(self, scored_chunks, reverse_reranker) -> None:
        blank = scored_chunks[1].model_copy(update={"content": ""})
        with pytest.raises(ValidationError, match="empty content"):
            await rerank_candidates(reverse_reranker, "q", [scored_chunks[0], blank])

    @pytest.mark.asyncio
    async def test_missing_text_skip_appends_after_ranked(self, scored_chunks, reverse_reranker) -> None:
        blank = scored_chunks[0].model_copy(update={"content": ""})
        candidates = [blank, scored_chunks[1], scored_chunks[2]]
        result = await rerank_candidates(reverse_reranker, "q", candidates, on_missing_text="skip")
        assert [item.index for item in result.ranking] == [2, 1, 0]
        assert result.ranking[-1].rerank_score is None
        assert any("no text" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_resolve_text_hook(self, scored_chunks, reverse_reranker) -> None:
        blank = scored_chunks[0].model_copy(update={"content": ""})
        seen: list[str] = []

        async def resolve(chunk):
            seen.append(chunk.id)
            return "resolved text"

        result = await rerank_candidates(
            reverse_reranker, "q", [blank, scored_chunks[1]], resolve_text=resolve
        )
        assert seen == ["c0"]
        assert [c.id for c in result.chunks] == ["c1", "c0"]

    @pytest.mark.asyncio
    async def test_reranker_exception_wrapped(self, scored_chunks) -> None:
        def broken(query, documents):
            raise RuntimeError("model offline")

        with pytest.raises(RerankError, match="model offline"):
            await rerank_candidates(CustomReranker("broken", broken), "q", scored_chunks)

    @pytest.mark.asyncio
    async def test_out_of_range_and_duplicate_indices_ignored(self, scored_chunks) -> None:
        reranker = CustomReranker("odd", lambda q, d: {"order": [1, 7, 1, 0]})
        result = await rerank_candidates(reranker, "q", scored_chunks)
        assert [item.index for item in result.ranking] == [1, 0]


# ======================================================================
# CustomReranker
# ======================================================================


class TestCustomReranker:
    @pytest.mark.asyncio
    async def test_sync_dict_output(self) -> None:
        reranker = CustomReranker("fn", lambda q, d: {"order": [1, 0]}, model="fn-1")
        output = await reranker.rerank("q", ["a", "b"])
        assert output.order == [1, 0]
        assert output.model == "fn-1"

    @pytest.mark.asyncio
    async def test_async_output(self) -> None:
        async def fn(query, documents):
            return RerankerOutput(order=[0], model="own")

        output = await CustomReranker("fn", fn, model="fallback").rerank("q", ["a"])
        assert output.model == "own"


# ======================================================================
# CohereReranker
# ======================================================================


def _cohere_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestCohereReranker:
    def test_requires_api_key(self) -> None:
        with pytest.raises(ConfigurationError):
            CohereReranker(api_key="")

    @pytest.mark.asyncio
    async def test_parses_results(self) -> None:
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"results": [{"index": 1, "relevance_score": 0.9}, {"index": 0, "relevance_score": 0.2}]},
            )

        async with _cohere_client(handler) as client:
            reranker = CohereReranker(api_key="co-key", http_client=client)
            output = await reranker.rerank("query", ["a", "b"])

        assert output.order == [1, 0]
        assert output.scores == [0.9, 0.2]
        assert output.model == "rerank-v3.5"
        assert captured["auth"] == "Bearer co-key"
        assert captured["body"] == {"model": "rerank-v3.5", "query": "query", "documents": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_truncates_to_max_documents(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            docs = json.loads(request.content)["documents"]
            return httpx.Response(200, json={"results": [{"index": i} for i in range(len(docs))]})

        async with _cohere_client(handler) as client:
            reranker = CohereReranker(api_key="k", max_documents=2, http_client=client)
            output = await reranker.rerank("q", ["a", "b", "c"])
        assert output.order == [0, 1]
        assert output.scores is None

    @pytest.mark.asyncio
    async def test_http_error_raises_rerank_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"message": "boom"})

        async with _cohere_client(handler) as client:
            reranker = CohereReranker(api_key="k", http_client=client)
            with pytest.raises(RerankError):
                await reranker.rerank("q", ["a"])
