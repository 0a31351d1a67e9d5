"""Unit tests for the embedding client and the embedding providers."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import numpy as np
import openai
import pytest

from ragkit.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from ragkit.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragkit.services.embedding_client import EmbeddingClient
from ragkit.utils.errors import EmbeddingProviderError


def _openai_response(vectors: list[list[float]], reverse: bool = False) -> SimpleNamespace:
    data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    if reverse:
        data.reverse()
    return SimpleNamespace(data=data, usage=SimpleNamespace(total_tokens=7))


# ======================================================================
# EmbeddingClient
# ======================================================================


class TestEmbeddingClient:
    @pytest.mark.asyncio
    async def test_embed_passes_through(self, mock_embedding_provider) -> None:
        client = EmbeddingClient(mock_embedding_provider)
        assert await client.embed("hello") == [0.1, 0.2, 0.3]
        assert client.name == "mock:embed"
        assert client.dimensions == 3

    @pytest.mark.asyncio
    async def test_embed_many_checks_count(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed_many = AsyncMock(return_value=[[0.1, 0.2, 0.3]])
        client = EmbeddingClient(mock_embedding_provider)
        with pytest.raises(EmbeddingProviderError, match="1 vectors for 2 inputs"):
            await client.embed_many(["a", "b"])

    @pytest.mark.asyncio
    async def test_embed_many_empty_input_skips_provider(self, mock_embedding_provider) -> None:
        client = EmbeddingClient(mock_embedding_provider)
        assert await client.embed_many([]) == []
        mock_embedding_provider.embed_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed = AsyncMock(return_value=[0.1, 0.2])
        client = EmbeddingClient(mock_embedding_provider)
        with pytest.raises(EmbeddingProviderError) as exc_info:
            await client.embed("x")
        assert exc_info.value.kind == "dimension"

    @pytest.mark.asyncio
    async def test_dimensions_learned_from_first_vector(self, mock_embedding_provider) -> None:
        mock_embedding_provider.dimensions = None
        mock_embedding_provider.embed = AsyncMock(side_effect=[[1.0, 2.0], [1.0, 2.0, 3.0]])
        client = EmbeddingClient(mock_embedding_provider)
        await client.embed("first")
        assert client.dimensions == 2
        with pytest.raises(EmbeddingProviderError):
            await client.embed("second")

    @pytest.mark.asyncio
    async def test_empty_vector_rejected(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed = AsyncMock(return_value=[])
        with pytest.raises(EmbeddingProviderError, match="empty vector"):
            await EmbeddingClient(mock_embedding_provider).embed("x")

    @pytest.mark.asyncio
    async def test_timeout(self, mock_embedding_provider) -> None:
        async def slow(_text):
            await asyncio.sleep(1)
            return [0.1, 0.2, 0.3]

        mock_embedding_provider.embed = slow
        client = EmbeddingClient(mock_embedding_provider, timeout_s=0.01)
        with pytest.raises(EmbeddingProviderError) as exc_info:
            await client.embed("x")
        assert exc_info.value.kind == "timeout"

    @pytest.mark.asyncio
    async def test_provider_exception_wrapped(self, mock_embedding_provider) -> None:
        mock_embedding_provider.embed = AsyncMock(side_effect=RuntimeError("boom"))
        with pytest.raises(EmbeddingProviderError, match="boom") as exc_info:
            await EmbeddingClient(mock_embedding_provider).embed("x")
        assert isinstance(exc_info.value.__cause__, RuntimeError)


# ======================================================================
# OpenAIEmbeddingProvider
# ======================================================================


class TestOpenAIEmbeddingProvider:
    def _provider(self, **kwargs) -> tuple[OpenAIEmbeddingProvider, MagicMock]:
        client = MagicMock()
        client.embeddings.create = AsyncMock(**kwargs)
        return OpenAIEmbeddingProvider(api_key="sk-test", client=client), client

    def test_name_and_dimensions(self) -> None:
        provider, _ = self._provider()
        assert provider.name == "openai:text-embedding-3-small"
        assert provider.dimensions == 1536
        assert provider.supports_batch is True
        assert provider.is_available() is True

    @pytest.mark.asyncio
    async def test_embed_many_orders_by_index(self) -> None:
        provider, client = self._provider(
            return_value=_openai_response([[1.0], [2.0], [3.0]], reverse=True)
        )
        assert await provider.embed_many(["a", "b", "c"]) == [[1.0], [2.0], [3.0]]
        client.embeddings.create.assert_awaited_once_with(
            input=["a", "b", "c"], model="text-embedding-3-small"
        )

    @pytest.mark.asyncio
    async def test_embed_single(self) -> None:
        provider, _ = self._provider(return_value=_openai_response([[0.5, 0.5]]))
        assert await provider.embed("hello") == [0.5, 0.5]

    @pytest.mark.asyncio
    async def test_empty_batch_makes_no_request(self) -> None:
        provider, client = self._provider()
        assert await provider.embed_many([]) == []
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        provider, _ = self._provider(side_effect=openai.APIConnectionError(request=request))
        with pytest.raises(EmbeddingProviderError, match="openai embedding API error"):
            await provider.embed_many(["a"])

    def test_compatible_base_url_changes_label(self) -> None:
        provider = OpenAIEmbeddingProvider(
            api_key="sk-test", model="BAAI/bge-base-en-v1.5", base_url="https://example.test/v1", client=MagicMock()
        )
        assert provider.name == "openai-compatible:BAAI/bge-base-en-v1.5"
        assert provider.dimensions == 768


# ======================================================================
# FastEmbedEmbeddingProvider
# ======================================================================


class TestFastEmbedEmbeddingProvider:
    def test_name_and_known_dimensions(self) -> None:
        provider = FastEmbedEmbeddingProvider()
        assert provider.name == "fastembed:BAAI/bge-small-en-v1.5"
        assert provider.dimensions == 384
        assert FastEmbedEmbeddingProvider("custom/model").dimensions is None

    @pytest.mark.asyncio
    async def test_embeds_through_loaded_model(self) -> None:
        provider = FastEmbedEmbeddingProvider()
        model = MagicMock()
        model.embed.side_effect = lambda batch: (np.array([float(len(t)), 1.0]) for t in batch)
        provider._model = model

        assert await provider.embed_many(["ab", "abcd"]) == [[2.0, 1.0], [4.0, 1.0]]
        assert await provider.embed("xyz") == [3.0, 1.0]
        assert await provider.embed_many([]) == []

    @pytest.mark.asyncio
    async def test_inference_failure_wrapped(self) -> None:
        provider = FastEmbedEmbeddingProvider()
        provider._model = MagicMock()
        provider._model.embed.side_effect = RuntimeError("onnx crashed")
        with pytest.raises(EmbeddingProviderError, match="Fastembed embedding error"):
            await provider.embed_many(["a"])
