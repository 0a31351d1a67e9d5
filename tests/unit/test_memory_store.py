"""Unit tests for the in-memory vector store and its inspector methods."""

from __future__ import annotations

import pytest
import pytest_asyncio

from ragkit.models.chunks import Chunk, QueryScope
from ragkit.providers.vector_store.memory_store import InMemoryVectorStore
from ragkit.utils.errors import StoreError, ValidationError


def _chunk(cid: str, source_id: str, embedding: list[float] | None, index: int = 0) -> Chunk:
    return Chunk(
        id=cid,
        document_id=f"doc-{source_id}",
        source_id=source_id,
        index=index,
        content=f"content of {cid}",
        token_count=3,
        embedding=embedding,
    )


@pytest_asyncio.fixture
async def filled_store() -> InMemoryVectorStore:
    store = InMemoryVectorStore()
    await store.upsert(
        [
            _chunk("a0", "docs:a", [1.0, 0.0]),
            _chunk("a1", "docs:a", [0.0, 1.0], index=1),
            _chunk("b0", "docs:b", [1.0, 0.0]),
            _chunk("x0", "other:x", [0.7, 0.7]),
        ]
    )
    return store


class TestQuery:
    @pytest.mark.asyncio
    async def test_orders_by_cosine_similarity(self, filled_store) -> None:
        results = await filled_store.query([1.0, 0.0], top_k=4)
        assert [r.id for r in results] == ["a0", "b0", "x0", "a1"]
        assert results[0].score == pytest.approx(1.0)
        assert results[-1].score == pytest.approx(0.0)
        assert results[0].embedding is None

    @pytest.mark.asyncio
    async def test_ties_keep_insertion_order(self, filled_store) -> None:
        results = await filled_store.query([2.0, 0.0], top_k=2)
        assert [r.id for r in results] == ["a0", "b0"]

    @pytest.mark.asyncio
    async def test_scope_is_a_prefix(self, filled_store) -> None:
        results = await filled_store.query([1.0, 0.0], top_k=10, scope=QueryScope(source_id="docs:"))
        assert {r.source_id for r in results} == {"docs:a", "docs:b"}

    @pytest.mark.asyncio
    async def test_top_k_limits_results(self, filled_store) -> None:
        assert len(await filled_store.query([1.0, 0.0], top_k=1)) == 1
        assert await filled_store.query([1.0, 0.0], top_k=0) == []

    @pytest.mark.asyncio
    async def test_empty_store(self) -> None:
        assert await InMemoryVectorStore().query([1.0], top_k=3) == []

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, filled_store) -> None:
        with pytest.raises(StoreError):
            await filled_store.query([1.0, 0.0, 0.0], top_k=2)


class TestUpsertAndDelete:
    @pytest.mark.asyncio
    async def test_upsert_replaces_by_id(self, filled_store) -> None:
        await filled_store.upsert([_chunk("a0", "docs:a", [0.0, 1.0])])
        assert len(filled_store) == 4
        results = await filled_store.query([0.0, 1.0], top_k=1)
        assert results[0].id in {"a0", "a1"}

    @pytest.mark.asyncio
    async def test_upsert_requires_embedding(self) -> None:
        with pytest.raises(StoreError, match="no embedding"):
            await InMemoryVectorStore().upsert([_chunk("z", "docs:z", None)])

    @pytest.mark.asyncio
    async def test_delete_by_source_id(self, filled_store) -> None:
        assert await filled_store.delete(source_id="docs:a") == 2
        assert len(filled_store) == 2

    @pytest.mark.asyncio
    async def test_delete_by_prefix(self, filled_store) -> None:
        assert await filled_store.delete(source_id_prefix="docs:") == 3
        assert len(filled_store) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [{}, {"source_id": "docs:a", "source_id_prefix": "docs:"}])
    async def test_delete_requires_exactly_one_selector(self, filled_store, kwargs) -> None:
        with pytest.raises(ValidationError):
            await filled_store.delete(**kwargs)


class TestReplaceSource:
    @pytest.mark.asyncio
    async def test_drops_rows_missing_from_new_version(self, filled_store) -> None:
        await filled_store.replace_source("docs:a", [_chunk("a9", "docs:a", [0.5, 0.5])])

        detail = await filled_store.get_document("docs:a")
        assert [c.id for c in detail.chunks] == ["a9"]
        assert len(filled_store) == 3

    @pytest.mark.asyncio
    async def test_other_sources_untouched(self, filled_store) -> None:
        await filled_store.replace_source("docs:a", [])
        assert await filled_store.get_document("docs:a") is None
        assert (await filled_store.get_document("docs:b")).chunk_count == 1
        assert (await filled_store.get_document("other:x")).chunk_count == 1

    @pytest.mark.asyncio
    async def test_exact_source_match_only(self, filled_store) -> None:
        await filled_store.upsert([_chunk("aa0", "docs:aa", [1.0, 0.0])])
        await filled_store.replace_source("docs:a", [_chunk("a0", "docs:a", [1.0, 0.0])])
        assert (await filled_store.get_document("docs:aa")).chunk_count == 1

    @pytest.mark.asyncio
    async def test_bad_batch_keeps_previous_rows(self, filled_store) -> None:
        with pytest.raises(StoreError, match="no embedding"):
            await filled_store.replace_source("docs:a", [_chunk("a9", "docs:a", None)])
        assert (await filled_store.get_document("docs:a")).chunk_count == 2


class TestInspector:
    @pytest.mark.asyncio
    async def test_list_documents_paginates(self, filled_store) -> None:
        page = await filled_store.list_documents(limit=2)
        assert page.total == 3
        assert [d.source_id for d in page.documents] == ["docs:a", "docs:b"]
        assert page.documents[0].chunk_count == 2

        rest = await filled_store.list_documents(limit=2, offset=2)
        assert [d.source_id for d in rest.documents] == ["other:x"]

    @pytest.mark.asyncio
    async def test_list_documents_with_prefix(self, filled_store) -> None:
        page = await filled_store.list_documents(prefix="other:")
        assert page.total == 1

    @pytest.mark.asyncio
    async def test_get_document(self, filled_store) -> None:
        detail = await filled_store.get_document("docs:a")
        assert detail is not None
        assert [c.id for c in detail.chunks] == ["a0", "a1"]
        assert await filled_store.get_document("missing") is None

    @pytest.mark.asyncio
    async def test_delete_chunks_counts_existing_only(self, filled_store) -> None:
        assert await filled_store.delete_chunks(["a0", "nope"]) == 1

    @pytest.mark.asyncio
    async def test_store_stats(self, filled_store) -> None:
        stats = await filled_store.store_stats()
        assert stats.backend == "memory"
        assert stats.document_count == 3
        assert stats.chunk_count == 4
        assert stats.embedding_dimensions == 2
