"""Unit tests for configuration loading and engine wiring."""

from __future__ import annotations

import pytest

from ragkit.config.factory import build_engine
from ragkit.config.loader import deep_merge, load_config
from ragkit.config.settings import Settings
from ragkit.providers.vector_store.memory_store import InMemoryVectorStore
from ragkit.utils.errors import ConfigurationError


def _settings(**overrides) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, **overrides)


# ======================================================================
# load_config
# ======================================================================


class TestLoadConfig:
    def test_yaml_values_survive_default_settings(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("chunking:\n  chunk_size: 256\n  method: markdown\n", encoding="utf-8")

        config = load_config(str(path), settings=_settings())

        assert config["chunking"]["chunk_size"] == 256
        assert config["chunking"]["method"] == "markdown"
        # Keys absent from YAML are filled from settings.
        assert config["chunking"]["chunk_overlap"] == 50
        assert config["vector_store"]["provider"] == "memory"

    def test_explicit_settings_override_yaml(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("chunking:\n  chunk_size: 256\nvector_store:\n  provider: chromadb\n", encoding="utf-8")

        config = load_config(str(path), settings=_settings(chunk_size=128, vector_store="memory"))

        assert config["chunking"]["chunk_size"] == 128
        assert config["vector_store"]["provider"] == "memory"

    def test_missing_file_yields_settings_values(self, tmp_path) -> None:
        config = load_config(str(tmp_path / "absent.yaml"), settings=_settings())
        assert config["embedding"]["provider"] == "openai"
        assert config["embedding"]["model"] == "text-embedding-3-small"
        assert config["logging"]["level"] == "INFO"

    def test_unrelated_yaml_sections_are_kept(self, tmp_path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("storage:\n  store_chunk_content: false\n", encoding="utf-8")
        config = load_config(str(path), settings=_settings())
        assert config["storage"] == {"store_chunk_content": False}

    def test_repo_config_loads(self, project_root) -> None:
        config = load_config(str(project_root / "config" / "config.yaml"), settings=_settings())
        assert config["ingest"]["deterministic_ids"] is True
        assert config["asset_processing"]["pdf"]["llm_extraction"]["enabled"] is False

    def test_rerank_timeout_from_environment(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("rerank:\n  timeout_s: 10.0\n", encoding="utf-8")
        assert load_config(str(path), settings=_settings())["rerank"]["timeout_s"] == 10.0

        monkeypatch.setenv("RERANK_TIMEOUT_S", "2.5")
        assert load_config(str(path), settings=_settings())["rerank"]["timeout_s"] == 2.5


class TestDeepMerge:
    def test_nested_merge_returns_copy(self) -> None:
        base = {"a": {"x": 1, "y": 2}, "b": 1}
        merged = deep_merge(base, {"a": {"y": 3}, "c": 4})

        assert merged == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}
        assert base == {"a": {"x": 1, "y": 2}, "b": 1}

    def test_none_overrides_are_skipped(self) -> None:
        merged = deep_merge({"a": {"x": 1}, "b": 2}, {"a": {"x": None}, "b": None})
        assert merged == {"a": {"x": 1}, "b": 2}

    def test_non_dict_replaces_dict(self) -> None:
        assert deep_merge({"a": {"x": 1}}, {"a": 5}) == {"a": 5}


# ======================================================================
# build_engine
# ======================================================================


class TestBuildEngine:
    def test_memory_store_with_openai(self) -> None:
        config = {
            "vector_store": {"provider": "memory"},
            "chunking": {"method": "markdown", "chunk_size": 200, "chunk_overlap": 20},
            "ingest": {"deterministic_ids": True},
            "storage": {"store_document_content": False},
        }
        engine = build_engine(_settings(openai_api_key="sk-test", openai_base_url="", cohere_api_key=""), config)

        assert isinstance(engine.store, InMemoryVectorStore)
        assert engine.embedding_model == "openai:text-embedding-3-small"
        assert engine.reranker is None
        assert engine.config.chunking_method == "markdown"
        assert engine.config.defaults.chunk_size == 200
        assert engine.config.defaults.chunk_overlap == 20
        assert engine.config.deterministic_ids is True
        assert engine.config.storage.store_document_content is False
        assert "file:text" in [e.name for e in engine.extractors]

    def test_cohere_key_wires_reranker(self) -> None:
        engine = build_engine(
            _settings(openai_api_key="sk-test", cohere_api_key="co-test"),
            {"rerank": {"model": "rerank-english-v3.0"}},
        )
        assert engine.reranker is not None
        assert engine.reranker.name == "cohere"

    def test_compatible_base_url_label(self) -> None:
        engine = build_engine(
            _settings(openai_api_key="sk-test", openai_base_url="http://localhost:8080/v1"),
            {"embedding": {"model": "bge-base"}},
        )
        assert engine.embedding_model == "openai-compatible:bge-base"

    @pytest.mark.asyncio
    async def test_engine_owns_and_closes_its_http_client(self) -> None:
        engine = build_engine(_settings(openai_api_key="sk-test"), {"rerank": {"timeout_s": 4.5}})
        client = engine.config.http_client

        assert engine.config.owns_http_client is True
        assert engine.config.rerank_timeout_s == 4.5
        await engine.aclose()
        assert client.is_closed

    def test_openai_without_key(self) -> None:
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            build_engine(_settings(openai_api_key=""), {"embedding": {"provider": "openai"}})

    def test_unknown_vector_store(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown vector store"):
            build_engine(_settings(openai_api_key="sk-test"), {"vector_store": {"provider": "pinecone"}})

    def test_unknown_embedding_provider(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown embedding provider"):
            build_engine(_settings(), {"embedding": {"provider": "word2vec"}})


# ======================================================================
# Settings
# ======================================================================


class TestSettings:
    def test_available_providers(self) -> None:
        assert _settings(openai_api_key="", cohere_api_key="").get_available_providers() == []
        assert _settings(openai_api_key="k", cohere_api_key="c").get_available_providers() == [
            "openai",
            "cohere",
        ]

    def test_env_variables_are_read(self, monkeypatch) -> None:
        monkeypatch.setenv("CHUNK_SIZE", "300")
        monkeypatch.setenv("VECTOR_STORE", "chromadb")
        settings = _settings()
        assert settings.chunk_size == 300
        assert settings.vector_store == "chromadb"
        assert "chunk_size" in settings.model_fields_set
