"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers, later layers overriding earlier ones:

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file          -- local developer overrides (not committed)
  3. environment variables  -- set at deploy / CI time

Only settings that differ from their defaults are layered over the YAML,
so a value in ``config.yaml`` survives unless the environment sets it.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from ragkit.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
              an empty base configuration.
        settings: Pre-built settings; a fresh ``Settings()`` is read when
                  omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    explicit = settings.model_fields_set
    env_values = {
        "embedding": {
            "provider": settings.embedding_provider,
            "model": settings.openai_embedding_model,
            "fastembed_model": settings.fastembed_model,
            "batch_size": settings.embedding_batch_size,
            "concurrency": settings.embedding_concurrency,
            "timeout_s": settings.embedding_timeout_s,
        },
        "vector_store": {
            "provider": settings.vector_store,
            "persist_dir": settings.chromadb_persist_dir,
            "collection": settings.chromadb_collection,
        },
        "chunking": {
            "method": settings.chunking_method,
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "min_chunk_size": settings.min_chunk_size,
            "tokenizer": settings.tokenizer,
            "model": settings.openai_text_model,
        },
        "rerank": {
            "model": settings.cohere_rerank_model,
            "timeout_s": settings.rerank_timeout_s,
        },
        "logging": {
            "level": settings.log_level,
        },
    }
    field_of = {
        ("embedding", "provider"): "embedding_provider",
        ("embedding", "model"): "openai_embedding_model",
        ("embedding", "fastembed_model"): "fastembed_model",
        ("embedding", "batch_size"): "embedding_batch_size",
        ("embedding", "concurrency"): "embedding_concurrency",
        ("embedding", "timeout_s"): "embedding_timeout_s",
        ("vector_store", "provider"): "vector_store",
        ("vector_store", "persist_dir"): "chromadb_persist_dir",
        ("vector_store", "collection"): "chromadb_collection",
        ("chunking", "method"): "chunking_method",
        ("chunking", "chunk_size"): "chunk_size",
        ("chunking", "chunk_overlap"): "chunk_overlap",
        ("chunking", "min_chunk_size"): "min_chunk_size",
        ("chunking", "tokenizer"): "tokenizer",
        ("chunking", "model"): "openai_text_model",
        ("rerank", "model"): "cohere_rerank_model",
        ("rerank", "timeout_s"): "rerank_timeout_s",
        ("logging", "level"): "log_level",
    }

    # YAML wins over Settings defaults; explicitly set env values win over YAML.
    env_overrides: dict[str, dict[str, Any]] = {}
    for section, values in env_values.items():
        for key, value in values.items():
            base_section = yaml_config.get(section) or {}
            if field_of[(section, key)] in explicit or key not in base_section:
                env_overrides.setdefault(section, {})[key] = value

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def deep_merge(base: dict, overrides: dict) -> dict:
    """Return a merged copy of *base* and *overrides*; ``None`` overrides are skipped."""
    merged = copy.deepcopy(base)
    _deep_merge(merged, _drop_none(overrides))
    return merged


def _drop_none(value: dict) -> dict:
    return {
        k: _drop_none(v) if isinstance(v, dict) else v
        for k, v in value.items()
        if v is not None
    }
