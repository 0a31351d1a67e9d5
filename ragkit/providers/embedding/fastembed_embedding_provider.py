"""Local ONNX-based embedding provider using fastembed.

Wraps the ``fastembed`` library to implement :class:`IEmbeddingProvider`
using ONNX Runtime, with no PyTorch dependency.  Runs on CPU; model weights
are downloaded on first use and cached locally.  Inference runs in a
worker thread so the event loop stays responsive.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.utils.errors import EmbeddingProviderError, MissingDependencyError

logger = structlog.get_logger(logger_name=__name__)

# Known model dimensions for fastembed-supported models.
_MODEL_DIMENSIONS: dict[str, int] = {
    "intfloat/multilingual-e5-large": 1024,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-small-en-v1.5": 384,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
}

_DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
_BATCH_LIMIT = 64


class FastEmbedEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by fastembed (ONNX Runtime).

    The ONNX model is loaded on first use (lazy initialization).
    """

    supports_batch = True

    def __init__(self, model_name: str | None = None) -> None:
        self._model_name = model_name or _DEFAULT_MODEL
        self._dimensions = _MODEL_DIMENSIONS.get(self._model_name)
        self._model: Any = None

    def _load_model(self) -> Any:
        if self._model is not None:
            return self._model
        try:
            from fastembed import TextEmbedding
        except ImportError as exc:
            raise MissingDependencyError(
                package="fastembed",
                install_hint='pip install "ragkit[fastembed]"',
                component="FastEmbedEmbeddingProvider",
            ) from exc

        logger.info("loading_fastembed_model", model=self._model_name)
        try:
            self._model = TextEmbedding(model_name=self._model_name)
        except Exception as exc:
            raise EmbeddingProviderError(
                message=f"Failed to load fastembed model '{self._model_name}': {exc}",
                provider_name=self.name,
            ) from exc
        logger.info("fastembed_model_loaded", model=self._model_name, dimensions=self._dimensions)
        return self._model

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        out: list[list[float]] = []
        for start in range(0, len(texts), _BATCH_LIMIT):
            batch = texts[start : start + _BATCH_LIMIT]
            # fastembed yields numpy arrays
            out.extend(vector.tolist() for vector in model.embed(batch))
        return out

    @property
    def name(self) -> str:
        return f"fastembed:{self._model_name}"

    @property
    def dimensions(self) -> int | None:
        return self._dimensions

    async def embed(self, text: str) -> list[float]:
        result = await self.embed_many([text])
        return result[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            return await asyncio.to_thread(self._embed_sync, texts)
        except (MissingDependencyError, EmbeddingProviderError):
            raise
        except Exception as exc:
            raise EmbeddingProviderError(
                message=f"Fastembed embedding error: {exc}",
                provider_name=self.name,
            ) from exc

    def is_available(self) -> bool:
        """Return ``True`` if fastembed is installed."""
        try:
            import fastembed  # noqa: F401

            return True
        except ImportError:
            return False
