"""Deadline-bounded, validating wrapper around an embedding provider.

The context engine talks to embedding providers only through
:class:`EmbeddingClient`.  Every call runs under a timeout, and every
returned vector is checked: the count must match the input, no vector may
be empty, and all vectors must share one dimensionality (the provider's
declared ``dimensions`` or, failing that, the first vector seen).

Batching and concurrency are decided by the caller.
"""

from __future__ import annotations

from typing import Any

import structlog

from ragkit.interfaces.embedding_provider import IEmbeddingProvider
from ragkit.utils.concurrency import run_with_timeout
from ragkit.utils.errors import EmbeddingProviderError

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingClient:
    """Validate and time-bound calls to an :class:`IEmbeddingProvider`.

    Parameters
    ----------
    provider:
        The wrapped embedding provider.
    timeout_s:
        Deadline for one ``embed`` / ``embed_many`` call.  ``None`` disables
        the deadline.
    """

    def __init__(self, provider: IEmbeddingProvider, timeout_s: float | None = 60.0) -> None:
        self._provider = provider
        self._timeout_s = timeout_s
        self._dimensions: int | None = provider.dimensions

    @property
    def provider(self) -> IEmbeddingProvider:
        return self._provider

    @property
    def name(self) -> str:
        return self._provider.name

    @property
    def supports_batch(self) -> bool:
        return self._provider.supports_batch

    @property
    def dimensions(self) -> int | None:
        """Declared or observed dimensionality (``None`` until the first vector)."""
        return self._dimensions

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        vector = await self._call(self._provider.embed(text))
        return self._check_vector(vector, position=0)

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, returning one vector per text in input order."""
        if not texts:
            return []
        vectors = await self._call(self._provider.embed_many(texts))
        if not isinstance(vectors, list) or len(vectors) != len(texts):
            got = len(vectors) if isinstance(vectors, list) else type(vectors).__name__
            raise EmbeddingProviderError(
                message=f"Embedding provider returned {got} vectors for {len(texts)} inputs",
                provider_name=self.name,
            )
        return [self._check_vector(v, position=i) for i, v in enumerate(vectors)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _call(self, awaitable: Any) -> Any:
        try:
            return await run_with_timeout(
                awaitable,
                self._timeout_s,
                lambda: EmbeddingProviderError(
                    message=f"Embedding call timed out after {self._timeout_s}s",
                    provider_name=self.name,
                    kind="timeout",
                ),
            )
        except EmbeddingProviderError:
            raise
        except Exception as exc:
            logger.warning("embedding_call_failed", provider=self.name, error=str(exc))
            raise EmbeddingProviderError(
                message=f"Embedding provider failed: {exc}",
                provider_name=self.name,
            ) from exc

    def _check_vector(self, vector: Any, position: int) -> list[float]:
        if vector is None or len(vector) == 0:
            raise EmbeddingProviderError(
                message=f"Embedding provider returned an empty vector at position {position}",
                provider_name=self.name,
            )
        if self._dimensions is None:
            self._dimensions = len(vector)
        elif len(vector) != self._dimensions:
            raise EmbeddingProviderError(
                message=(
                    f"Embedding dimension mismatch at position {position}: "
                    f"expected {self._dimensions}, got {len(vector)}"
                ),
                provider_name=self.name,
                kind="dimension",
            )
        return [float(x) for x in vector]
