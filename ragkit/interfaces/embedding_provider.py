"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-dimension vectors.
Implementations wrap OpenAI-compatible embedding APIs or local ONNX models
(fastembed).  The context engine never calls a provider directly: it goes
through :class:`~ragkit.services.embedding_client.EmbeddingClient`, which
adds deadlines and vector validation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider     -- text-embedding-3-small (requires API key)
#   FastEmbedEmbeddingProvider  -- lightweight ONNX (no PyTorch), local
# Located in: ragkit/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by the context engine.

    All vectors produced by one instance share one dimensionality.
    """

    #: Set to ``True`` by providers whose :meth:`embed_many` issues a single
    #: batched request.  The engine batches chunks only for such providers.
    supports_batch: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier of the provider and model, e.g. ``"openai:text-embedding-3-small"``."""

    @property
    def dimensions(self) -> int | None:
        """Fixed vector dimensionality, or ``None`` when not known up front."""
        return None

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Parameters
        ----------
        text:
            The text to embed (a chunk or a query).

        Returns
        -------
        list[float]
            The embedding vector.

        Raises
        ------
        ragkit.utils.errors.EmbeddingProviderError
            If the embedding call fails.
        """

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for several texts, preserving order.

        The default implementation calls :meth:`embed` sequentially.
        Providers with a batch endpoint override this and set
        :attr:`supports_batch`.
        """
        return [await self.embed(text) for text in texts]

    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials, libraries)."""
        return True
