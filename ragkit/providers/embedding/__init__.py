"""Embedding provider implementations.

    1. OpenAIEmbeddingProvider    -- text-embedding-3-small (1536 dims) or any
       OpenAI-compatible endpoint.  Requires an API key.
    2. FastEmbedEmbeddingProvider -- ONNX-based, local, no PyTorch.  Needs
       the optional ``fastembed`` extra; imported directly where needed.
"""

from ragkit.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
