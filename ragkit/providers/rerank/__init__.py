"""Reranker adapters implementing :class:`ragkit.interfaces.reranker.IReranker`."""

from ragkit.providers.rerank.cohere import CohereReranker
from ragkit.providers.rerank.custom import CustomReranker

__all__ = ["CohereReranker", "CustomReranker"]
