"""Abstract base class for second-pass rerankers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragkit.models.results import RerankerOutput


# Concrete implementations (ragkit/providers/rerank/):
#   CohereReranker -- Cohere /v2/rerank over httpx
#   CustomReranker -- wraps a user callable
class IReranker(ABC):
    """Contract for rerankers used by :meth:`ContextEngine.rerank`.

    A reranker only sees texts.  Mapping its output back to candidates,
    ``top_k`` selection and missing-text policy are handled by
    :mod:`ragkit.services.rerank`.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier reported in rerank results, e.g. ``"cohere"``."""

    @abstractmethod
    async def rerank(self, query: str, documents: list[str]) -> RerankerOutput:
        """Order *documents* by relevance to *query*.

        Parameters
        ----------
        query:
            The search query.
        documents:
            Candidate texts, all non-empty.

        Returns
        -------
        RerankerOutput
            ``order`` is a permutation (or prefix of one) of
            ``range(len(documents))``, most relevant first.

        Raises
        ------
        ragkit.utils.errors.RerankError
            If the reranker call fails or times out.
        """
