"""Cohere reranker adapter.

Calls Cohere's ``/v2/rerank`` endpoint directly over an injected
``httpx.AsyncClient``.  Uses ``rerank-v3.5`` by default.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from ragkit.interfaces.reranker import IReranker
from ragkit.models.results import RerankerOutput
from ragkit.utils.errors import ConfigurationError, RerankError

logger = structlog.get_logger(logger_name=__name__)

_RERANK_URL = "https://api.cohere.com/v2/rerank"
DEFAULT_MODEL = "rerank-v3.5"
DEFAULT_MAX_DOCUMENTS = 1000


class CohereReranker(IReranker):
    """Reranker backed by the Cohere rerank API.

    Parameters
    ----------
    api_key:
        Cohere API key.
    model:
        Rerank model name.
    max_documents:
        Upper bound on documents per request; extra documents are dropped
        with a warning and never appear in ``order``.
    timeout_s:
        Request timeout in seconds.
    http_client:
        Optional shared ``httpx.AsyncClient``; one is created per call
        otherwise.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        max_documents: int = DEFAULT_MAX_DOCUMENTS,
        timeout_s: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = _RERANK_URL,
    ) -> None:
        if not api_key:
            raise ConfigurationError("Cohere reranker requires an API key.", provider_name="cohere")
        self._api_key = api_key
        self._model = model
        self._max_documents = max_documents
        self._timeout_s = timeout_s
        self._http = http_client
        self._url = base_url

    @property
    def name(self) -> str:
        return "cohere"

    @property
    def model(self) -> str:
        return self._model

    async def rerank(self, query: str, documents: list[str]) -> RerankerOutput:
        if not documents:
            return RerankerOutput(order=[], scores=[], model=self._model)

        if len(documents) > self._max_documents:
            logger.warning(
                "cohere_rerank_truncated",
                documents=len(documents),
                max_documents=self._max_documents,
            )
            documents = documents[: self._max_documents]

        payload = {"model": self._model, "query": query, "documents": documents}
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            if self._http is not None:
                response = await self._http.post(
                    self._url, json=payload, headers=headers, timeout=self._timeout_s
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                    response = await client.post(self._url, json=payload, headers=headers)
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except httpx.TimeoutException as exc:
            raise RerankError(
                message=f"Cohere rerank timed out after {self._timeout_s}s",
                provider_name=self.name,
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise RerankError(
                message=f"Cohere rerank request failed: {exc}",
                provider_name=self.name,
            ) from exc

        order: list[int] = []
        scores: list[float] = []
        for item in data.get("results", []):
            order.append(int(item["index"]))
            if item.get("relevance_score") is not None:
                scores.append(float(item["relevance_score"]))

        logger.debug("cohere_rerank_complete", model=self._model, documents=len(documents))
        return RerankerOutput(
            order=order,
            scores=scores if len(scores) == len(order) else None,
            model=self._model,
        )
