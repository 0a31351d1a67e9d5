"""Reranker that wraps a caller-supplied function."""

from __future__ import annotations

import inspect
from typing import Any, Awaitable, Callable, Union

from ragkit.interfaces.reranker import IReranker
from ragkit.models.results import RerankerOutput

RerankFn = Callable[[str, list[str]], Union[RerankerOutput, Awaitable[RerankerOutput], dict[str, Any]]]


class CustomReranker(IReranker):
    """Adapt a plain function into an :class:`IReranker`.

    *fn* receives ``(query, documents)`` and returns a
    :class:`RerankerOutput` (or an equivalent dict), synchronously or as
    an awaitable.  When the output carries no model name, *model* is used.

    Example::

        def by_length(query, documents):
            order = sorted(range(len(documents)), key=lambda i: -len(documents[i]))
            return RerankerOutput(order=order)

        reranker = CustomReranker("by-length", by_length)
    """

    def __init__(self, name: str, fn: RerankFn, model: str | None = None) -> None:
        self._name = name
        self._fn = fn
        self._model = model

    @property
    def name(self) -> str:
        return self._name

    async def rerank(self, query: str, documents: list[str]) -> RerankerOutput:
        result = self._fn(query, documents)
        if inspect.isawaitable(result):
            result = await result
        output = result if isinstance(result, RerankerOutput) else RerankerOutput.model_validate(result)
        if output.model is None and self._model is not None:
            output = output.model_copy(update={"model": self._model})
        return output
