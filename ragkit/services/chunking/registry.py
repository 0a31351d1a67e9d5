"""Explicit chunker registry.

Nothing registers itself on import: :func:`default_chunker_registry`
builds a registry holding the built-in strategies (``recursive``,
``token``) followed by the bundled plugins (``markdown``, ``hierarchical``,
``semantic``, ``agentic``, ``code``) in that order.  Applications add their
own strategies with :meth:`ChunkerRegistry.register`.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Union

import structlog

from ragkit.interfaces.text_splitter import TextSplitter
from ragkit.models.chunks import ChunkingOptions, ChunkText
from ragkit.services.chunking.code import code_chunker
from ragkit.services.chunking.hierarchical import hierarchical_chunker
from ragkit.services.chunking.markdown import markdown_chunker
from ragkit.services.chunking.recursive import recursive_chunker, token_chunker
from ragkit.services.chunking.semantic import agentic_chunker, semantic_chunker
from ragkit.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

ChunkerResult = Union[list[ChunkText], Awaitable[list[ChunkText]]]
Chunker = Callable[[str, ChunkingOptions], ChunkerResult]
ChunkerFactory = Callable[[ChunkingOptions | None], Chunker]

CUSTOM_METHOD = "custom"
DEFAULT_METHOD = "recursive"


async def run_chunker(chunker: Chunker, content: str, options: ChunkingOptions) -> list[ChunkText]:
    """Call a sync or async chunker and return its chunks."""
    result = chunker(content, options)
    if inspect.isawaitable(result):
        result = await result
    return list(result)


class ChunkerRegistry:
    """Name -> chunker factory mapping with built-in / plugin distinction."""

    def __init__(self) -> None:
        self._factories: dict[str, ChunkerFactory] = {}
        self._built_in: list[str] = []
        self._plugins: list[str] = []

    def register(self, name: str, factory: ChunkerFactory, built_in: bool = False) -> None:
        """Register *factory* under *name*, replacing any previous registration."""
        if not name or name == CUSTOM_METHOD:
            raise ConfigurationError(f'Invalid chunker name "{name}".')
        if name not in self._factories:
            (self._built_in if built_in else self._plugins).append(name)
        self._factories[name] = factory
        logger.debug("chunker_registered", name=name, built_in=built_in)

    def resolve(
        self,
        method: str | None = None,
        options: ChunkingOptions | None = None,
        chunker: Chunker | None = None,
    ) -> Chunker:
        """Return the chunker for *method* (default ``"recursive"``).

        ``"custom"`` returns *chunker*, which is then required.

        Raises
        ------
        ConfigurationError
            If the method is unknown, or ``"custom"`` is used without a
            chunker.
        """
        method = method or DEFAULT_METHOD
        if method == CUSTOM_METHOD:
            if chunker is None:
                raise ConfigurationError(
                    'Chunking method "custom" requires a chunker callable '
                    "(ContextEngineConfig.chunker)."
                )
            return chunker
        factory = self._factories.get(method)
        if factory is None:
            available = ", ".join(self._built_in + self._plugins) or "none"
            raise ConfigurationError(
                f'Chunker "{method}" not found (available: {available}). '
                f'Register it with ChunkerRegistry.register("{method}", factory), '
                f'or pass chunker=... with method "custom".'
            )
        return factory(options)

    def is_available(self, method: str) -> bool:
        return method == CUSTOM_METHOD or method in self._factories

    def available(self) -> dict[str, list[str]]:
        return {"built_in": list(self._built_in), "plugins": list(self._plugins)}


def default_chunker_registry(splitter: TextSplitter | None = None) -> ChunkerRegistry:
    """Build a registry with every bundled strategy.

    *splitter* backs the ``semantic`` and ``agentic`` strategies; without
    one they use their sentence-splitting fallback.
    """
    registry = ChunkerRegistry()
    registry.register("recursive", lambda _opts: recursive_chunker, built_in=True)
    registry.register("token", lambda _opts: token_chunker, built_in=True)
    registry.register("markdown", lambda _opts: markdown_chunker)
    registry.register("hierarchical", lambda _opts: hierarchical_chunker)
    registry.register("semantic", lambda _opts: semantic_chunker(splitter))
    registry.register("agentic", lambda _opts: agentic_chunker(splitter))
    registry.register("code", lambda _opts: code_chunker)
    return registry
