"""LLM-guided chunking (``semantic`` and ``agentic`` strategies).

A :class:`~ragkit.interfaces.text_splitter.TextSplitter` proposes split
points.  Its answer is used only if it is a non-empty list of non-empty
strings that concatenate back to the content exactly.  Anything else
(``None``, an empty list, an edited or partial list, an exception, a
timeout, or no splitter at all) falls back to sentence splitting.  A
splitter failure is never a chunking failure.
"""

from __future__ import annotations

import asyncio

import structlog

from ragkit.interfaces.text_splitter import TextSplitter
from ragkit.models.chunks import ChunkingOptions, ChunkText
from ragkit.services.chunking.text import merge_splits, split_sentences, to_chunk_texts
from ragkit.services.chunking.tokens import get_tokenizer

logger = structlog.get_logger(logger_name=__name__)

SEMANTIC_GOAL = "Prefer semantic boundaries between sentences and paragraphs."
AGENTIC_GOAL = (
    "Maximize retrieval quality by keeping coherent ideas together and preserving nearby context."
)

DEFAULT_SPLIT_TIMEOUT_S = 30.0


def validate_splits(splits: object, content: str) -> list[str] | None:
    """Return *splits* if they exactly partition *content*, else ``None``."""
    if not isinstance(splits, list) or not splits:
        return None
    if any(not isinstance(item, str) or item == "" for item in splits):
        return None
    if "".join(splits) != content:
        return None
    return splits


class LLMGuidedChunker:
    """Chunker that asks a text splitter for boundaries before packing.

    Parameters
    ----------
    name:
        Strategy name used in log events (``"semantic"`` / ``"agentic"``).
    goal:
        Instruction passed to the splitter.
    splitter:
        Optional splitter.  Without one the chunker always uses the
        sentence fallback.
    timeout_s:
        Deadline for one splitter call.
    """

    def __init__(
        self,
        name: str,
        goal: str,
        splitter: TextSplitter | None = None,
        timeout_s: float = DEFAULT_SPLIT_TIMEOUT_S,
    ) -> None:
        self.name = name
        self._goal = goal
        self._splitter = splitter
        self._timeout_s = timeout_s

    async def _llm_splits(self, content: str, options: ChunkingOptions) -> list[str] | None:
        if self._splitter is None:
            return None
        try:
            raw = await asyncio.wait_for(
                self._splitter.split(content, options.chunk_size, self._goal, options.model),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning("llm_split_timeout", strategy=self.name, timeout_s=self._timeout_s)
            return None
        except Exception as exc:  # noqa: BLE001 -- any splitter failure means fallback
            logger.warning("llm_split_failed", strategy=self.name, error=str(exc))
            return None
        splits = validate_splits(raw, content)
        if splits is None and raw is not None:
            logger.info("llm_split_rejected", strategy=self.name)
        return splits

    async def __call__(self, content: str, options: ChunkingOptions) -> list[ChunkText]:
        if not content.strip():
            return []
        tokenizer = get_tokenizer(options.tokenizer)
        splits = await self._llm_splits(content, options)
        if splits is None:
            splits = split_sentences(content)
        pieces = merge_splits(
            splits,
            options.chunk_size,
            options.chunk_overlap,
            options.min_chunk_size,
            tokenizer,
        )
        return to_chunk_texts(pieces, tokenizer)


def semantic_chunker(splitter: TextSplitter | None = None) -> LLMGuidedChunker:
    return LLMGuidedChunker("semantic", SEMANTIC_GOAL, splitter)


def agentic_chunker(splitter: TextSplitter | None = None) -> LLMGuidedChunker:
    return LLMGuidedChunker("agentic", AGENTIC_GOAL, splitter)
