"""Abstract base class for model-driven text splitters.

Used by the ``semantic`` and ``agentic`` chunkers to ask a language model
for split points.  A splitter never raises for a bad answer: it returns
``None`` and the chunker falls back to sentence splitting.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class TextSplitter(ABC):
    """Contract for LLM split-point suggestion."""

    @abstractmethod
    async def split(
        self,
        content: str,
        chunk_size: int,
        goal: str,
        model: str | None = None,
    ) -> list[str] | None:
        """Split *content* into contiguous pieces.

        Returns
        -------
        list[str] | None
            Pieces whose concatenation reproduces *content* exactly, or
            ``None`` when no usable answer was produced.
        """
