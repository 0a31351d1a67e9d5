"""Tokenizers used for chunk budgeting.

Chunk sizes, overlaps and minimums are all expressed in tokens.  Two
tokenizers are available:

* :class:`RegexTokenizer` (default) -- words, numbers and single
  punctuation marks.  Every token is a span of the original text, so
  windows and tails are exact slices.  Deterministic and offline.
* :class:`TiktokenTokenizer` -- OpenAI ``o200k_base`` BPE encoding, for
  budgets that must line up with model context windows.  Requires the
  optional ``tiktoken`` package.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any

from ragkit.utils.errors import ConfigurationError, MissingDependencyError

_TOKEN_RE = re.compile(r"\w+|[^\w\s]", re.UNICODE)


class Tokenizer(ABC):
    """Token counting and token-aligned slicing."""

    name: str = "tokenizer"

    @abstractmethod
    def count(self, text: str) -> int:
        """Return the number of tokens in *text*."""

    @abstractmethod
    def tail(self, text: str, n: int) -> str:
        """Return the suffix of *text* covering its last *n* tokens.

        When *text* has at most *n* tokens the whole text is returned.
        """

    @abstractmethod
    def windows(self, text: str, size: int, stride: int) -> list[str]:
        """Slice *text* into windows of *size* tokens, advancing by *stride*.

        Windows are stripped; empty windows are dropped.  The last window
        is the one that reaches the end of the token sequence.
        """


class RegexTokenizer(Tokenizer):
    """Word / number / punctuation tokenizer over character spans."""

    name = "regex"

    def spans(self, text: str) -> list[tuple[int, int]]:
        return [m.span() for m in _TOKEN_RE.finditer(text)]

    def count(self, text: str) -> int:
        return sum(1 for _ in _TOKEN_RE.finditer(text))

    def tail(self, text: str, n: int) -> str:
        if n <= 0:
            return ""
        spans = self.spans(text)
        if len(spans) <= n:
            return text
        return text[spans[-n][0]:]

    def windows(self, text: str, size: int, stride: int) -> list[str]:
        spans = self.spans(text)
        stride = max(1, stride)
        out: list[str] = []
        for i in range(0, len(spans), stride):
            last = min(i + size, len(spans)) - 1
            window = text[spans[i][0]:spans[last][1]].strip()
            if window:
                out.append(window)
            if i + size >= len(spans):
                break
        return out


class TiktokenTokenizer(Tokenizer):
    """BPE tokenizer backed by ``tiktoken`` (``o200k_base`` by default)."""

    name = "tiktoken"

    def __init__(self, encoding: str = "o200k_base") -> None:
        try:
            import tiktoken
        except ImportError as exc:
            raise MissingDependencyError(
                package="tiktoken",
                install_hint='pip install "ragkit[tiktoken]"',
                component="tiktoken tokenizer",
            ) from exc
        self._encoding: Any = tiktoken.get_encoding(encoding)

    def count(self, text: str) -> int:
        return len(self._encoding.encode(text))

    def tail(self, text: str, n: int) -> str:
        if n <= 0:
            return ""
        ids = self._encoding.encode(text)
        if len(ids) <= n:
            return text
        return self._encoding.decode(ids[-n:])

    def windows(self, text: str, size: int, stride: int) -> list[str]:
        ids = self._encoding.encode(text)
        stride = max(1, stride)
        out: list[str] = []
        for i in range(0, len(ids), stride):
            window = self._encoding.decode(ids[i:i + size]).strip()
            if window:
                out.append(window)
            if i + size >= len(ids):
                break
        return out


@lru_cache(maxsize=None)
def get_tokenizer(name: str = "regex") -> Tokenizer:
    """Return a shared tokenizer instance by name."""
    key = (name or "regex").lower()
    if key == "regex":
        return RegexTokenizer()
    if key in ("tiktoken", "o200k_base"):
        return TiktokenTokenizer()
    raise ConfigurationError(f'Unknown tokenizer "{name}". Use "regex" or "tiktoken".')
