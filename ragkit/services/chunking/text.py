"""Shared splitting and merging helpers for every chunking strategy.

Strategies differ only in how they cut content into atomic *splits*
(paragraphs, sentences, markdown blocks, code definitions, LLM-chosen
pieces).  :func:`merge_splits` then packs splits greedily into chunks that
respect the token budget, carrying a verbatim token overlap between
consecutive chunks.
"""

from __future__ import annotations

import re

from ragkit.models.chunks import ChunkText
from ragkit.services.chunking.tokens import Tokenizer, get_tokenizer

DEFAULT_SEPARATORS: tuple[str, ...] = (
    "\n\n",  # paragraphs
    "\n",  # lines
    ". ",  # sentences
    "? ",
    "! ",
    "; ",  # clauses
    ": ",
    ", ",  # phrases
    " ",  # words
    "",  # characters
)

# Sentence end: terminal punctuation before whitespace or end of input,
# or the first newline of a blank-line break.
_SENTENCE_END_RE = re.compile(r"[.!?](?=\s|$)|\n(?=\n)")


def split_with_separator(text: str, separator: str) -> list[str]:
    """Split *text* on *separator*, keeping the separator at the end of each piece.

    An empty separator splits into characters.  A trailing empty piece is
    dropped.
    """
    if separator == "":
        return list(text)
    parts = text.split(separator)
    out = [part + separator for part in parts[:-1]]
    if parts[-1]:
        out.append(parts[-1])
    return out


def split_sentences(text: str) -> list[str]:
    """Split *text* at sentence ends and blank-line breaks.

    Pieces keep their original characters; whitespace-only pieces are
    dropped.
    """
    splits: list[str] = []
    last = 0
    for match in _SENTENCE_END_RE.finditer(text):
        piece = text[last:match.end()]
        if piece.strip():
            splits.append(piece)
        last = match.end()
    remainder = text[last:]
    if remainder.strip():
        splits.append(remainder)
    return splits


def force_split_by_tokens(
    text: str,
    chunk_size: int,
    chunk_overlap: int,
    tokenizer: Tokenizer | None = None,
) -> list[str]:
    """Cut *text* into token windows of *chunk_size* with *chunk_overlap* overlap."""
    tokenizer = tokenizer or get_tokenizer()
    stride = max(1, chunk_size - chunk_overlap)
    return tokenizer.windows(text, chunk_size, stride)


def merge_splits(
    splits: list[str],
    chunk_size: int,
    chunk_overlap: int,
    min_chunk_size: int,
    tokenizer: Tokenizer | None = None,
) -> list[str]:
    """Greedily pack *splits* into chunks of at most *chunk_size* tokens.

    * A split larger than *chunk_size* flushes the current chunk and is
      force-split into token windows.
    * Otherwise splits accumulate until the next one would overflow; the
      current chunk is then closed and the next one opens with the last
      *chunk_overlap* tokens of the closed chunk followed by the split.
    * A final chunk under *min_chunk_size* tokens is merged into the
      previous chunk with a single space.  A lone undersized chunk is
      still emitted.
    """
    tokenizer = tokenizer or get_tokenizer()
    chunks: list[str] = []
    current = ""
    current_tokens = 0

    def flush_small_aware() -> None:
        text = current.strip()
        if not text:
            return
        if current_tokens >= min_chunk_size or not chunks:
            chunks.append(text)
        else:
            chunks[-1] = f"{chunks[-1]} {text}".strip()

    for split in splits:
        split_tokens = tokenizer.count(split)

        if split_tokens > chunk_size:
            flush_small_aware()
            current, current_tokens = "", 0
            chunks.extend(
                piece for piece in force_split_by_tokens(split, chunk_size, chunk_overlap, tokenizer)
                if piece.strip()
            )
            continue

        if current and current_tokens + split_tokens > chunk_size:
            closed = current.strip()
            if closed:
                chunks.append(closed)
            if chunk_overlap > 0:
                current = tokenizer.tail(current, chunk_overlap) + split
                current_tokens = tokenizer.count(current)
            else:
                current, current_tokens = split, split_tokens
        else:
            current += split
            current_tokens += split_tokens

    flush_small_aware()
    return chunks


def to_chunk_texts(contents: list[str], tokenizer: Tokenizer | None = None) -> list[ChunkText]:
    """Number chunk strings and attach their token counts."""
    tokenizer = tokenizer or get_tokenizer()
    return [
        ChunkText(index=i, content=content, token_count=tokenizer.count(content))
        for i, content in enumerate(contents)
    ]
