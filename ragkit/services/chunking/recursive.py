"""Built-in chunkers: recursive separator splitting and fixed token windows."""

from __future__ import annotations

from collections.abc import Sequence

from ragkit.models.chunks import ChunkingOptions, ChunkText
from ragkit.services.chunking.text import (
    DEFAULT_SEPARATORS,
    force_split_by_tokens,
    merge_splits,
    split_with_separator,
    to_chunk_texts,
)
from ragkit.services.chunking.tokens import Tokenizer, get_tokenizer


def recursive_split(
    text: str,
    separators: Sequence[str],
    chunk_size: int,
    chunk_overlap: int,
    min_chunk_size: int,
    tokenizer: Tokenizer,
) -> list[str]:
    """Split *text* on the coarsest separator present, recursing into oversized pieces."""
    if tokenizer.count(text) <= chunk_size:
        return [text.strip()] if text.strip() else []

    separator = ""
    remaining: Sequence[str] = ()
    for i, sep in enumerate(separators):
        if sep == "" or sep in text:
            separator = sep
            remaining = separators[i + 1:]
            break

    good: list[str] = []
    for split in split_with_separator(text, separator):
        if tokenizer.count(split) <= chunk_size:
            good.append(split)
        elif remaining:
            good.extend(
                recursive_split(split, remaining, chunk_size, chunk_overlap, min_chunk_size, tokenizer)
            )
        else:
            good.extend(force_split_by_tokens(split, chunk_size, chunk_overlap, tokenizer))

    return merge_splits(good, chunk_size, chunk_overlap, min_chunk_size, tokenizer)


def recursive_chunker(content: str, options: ChunkingOptions) -> list[ChunkText]:
    """Default chunker: paragraph, line, sentence, clause, word, then character splits."""
    if not content.strip():
        return []
    tokenizer = get_tokenizer(options.tokenizer)
    separators = options.separators if options.separators is not None else DEFAULT_SEPARATORS
    pieces = recursive_split(
        content,
        separators,
        options.chunk_size,
        options.chunk_overlap,
        options.min_chunk_size,
        tokenizer,
    )
    return to_chunk_texts(pieces, tokenizer)


def token_chunker(content: str, options: ChunkingOptions) -> list[ChunkText]:
    """Fixed-size token windows with overlap, ignoring text structure."""
    if not content.strip():
        return []
    tokenizer = get_tokenizer(options.tokenizer)
    pieces = force_split_by_tokens(content, options.chunk_size, options.chunk_overlap, tokenizer)
    if len(pieces) > 1 and tokenizer.count(pieces[-1]) < options.min_chunk_size:
        last = pieces.pop()
        pieces[-1] = f"{pieces[-1]} {last}".strip()
    return to_chunk_texts(pieces, tokenizer)
