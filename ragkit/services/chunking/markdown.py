"""Markdown-aware chunking.

Heading lines and horizontal rules start new blocks, except inside fenced
code (```` ``` ```` or ``~~~``), where every line belongs to the fence.
Blocks are packed with :func:`~ragkit.services.chunking.text.merge_splits`.
"""

from __future__ import annotations

import re

from ragkit.models.chunks import ChunkingOptions, ChunkText
from ragkit.services.chunking.text import merge_splits, to_chunk_texts
from ragkit.services.chunking.tokens import get_tokenizer

_HEADING_RE = re.compile(r"^#{1,6}\s+")
_RULE_RE = re.compile(r"^(-{3,}|\*{3,}|_{3,})\s*$")


def is_fence(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith("```") or stripped.startswith("~~~")


def is_heading(line: str) -> bool:
    return bool(_HEADING_RE.match(line))


def is_rule(line: str) -> bool:
    return bool(_RULE_RE.match(line.strip()))


def split_markdown_blocks(text: str) -> list[str]:
    """Cut *text* before every heading or rule that sits outside a code fence."""
    blocks: list[str] = []
    current: list[str] = []
    in_code = False

    def flush() -> None:
        block = "\n".join(current)
        if block.strip():
            blocks.append(block)
        current.clear()

    for line in text.split("\n"):
        if is_fence(line):
            in_code = not in_code
        elif not in_code and (is_heading(line) or is_rule(line)):
            flush()
        current.append(line)

    flush()
    return blocks


def markdown_chunker(content: str, options: ChunkingOptions) -> list[ChunkText]:
    if not content.strip():
        return []
    tokenizer = get_tokenizer(options.tokenizer)
    blocks = split_markdown_blocks(content)
    pieces = merge_splits(
        blocks,
        options.chunk_size,
        options.chunk_overlap,
        options.min_chunk_size,
        tokenizer,
    )
    return to_chunk_texts(pieces, tokenizer)
