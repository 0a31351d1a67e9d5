"""Section-aware chunking that repeats each heading on every chunk of its section."""

from __future__ import annotations

from dataclasses import dataclass

from ragkit.models.chunks import ChunkingOptions, ChunkText
from ragkit.services.chunking.markdown import is_fence, is_heading
from ragkit.services.chunking.recursive import recursive_chunker
from ragkit.services.chunking.tokens import get_tokenizer


@dataclass(frozen=True)
class Section:
    header: str | None
    body: str


def split_sections(text: str) -> list[Section]:
    """Group lines under the nearest preceding heading (fence-aware).

    Heading lines are not part of any body.  A heading followed by no body
    still yields a section so that it is not lost.
    """
    sections: list[Section] = []
    header: str | None = None
    current: list[str] = []
    in_code = False

    def flush() -> None:
        body = "\n".join(current).strip()
        if body or header:
            sections.append(Section(header=header, body=body))
        current.clear()

    for line in text.split("\n"):
        if is_fence(line):
            in_code = not in_code
            current.append(line)
            continue
        if not in_code and is_heading(line):
            flush()
            header = line.strip()
            continue
        current.append(line)

    flush()
    return sections


def hierarchical_chunker(content: str, options: ChunkingOptions) -> list[ChunkText]:
    """Chunk each section's body and prefix every chunk with ``"{header}\\n"``."""
    if not content.strip():
        return []
    tokenizer = get_tokenizer(options.tokenizer)
    out: list[ChunkText] = []

    def emit(text: str) -> None:
        out.append(ChunkText(index=len(out), content=text, token_count=tokenizer.count(text)))

    for section in split_sections(content):
        if not section.body:
            if section.header:
                emit(section.header)
            continue
        for chunk in recursive_chunker(section.body, options):
            emit(f"{section.header}\n{chunk.content}" if section.header else chunk.content)

    return out
