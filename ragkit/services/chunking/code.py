"""Source-code chunking at top-level definition boundaries.

Python sources are parsed with the standard :mod:`ast` module; every
top-level ``def``, ``async def`` and ``class`` (decorators included) becomes
its own block, and the code between definitions (imports, constants)
becomes prefix blocks.  Other languages, and sources that fail to parse,
are kept as a single block.  Blocks are then packed with
:func:`~ragkit.services.chunking.text.merge_splits`, so oversized
definitions are still split into token windows.
"""

from __future__ import annotations

import ast
import re
from collections.abc import Mapping
from typing import Any

import structlog

from ragkit.models.chunks import ChunkingOptions, ChunkText
from ragkit.services.chunking.text import merge_splits, to_chunk_texts
from ragkit.services.chunking.tokens import get_tokenizer

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_LANGUAGE = "python"

_LANGUAGE_ALIASES = {
    "py": "python",
    "python": "python",
    "ts": "typescript",
    "tsx": "typescript",
    "typescript": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "javascript": "javascript",
    "go": "go",
    "golang": "go",
}

_EXTENSION_LANGUAGE = {
    "py": "python",
    "pyi": "python",
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "go": "go",
}

_PATH_KEYS = ("path", "filePath", "filepath", "filename", "fileName", "name", "sourcePath")

_DEFINITIONS = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)


def normalize_language(language: str | None) -> str:
    key = (language or "").strip().lower()
    return _LANGUAGE_ALIASES.get(key, DEFAULT_LANGUAGE if not key else key)


def detect_language_from_path(value: str | None) -> str | None:
    """Map a path or URL's file extension to a language name."""
    if not value:
        return None
    cleaned = re.split(r"[?#]", value, maxsplit=1)[0]
    base = re.split(r"[\\/]", cleaned)[-1]
    match = re.search(r"\.([a-z0-9]+)$", base.lower())
    if not match:
        return None
    return _EXTENSION_LANGUAGE.get(match.group(1))


def detect_language_from_metadata(metadata: Mapping[str, Any] | None) -> str | None:
    if not metadata:
        return None
    for key in _PATH_KEYS:
        value = metadata.get(key)
        if isinstance(value, list):
            value = next((v for v in value if isinstance(v, str)), None)
        if isinstance(value, str):
            detected = detect_language_from_path(value)
            if detected:
                return detected
    return None


def resolve_language(options: ChunkingOptions) -> str:
    """Language from the explicit option, then metadata paths, then the source id."""
    if options.language:
        return normalize_language(options.language)
    inferred = detect_language_from_metadata(options.metadata) or detect_language_from_path(
        options.source_id
    )
    return normalize_language(inferred)


def split_python_blocks(content: str) -> list[str]:
    """Split Python source into prefix / definition / tail blocks.

    Raises
    ------
    SyntaxError
        If *content* is not valid Python.
    """
    tree = ast.parse(content)
    lines = content.splitlines(keepends=True)
    line_starts = [0]
    for line in lines:
        line_starts.append(line_starts[-1] + len(line))

    blocks: list[str] = []
    cursor = 0
    for node in tree.body:
        if not isinstance(node, _DEFINITIONS):
            continue
        first_line = min([node.lineno] + [d.lineno for d in node.decorator_list])
        start = line_starts[first_line - 1]
        last_line = node.end_lineno or node.lineno
        end = line_starts[last_line]

        prefix = content[cursor:start]
        if prefix.strip():
            blocks.append(prefix)
        block = content[start:end]
        if block.strip():
            blocks.append(block)
        cursor = end

    tail = content[cursor:]
    if tail.strip():
        blocks.append(tail)
    return blocks


def code_chunker(content: str, options: ChunkingOptions) -> list[ChunkText]:
    if not content.strip():
        return []
    tokenizer = get_tokenizer(options.tokenizer)
    language = resolve_language(options)

    blocks: list[str] = []
    if language == "python":
        try:
            blocks = split_python_blocks(content)
        except (SyntaxError, ValueError) as exc:
            logger.debug("code_parse_failed", language=language, error=str(exc))
    if not blocks:
        blocks = [content]

    pieces = merge_splits(
        blocks,
        options.chunk_size,
        options.chunk_overlap,
        options.min_chunk_size,
        tokenizer,
    )
    return to_chunk_texts(pieces, tokenizer)
