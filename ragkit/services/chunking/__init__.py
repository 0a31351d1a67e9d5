"""Chunking engine: tokenizers, shared split/merge helpers and strategies.

Every chunker has the signature ``(content, options) -> list[ChunkText]``
(optionally async).  Strategies are looked up by name through a
:class:`~ragkit.services.chunking.registry.ChunkerRegistry`.
"""

from ragkit.services.chunking.code import code_chunker
from ragkit.services.chunking.hierarchical import hierarchical_chunker
from ragkit.services.chunking.markdown import markdown_chunker
from ragkit.services.chunking.recursive import recursive_chunker, token_chunker
from ragkit.services.chunking.registry import (
    Chunker,
    ChunkerRegistry,
    default_chunker_registry,
    run_chunker,
)
from ragkit.services.chunking.semantic import (
    AGENTIC_GOAL,
    SEMANTIC_GOAL,
    LLMGuidedChunker,
    agentic_chunker,
    semantic_chunker,
)
from ragkit.services.chunking.text import (
    DEFAULT_SEPARATORS,
    force_split_by_tokens,
    merge_splits,
    split_sentences,
    to_chunk_texts,
)
from ragkit.services.chunking.tokens import (
    RegexTokenizer,
    TiktokenTokenizer,
    Tokenizer,
    get_tokenizer,
)

__all__ = [
    "AGENTIC_GOAL",
    "DEFAULT_SEPARATORS",
    "SEMANTIC_GOAL",
    "Chunker",
    "ChunkerRegistry",
    "LLMGuidedChunker",
    "RegexTokenizer",
    "TiktokenTokenizer",
    "Tokenizer",
    "agentic_chunker",
    "code_chunker",
    "default_chunker_registry",
    "force_split_by_tokens",
    "get_tokenizer",
    "hierarchical_chunker",
    "markdown_chunker",
    "merge_splits",
    "recursive_chunker",
    "run_chunker",
    "semantic_chunker",
    "split_sentences",
    "to_chunk_texts",
    "token_chunker",
]
