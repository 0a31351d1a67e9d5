"""LLM-backed helpers (text splitting for semantic / agentic chunking)."""

from ragkit.providers.llm.openai_splitter import OpenAITextSplitter

__all__ = ["OpenAITextSplitter"]
