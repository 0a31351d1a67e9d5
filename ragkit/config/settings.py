"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# This class reads configuration from TWO sources, in priority order:
#
#   1. **Environment variables**, e.g. OPENAI_API_KEY=sk-abc123
#      (highest priority, always wins)
#   2. **.env file**, key=value lines in the working directory
#      (used for local development)
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``; pydantic-settings
# uppercases the field name and matches.  Defaults apply when neither source
# sets a field.
#
# Settings are the bottom layer.  ``config/config.yaml`` overrides these
# defaults, and a variable that is explicitly set in the environment
# overrides the YAML again (see ``ragkit.config.loader.load_config``).
#
# SECURITY: the .env file holds API keys and must never be committed.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragkit settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    # extra="ignore" lets one .env file serve other tools without tripping validation.
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding / LLM providers ===
    # Empty string = "not configured": the engine factory skips providers
    # whose keys are empty and falls back to the next choice.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (Azure proxy, TogetherAI, ...)
    openai_embedding_model: str = "text-embedding-3-small"
    openai_text_model: str = "gpt-4o-mini"  # semantic / agentic chunking and PDF extraction
    embedding_provider: str = "openai"  # "openai" | "fastembed"
    fastembed_model: str = "BAAI/bge-small-en-v1.5"  # local model, no API key needed

    # === Reranking ===
    # Without a Cohere key no reranker is wired and ContextEngine.rerank
    # raises a ConfigurationError.
    cohere_api_key: str = ""
    cohere_rerank_model: str = "rerank-v3.5"
    rerank_timeout_s: float = 30.0  # whole reranker call, not per HTTP phase

    # === Vector store ===
    # "memory" keeps everything in process (tests, eval runs); "chromadb"
    # persists to persist_dir.
    vector_store: str = "memory"  # "memory" | "chromadb"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "ragkit_chunks"

    # === Chunking ===
    # Sizes are in tokens as counted by ``tokenizer``.  Per-call
    # ChunkingOptions override these defaults.
    chunking_method: str = "recursive"
    chunk_size: int = 512
    chunk_overlap: int = 50
    min_chunk_size: int = 24  # trailing chunks smaller than this merge into the previous one
    tokenizer: str = "regex"  # "regex" needs nothing; "tiktoken" needs the extra installed

    # === Embedding processing ===
    # Batches are sent concurrently, at most ``embedding_concurrency`` at once.
    embedding_batch_size: int = 32
    embedding_concurrency: int = 4
    embedding_timeout_s: float = 60.0  # per batch

    # === App Config ===
    app_env: str = "development"  # "production" switches logging to JSON lines
    log_level: str = "INFO"

    def get_available_providers(self) -> list[str]:
        """Return the external services that have credentials configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.cohere_api_key:
            providers.append("cohere")
        return providers
