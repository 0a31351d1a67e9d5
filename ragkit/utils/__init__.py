"""Utility modules for ragkit.

- **errors** -- exception hierarchy rooted at RagkitError; each pipeline
  stage raises its own subclass so callers can apply skip/fail policies.
- **concurrency** -- semaphore-throttled gather and deadline helpers.
- **logging** -- structlog setup: coloured console output in development,
  structured JSON in production.
- **timing** -- monotonic millisecond timers for ``durations`` blocks.
"""

from ragkit.utils.concurrency import run_with_timeout, throttled_gather
from ragkit.utils.errors import (
    ConfigurationError,
    EmbeddingProviderError,
    ExtractionError,
    IngestError,
    MissingDependencyError,
    RagkitError,
    RerankError,
    RerankerNotConfiguredError,
    StoreError,
    UnsupportedAssetError,
    ValidationError,
)
from ragkit.utils.logging import configure_logging

__all__ = [
    "ConfigurationError",
    "EmbeddingProviderError",
    "ExtractionError",
    "IngestError",
    "MissingDependencyError",
    "RagkitError",
    "RerankError",
    "RerankerNotConfiguredError",
    "StoreError",
    "UnsupportedAssetError",
    "ValidationError",
    "configure_logging",
    "run_with_timeout",
    "throttled_gather",
]
