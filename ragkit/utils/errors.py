"""Custom exception hierarchy for ragkit.

All package exceptions inherit from :class:`RagkitError`, which carries an
optional ``provider_name`` so error handlers can identify which external
service (e.g. "openai", "cohere", "chromadb") caused the failure.

The hierarchy is organized by pipeline stage:

    RagkitError  (base -- catch-all for any ragkit error)
    +-- ValidationError            (bad dataset / options, raised before work starts)
    +-- ConfigurationError         (invalid engine wiring, unknown chunker)
    |   +-- MissingDependencyError (optional library not installed)
    +-- UnsupportedAssetError      (no extractor for an asset, policy "fail")
    +-- ExtractionError            (size / timeout / parse / fetch failures)
    +-- EmbeddingProviderError     (missing vector, dimension mismatch, timeout)
    +-- RerankerNotConfiguredError (rerank requested with no reranker wired)
    +-- RerankError                (reranker call failed or timed out)
    +-- StoreError                 (vector store failure, propagated opaquely)
    +-- IngestError                (stage-tagged ingest abort)

Callers handle errors at the right level -- e.g. skip an asset on
ExtractionError, abort an ingest on EmbeddingProviderError, or fall back to
``on_missing_reranker="skip"`` after RerankerNotConfiguredError.
"""

from __future__ import annotations


class RagkitError(Exception):
    """Base exception for all ragkit errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for
    structured log output, e.g. ``[openai] Embedding request timed out``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        # Read-only through the properties below; handlers and log lines rely
        # on these staying what the raise site set.
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        # Provider prefix makes log lines greppable by service.
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Validation / configuration errors
# ---------------------------------------------------------------------------

class ValidationError(RagkitError):
    """Raised when a dataset, option set, or call argument is invalid.

    Always raised synchronously before any ingestion or network work.
    """

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagkitError):
    """Raised when engine configuration is invalid or incomplete."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class MissingDependencyError(ConfigurationError):
    """Raised when an optional library needed by a component is not installed.

    The message always names the missing package and the install command,
    e.g. ``pip install "ragkit[office]"``.
    """

    def __init__(
        self,
        package: str,
        install_hint: str,
        component: str,
    ) -> None:
        self._package = package
        self._install_hint = install_hint
        super().__init__(
            message=(
                f'{component} requires "{package}" to be installed. '
                f"Install it with: {install_hint}"
            ),
            provider_name=component,
        )

    @property
    def package(self) -> str:
        return self._package

    @property
    def install_hint(self) -> str:
        return self._install_hint


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class UnsupportedAssetError(RagkitError):
    """Raised when no extractor handles an asset and the policy is ``fail``."""

    def __init__(
        self,
        message: str = "Unsupported asset",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionError(RagkitError):
    """Raised when an extractor fails.

    ``kind`` classifies the failure: ``"size"`` (byte ceiling exceeded),
    ``"timeout"`` (deadline expired), ``"fetch"`` (URL refused or HTTP
    failure) or ``"parse"`` (the payload could not be decoded).
    """

    def __init__(
        self,
        message: str = "Asset extraction failed",
        provider_name: str | None = None,
        kind: str = "parse",
    ) -> None:
        self._kind = kind
        super().__init__(message=message, provider_name=provider_name)

    @property
    def kind(self) -> str:
        return self._kind


# ---------------------------------------------------------------------------
# Embedding / rerank / store errors
# ---------------------------------------------------------------------------

class EmbeddingProviderError(RagkitError):
    """Raised when an embedding call fails or returns unusable vectors.

    ``kind`` is ``"timeout"`` for a batch past its deadline, ``"dimension"``
    when vectors disagree in length and ``"provider"`` otherwise.
    """

    def __init__(
        self,
        message: str = "Embedding provider failed",
        provider_name: str | None = None,
        kind: str = "provider",
    ) -> None:
        self._kind = kind
        super().__init__(message=message, provider_name=provider_name)

    @property
    def kind(self) -> str:
        return self._kind


class RerankerNotConfiguredError(RagkitError):
    """Raised when reranking is requested but no reranker is configured."""

    def __init__(
        self,
        message: str = (
            'Reranker not configured. Install a reranker (pip install "ragkit[rerank]") '
            "and pass it as ContextEngineConfig.reranker, or call rerank() with "
            'on_missing_reranker="skip".'
        ),
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RerankError(RagkitError):
    """Raised when the configured reranker fails or times out.

    ``kind`` is ``"timeout"`` when the call ran past its deadline and
    ``"provider"`` for any other failure.
    """

    def __init__(
        self,
        message: str = "Rerank call failed",
        provider_name: str | None = None,
        kind: str = "provider",
    ) -> None:
        self._kind = kind
        super().__init__(message=message, provider_name=provider_name)

    @property
    def kind(self) -> str:
        return self._kind


class StoreError(RagkitError):
    """Raised when a vector store operation fails.

    Backend exceptions are chained as ``__cause__``; the message stays
    backend-neutral so callers never depend on chromadb internals.
    """

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Orchestration errors
# ---------------------------------------------------------------------------

class IngestError(RagkitError):
    """Raised when an ingest call aborts.

    ``stage`` is one of ``"extract"``, ``"chunk"``, ``"embed"`` or
    ``"store"``.  The original exception is chained as ``__cause__``.
    """

    def __init__(
        self,
        message: str = "Ingest failed",
        provider_name: str | None = None,
        stage: str = "unknown",
    ) -> None:
        self._stage = stage
        super().__init__(message=message, provider_name=provider_name)

    @property
    def stage(self) -> str:
        return self._stage

    def __str__(self) -> str:
        # e.g. "[openai] request timed out (stage=embed)"
        return f"{super().__str__()} (stage={self._stage})"
