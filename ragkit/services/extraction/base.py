"""Extractor contract and the context passed to every extractor call."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from ragkit.models.assets import Asset, ExtractionResult
from ragkit.models.config import AssetProcessingConfig


@dataclass(frozen=True)
class ExtractionContext:
    """Per-ingest state shared by all extractors.

    ``asset_processing`` is the engine configuration with any per-call
    overrides already merged in.  ``http_client`` is used for URL assets;
    when ``None`` a short-lived client is opened per fetch.
    """

    asset_processing: AssetProcessingConfig
    http_client: httpx.AsyncClient | None = None


class AssetExtractor(ABC):
    """Turns one kind of asset into text.

    Extractors are tried in registration order.  ``supports`` must be
    cheap and side-effect free; it sees only the asset envelope and the
    configuration, never the payload bytes.
    """

    #: Stable identifier recorded in chunk metadata as ``extractor``.
    name: str = ""

    @abstractmethod
    def supports(self, asset: Asset, ctx: ExtractionContext) -> bool:
        """Return ``True`` if this extractor should be tried for *asset*."""

    @abstractmethod
    async def extract(self, asset: Asset, ctx: ExtractionContext) -> ExtractionResult:
        """Extract text from *asset*.

        Returns an empty :class:`ExtractionResult` when the asset holds too
        little text; the next supporting extractor is then tried.

        Raises
        ------
        ragkit.utils.errors.ExtractionError
            On size, timeout, fetch or parse failures.
        """
