"""Asset extraction: turns non-text assets into text before chunking.

:func:`default_extractors` returns the built-in chain; :func:`extract_asset`
runs a chain for one asset under the engine's asset-processing policy.
"""

from ragkit.services.extraction.base import AssetExtractor, ExtractionContext
from ragkit.services.extraction.fetch import fetch_bytes, get_asset_bytes
from ragkit.services.extraction.registry import default_extractors
from ragkit.services.extraction.runner import AssetOutcome, extract_asset

__all__ = [
    "AssetExtractor",
    "AssetOutcome",
    "ExtractionContext",
    "default_extractors",
    "extract_asset",
    "fetch_bytes",
    "get_asset_bytes",
]
