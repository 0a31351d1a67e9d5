"""Configuration module: exports Settings and load_config.

The engine factory lives in :mod:`ragkit.config.factory` and is imported
explicitly, since it pulls in the provider graph.
"""

from ragkit.config.loader import load_config
from ragkit.config.settings import Settings

__all__ = ["Settings", "load_config"]
