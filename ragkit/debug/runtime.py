"""Process-wide registration of a live engine for debugging tools.

Interactive tools (query runner, document explorer, eval) run inside the
application process and need a handle on the engine the app built.  The
application registers it explicitly, typically only when a debug flag is
set::

    if settings.app_env != "production":
        register_debug(engine, store_inspector=store)
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

from ragkit.interfaces.store_inspector import IStoreInspector
from ragkit.services.context_engine import ContextEngine

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class DebugRuntime:
    engine: ContextEngine
    store_inspector: IStoreInspector | None = None
    registered_at: float = 0.0  # epoch milliseconds


_runtime: DebugRuntime | None = None


def register_debug(engine: ContextEngine, store_inspector: IStoreInspector | None = None) -> DebugRuntime:
    """Register *engine* (and optionally a store inspector), replacing any previous runtime."""
    global _runtime  # noqa: PLW0603
    _runtime = DebugRuntime(
        engine=engine,
        store_inspector=store_inspector,
        registered_at=time.time() * 1000.0,
    )
    logger.info("debug_runtime_registered", has_store_inspector=store_inspector is not None)
    return _runtime


def get_debug_runtime() -> DebugRuntime | None:
    return _runtime


def reset_debug_runtime() -> None:
    global _runtime  # noqa: PLW0603
    _runtime = None
