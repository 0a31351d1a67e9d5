"""Monotonic timing helpers used to fill ``durations`` blocks."""

from __future__ import annotations

import time


def now() -> float:
    """Return a monotonic timestamp in seconds."""
    return time.monotonic()


def elapsed_ms(start: float) -> float:
    """Milliseconds elapsed since *start* (a value returned by :func:`now`)."""
    return (time.monotonic() - start) * 1000.0
