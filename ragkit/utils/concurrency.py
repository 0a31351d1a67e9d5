"""Shared concurrency primitives for the ingest pipeline.

``throttled_gather`` is a drop-in replacement for ``asyncio.gather`` that
wraps each awaitable in a semaphore acquire/release.  The context engine
uses it as the bounded worker pool for asset extraction and for embedding
calls, so at most ``concurrency`` provider requests are in flight.

``run_with_timeout`` bounds a single external call and converts expiry into
the caller's stage-specific error type.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore | None = None,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently with optional semaphore throttling.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Optional semaphore for concurrency control.  When ``None`` all
        awaitables run at once.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """
    if semaphore is None:
        return await asyncio.gather(*coros, return_exceptions=return_exceptions)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)


async def run_with_timeout(
    awaitable: Awaitable[_T],
    timeout_s: float | None,
    on_timeout: Callable[[], BaseException],
) -> _T:
    """Await *awaitable* under a deadline.

    On expiry the awaitable is cancelled and the exception built by
    *on_timeout* is raised from the ``TimeoutError``.  A ``None`` or
    non-positive timeout disables the deadline.
    """
    if timeout_s is None or timeout_s <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        raise on_timeout() from exc
