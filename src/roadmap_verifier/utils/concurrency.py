"""Async helpers for running checks concurrently under a shared limit."""

from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Iterable

T = TypeVar("T")


class ConcurrencyLimit:
    """Caps in-flight checks across a whole run and records the high-water mark."""

    def __init__(self, limit: int) -> None:
        if isinstance(limit, bool) or limit <= 0:
            raise ValueError(f"concurrency limit must be a positive integer, got {limit!r}")
        self.limit = limit
        self.active = 0
        self.high_water = 0
        self._slots = asyncio.Semaphore(limit)

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._slots:
            self.active += 1
            self.high_water = max(self.high_water, self.active)
            try:
                yield
            finally:
                self.active -= 1


async def gather_ordered(
    awaitables: Iterable[Awaitable[T]],
    *,
    limit: ConcurrencyLimit | None = None,
) -> list[T]:
    """Await everything concurrently; results come back in submission order.

    Failures propagate, so each awaitable should turn its own errors into values.
    """

    async def _bounded(awaitable: Awaitable[T]) -> T:
        if limit is None:
            return await awaitable
        async with limit.slot():
            return await awaitable

    return list(await asyncio.gather(*map(_bounded, awaitables)))


async def run_with_timeout(awaitable: Awaitable[T], timeout_seconds: float) -> T:
    """Await ``awaitable`` for at most ``timeout_seconds``, raising ``TimeoutError`` after."""

    if timeout_seconds <= 0:
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise ValueError("timeout_seconds must be > 0")
    try:
        async with asyncio.timeout(timeout_seconds):
            return await awaitable
    except TimeoutError:
        raise TimeoutError(f"timed out after {timeout_seconds} seconds") from None


__all__ = ["ConcurrencyLimit", "gather_ordered", "run_with_timeout"]
