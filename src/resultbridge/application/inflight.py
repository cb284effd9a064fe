from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlightRequests(Generic[T]):
    """Single-flight: concurrent callers for one key share a single execution."""

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Future[T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._inflight

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        leader = self._inflight.get(key)
        if leader is not None:
            logger.debug("Joining in-flight request", extra={"key": key})
            return await asyncio.shield(leader)

        future: asyncio.Future[T] = asyncio.ensure_future(factory())
        future.add_done_callback(_retrieve_exception)
        self._inflight[key] = future
        try:
            return await asyncio.shield(future)
        finally:
            if future.done():
                self._inflight.pop(key, None)
            else:
                future.add_done_callback(lambda _: self._inflight.pop(key, None))


def _retrieve_exception(future: asyncio.Future) -> None:
    # Every waiter may have been cancelled before the shared call failed.
    if not future.cancelled() and future.exception() is not None:
        logger.debug("In-flight request failed", exc_info=future.exception())
