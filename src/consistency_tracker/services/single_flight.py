"""Keyed single-flight execution for expensive async calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import TypeVar

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class SingleFlight:
    """Runs at most one call per key; concurrent callers share its outcome.

    Registration happens without an intervening await, so the check-and-set is
    atomic on the event loop. Calls for different keys never wait on each other.
    """

    def __init__(self) -> None:
        self._calls: dict[Hashable, asyncio.Future] = {}

    def in_flight(self, key: Hashable) -> bool:
        """Return True while a call for the key is running."""
        call = self._calls.get(key)
        return call is not None and not call.done()

    async def run(self, key: Hashable, func: Callable[[], Awaitable[T]]) -> T:
        """Start ``func`` for the key, or join the call already in flight."""
        existing = self._calls.get(key)
        if existing is not None and not existing.done():
            _logger.debug("Joining in-flight call for %s", key)
            return await asyncio.shield(existing)

        task = asyncio.ensure_future(func())
        self._calls[key] = task
        task.add_done_callback(lambda _: self._release(key, task))
        return await asyncio.shield(task)

    def _release(self, key: Hashable, task: asyncio.Future) -> None:
        if self._calls.get(key) is task:
            del self._calls[key]
