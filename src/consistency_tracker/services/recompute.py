"""Recomputation coordinator with superseded-result discarding.

Every request bumps a generation counter before it starts awaiting. When the
computation settles, its result is published only if no newer request started
in the meantime; otherwise it is dropped. Published values therefore never go
backwards, and a failed computation leaves the last published value in place.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from consistency_tracker.domain.errors import RaceDiscarded

T = TypeVar("T")

_logger = logging.getLogger(__name__)


class RecomputeCoordinator(Generic[T]):
    """Coalesces overlapping recomputations and publishes the freshest one."""

    def __init__(self, name: str = "recompute", initial: T | None = None) -> None:
        self.name = name
        self._generation = 0
        self._published_generation = 0
        self._latest = initial
        self._subscribers: list[Callable[[T], None]] = []
        self.discarded_count = 0
        self.last_discarded: RaceDiscarded | None = None

    @property
    def latest(self) -> T | None:
        """Return the last published value without waiting."""
        return self._latest

    @property
    def generation(self) -> int:
        """Return the number of requests issued so far."""
        return self._generation

    @property
    def published_generation(self) -> int:
        """Return the generation of the currently published value."""
        return self._published_generation

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback for published values and return an unsubscriber."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def request_recompute(self, compute: Callable[[], Awaitable[T]]) -> T | None:
        """Run a computation and publish its result unless it was superseded.

        Returns the published value: this request's result, or the current
        value when a newer request superseded it. Exceptions from ``compute``
        propagate and nothing is published.
        """
        self._generation += 1
        generation = self._generation
        result = await compute()
        if generation != self._generation:
            self.discarded_count += 1
            self.last_discarded = RaceDiscarded(
                f"Generation {generation} superseded by {self._generation}",
                operation=self.name,
            )
            _logger.debug("%s", self.last_discarded)
            return self._latest
        self._publish(generation, result)
        return result

    def _publish(self, generation: int, value: T) -> None:
        self._published_generation = generation
        self._latest = value
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                _logger.exception("Subscriber failed for %s", self.name)
