"""Keyed single-flight guard."""

from typing import Awaitable, Callable, Hashable, Optional, Set, TypeVar

T = TypeVar("T")


class SingleFlight:
    """
    At most one in-progress execution per key.

    Overlapping callers for a busy key are short-circuited with ``default``
    instead of waiting or starting a duplicate call. Keys are released when
    the call finishes, fails or is cancelled.
    """

    def __init__(self):
        self._in_flight: Set[Hashable] = set()

    def in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    async def run(self, key: Hashable, fn: Callable[[], Awaitable[T]], default: Optional[T] = None) -> Optional[T]:
        if key in self._in_flight:
            return default

        # No await between the membership check and the claim
        self._in_flight.add(key)
        try:
            return await fn()
        finally:
            self._in_flight.discard(key)
