"""A time-ordered cache of received packets, limiting insertions per second."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from itertools import takewhile
from typing import Callable, Deque, Generic, Iterator, TypeVar

T = TypeVar("T")

#: Seconds over which the cache's target size is enforced.
ENFORCED_SIZE_TIME = 1.0


@dataclass(frozen=True)
class ReceivedPacket(Generic[T]):
    """An entry of the cache and the time it was received."""

    content: T
    received: float


class ReceivedPacketCache(Generic[T]):
    """Keeps ``time_window`` seconds of entries, accepting at most ``target`` per second."""

    def __init__(
        self,
        target: int,
        time_window: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.target = target
        self.time_window = time_window
        self.within_enforced_time = 0
        self._clock = clock
        self._inner: Deque[ReceivedPacket[T]] = deque()

    def reset(self) -> None:
        """Remove entries older than the time window and recount the recent ones."""
        now = self._clock()
        while self._inner and not self._inner[0].received > now - self.time_window:
            self._inner.popleft()
        recent = takewhile(
            lambda packet: packet.received > now - ENFORCED_SIZE_TIME, reversed(self._inner)
        )
        self.within_enforced_time = sum(1 for _ in recent)

    def cache_insert(self, content: T) -> bool:
        """Insert ``content`` unless the per-second target is reached; report success."""
        self.reset()
        if self.within_enforced_time >= self.target:
            return False
        self._inner.append(ReceivedPacket(content, self._clock()))
        self.within_enforced_time += 1
        return True

    def __len__(self) -> int:
        return len(self._inner)

    def __iter__(self) -> Iterator[ReceivedPacket[T]]:
        return iter(self._inner)