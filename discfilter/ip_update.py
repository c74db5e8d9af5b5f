"""Deciding when peers' reports of our external address should update the local record."""

from __future__ import annotations

import ipaddress
import logging
from collections import deque
from typing import Any, Deque, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

#: Capacity of the event stream when discovered peers are not reported.
DEFAULT_EVENT_CAPACITY = 30
#: Capacity of the event stream when every discovered peer is reported on it.
DISCOVERED_PEERS_EVENT_CAPACITY = 100

Socket = Tuple[Any, int]


class EventStream:
    """A bounded stream of service events.

    Events sent while the stream is full are dropped. Once the receiving side has
    closed the stream, no further events are accepted.
    """

    def __init__(self, capacity: int = DEFAULT_EVENT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.closed = False
        self._events: Deque[Any] = deque()

    def send(self, event: Any) -> bool:
        """Queue ``event``; return whether it was accepted."""
        if self.closed:
            return False
        if len(self._events) >= self.capacity:
            logger.debug("Event stream full, dropping event %r", event)
            return False
        self._events.append(event)
        return True

    def close(self) -> None:
        """Close the stream, discarding any events not yet received."""
        self.closed = True
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Any]:
        """Receive the queued events in order, removing them from the stream."""
        while self._events:
            yield self._events.popleft()


def should_count_vote(connected: bool, incoming: bool) -> bool:
    """Only votes from connected peers that we contacted ourselves are counted."""
    return connected and not incoming


def _normalize(socket: Optional[Socket]) -> Optional[Tuple[Any, int]]:
    if socket is None:
        return None
    ip, port = socket
    return ipaddress.ip_address(ip), int(port)


def new_sockets(
    majority: Tuple[Optional[Socket], Optional[Socket]],
    local_ip4: Optional[Socket],
    local_ip6: Optional[Socket],
) -> Tuple[Optional[Socket], Optional[Socket]]:
    """The IPv4 and IPv6 sockets to advertise instead of the local ones.

    ``majority`` is the pair returned by the IP vote. A side is ``None`` when there is no
    majority for it or the majority already matches the advertised socket.
    """
    maybe_ip4, maybe_ip6 = (_normalize(s) for s in majority)
    local4 = _normalize(local_ip4)
    local6 = _normalize(local_ip6)
    new_ip4 = maybe_ip4 if maybe_ip4 is not None and maybe_ip4 != local4 else None
    new_ip6 = maybe_ip6 if maybe_ip6 is not None and maybe_ip6 != local6 else None
    return new_ip4, new_ip6