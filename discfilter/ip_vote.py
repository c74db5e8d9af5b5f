"""Majority voting on our external socket address as reported by peers."""

from __future__ import annotations

import ipaddress
import time
from collections import Counter
from typing import Callable, Dict, Hashable, Optional, Tuple, Union

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Socket = Tuple[IpAddress, int]


def _normalize(socket: Tuple[object, int]) -> Socket:
    ip, port = socket
    return ipaddress.ip_address(ip), int(port)


def _majority(counts: Counter, threshold: int) -> Optional[Socket]:
    eligible = [(sock, n) for sock, n in counts.items() if n >= threshold]
    if not eligible:
        return None
    return max(eligible, key=lambda item: item[1])[0]


class IpVote:
    """IP:port votes for our node from external peers, each valid for ``vote_duration`` seconds."""

    def __init__(
        self,
        minimum_threshold: int,
        vote_duration: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if minimum_threshold < 2:
            raise ValueError(
                "Setting enr_peer_update_min to a value less than 2 will cause issues "
                "with discovery with peers behind NAT"
            )
        self.minimum_threshold = minimum_threshold
        self.vote_duration = vote_duration
        self._clock = clock
        self._votes: Dict[Hashable, Tuple[Socket, float]] = {}

    def insert(self, key: Hashable, socket: Tuple[object, int]) -> None:
        """Record the vote of ``key``, replacing any earlier vote it made."""
        self._votes[key] = (_normalize(socket), self._clock() + self.vote_duration)

    def majority(self) -> Tuple[Optional[Socket], Optional[Socket]]:
        """The IPv4 and IPv6 majority sockets, or ``None`` where the threshold is not met."""
        now = self._clock()
        self._votes = {k: v for k, v in self._votes.items() if v[1] > now}

        ip4: Counter = Counter()
        ip6: Counter = Counter()
        for socket, _ in self._votes.values():
            (ip4 if socket[0].version == 4 else ip6)[socket] += 1

        return (
            _majority(ip4, self.minimum_threshold),
            _majority(ip6, self.minimum_threshold),
        )