"""A filter that decides whether to accept or reject inbound UDP packets."""

from __future__ import annotations

import logging
import math
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Hashable, Optional, Set, Tuple, TypeVar

from .cache import ReceivedPacketCache
from .config import FilterConfig
from .rate_limiter import LimitKind, RateLimited

logger = logging.getLogger(__name__)

#: The maximum number of IPs retained when counting node ids per IP.
KNOWN_ADDRS_SIZE = 500
#: The number of IPs with banned nodes retained at any given time.
BANNED_NODES_SIZE = 50
#: Packets per second recorded for metrics when no rate limiter is configured.
DEFAULT_PACKETS_PER_SECOND = 20
#: Seconds of packet history kept to compute a moving average.
DEFAULT_MOVING_WINDOW = 5

K = TypeVar("K")
V = TypeVar("V")

SocketAddr = Tuple[Hashable, int]


class _LruCache(Generic[K, V]):
    """A bounded mapping that evicts the least recently used entry."""

    def __init__(self, capacity: int) -> None:
        self._capacity = capacity
        self._items: "OrderedDict[K, V]" = OrderedDict()

    def get(self, key: K) -> Optional[V]:
        if key not in self._items:
            return None
        self._items.move_to_end(key)
        return self._items[key]

    def put(self, key: K, value: V) -> None:
        self._items[key] = value
        self._items.move_to_end(key)
        while len(self._items) > self._capacity:
            self._items.popitem(last=False)

    def pop(self, key: K) -> Optional[V]:
        return self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class BanList:
    """Permitted and banned IPs and node ids; a ban lasts until its expiry, or forever."""

    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    permit_ips: Set[Hashable] = field(default_factory=set)
    permit_nodes: Set[bytes] = field(default_factory=set)
    ban_ips: Dict[Hashable, Optional[float]] = field(default_factory=dict)
    ban_nodes: Dict[bytes, Optional[float]] = field(default_factory=dict)

    def ban_ip(self, ip: Hashable, until: Optional[float]) -> None:
        self.ban_ips[ip] = until

    def ban_node(self, node_id: bytes, until: Optional[float]) -> None:
        self.ban_nodes[node_id] = until

    def _is_banned(self, bans: Dict, key: Hashable) -> bool:
        if key not in bans:
            return False
        until = bans[key]
        if until is not None and until <= self.clock():
            del bans[key]
            return False
        return True

    def is_ip_banned(self, ip: Hashable) -> bool:
        return self._is_banned(self.ban_ips, ip)

    def is_node_banned(self, node_id: bytes) -> bool:
        return self._is_banned(self.ban_nodes, node_id)


class Filter:
    """Accepts or rejects unsolicited packets by ban lists, rate limits and node counts."""

    def __init__(
        self,
        config: FilterConfig,
        ban_duration: Optional[float] = None,
        ban_list: Optional[BanList] = None,
        clock: Callable[[], float] = time.monotonic,
        moving_window: float = DEFAULT_MOVING_WINDOW,
    ) -> None:
        if config.rate_limiter is not None:
            expected = int(math.floor(config.rate_limiter.total_requests_per_second() + 0.5))
        else:
            expected = DEFAULT_PACKETS_PER_SECOND
        self.enabled = config.enabled
        self.rate_limiter = config.rate_limiter
        self.max_nodes_per_ip = config.max_nodes_per_ip
        self.max_bans_per_ip = config.max_bans_per_ip
        self.ban_duration = ban_duration
        self.ban_list = ban_list if ban_list is not None else BanList(clock=clock)
        self.unsolicited_requests_per_window = 0
        self._clock = clock
        self._raw_packets_received: ReceivedPacketCache[SocketAddr] = ReceivedPacketCache(
            expected, moving_window, clock
        )
        self._known_addrs: _LruCache[Hashable, Set[bytes]] = _LruCache(KNOWN_ADDRS_SIZE)
        self._banned_nodes: _LruCache[Hashable, int] = _LruCache(BANNED_NODES_SIZE)

    def _ban_timeout(self) -> Optional[float]:
        if self.ban_duration is None:
            return None
        return self._clock() + self.ban_duration

    def initial_pass(self, src: SocketAddr) -> bool:
        """Decide whether an unsolicited packet from ``src`` should be decoded."""
        ip = src[0]
        if ip in self.ban_list.permit_ips:
            return True
        if self.ban_list.is_ip_banned(ip):
            logger.debug("Dropped unsolicited packet from banned src: %s", src)
            return False

        # Over the per-second target the entry is not stored; the rate limiter enforces limits.
        self._raw_packets_received.cache_insert(src)
        self.unsolicited_requests_per_window = len(self._raw_packets_received)

        if not self.enabled:
            return True

        if self.rate_limiter is not None:
            try:
                self.rate_limiter.allows(LimitKind.IP, ip)
            except RateLimited:
                logger.warning("Banning IP for excessive requests: %s", ip)
                self.ban_list.ban_ip(ip, self._ban_timeout())
                return False
            try:
                self.rate_limiter.allows(LimitKind.TOTAL)
            except RateLimited:
                logger.debug("Dropped unsolicited packet from RPC limit: %s", ip)
                return False
        return True

    def final_pass(self, node_id: bytes, src: SocketAddr) -> bool:
        """Decide whether a decoded packet from ``node_id`` at ``src`` is accepted."""
        if node_id in self.ban_list.permit_nodes:
            return True
        if self.ban_list.is_node_banned(node_id):
            logger.debug("Dropped unsolicited packet from banned node_id: %s", node_id.hex())
            return False

        if not self.enabled:
            return True

        ip = src[0]
        if self.rate_limiter is not None:
            try:
                self.rate_limiter.allows(LimitKind.NODE_ID, node_id)
            except RateLimited:
                logger.warning("Node has exceeded its request limit and is now banned %s",
                               node_id.hex())
                ban_timeout = self._ban_timeout()
                self.ban_list.ban_node(node_id, ban_timeout)
                if self.max_bans_per_ip is not None:
                    banned_count = self._banned_nodes.get(ip)
                    if banned_count is None:
                        self._banned_nodes.put(ip, 0)
                    else:
                        banned_count += 1
                        self._banned_nodes.put(ip, banned_count)
                        if banned_count >= self.max_bans_per_ip:
                            self.ban_list.ban_ip(ip, ban_timeout)
                return False

        if self.max_nodes_per_ip is not None:
            known_nodes = self._known_addrs.get(ip)
            if known_nodes is None:
                known_nodes = {node_id}
                self._known_addrs.put(ip, known_nodes)
            else:
                known_nodes.add(node_id)
            if len(known_nodes) >= self.max_nodes_per_ip:
                logger.warning("IP has exceeded its node-id limit and is now banned %s", ip)
                self.ban_list.ban_ip(ip, self._ban_timeout())
                self._known_addrs.pop(ip)
                return False

        return True

    def prune_limiter(self) -> None:
        """Drop stale rate limiter entries."""
        if self.rate_limiter is not None:
            self.rate_limiter.prune()