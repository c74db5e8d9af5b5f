"""Per-key rate limiting using the generic cell rate algorithm (GCRA)."""

from __future__ import annotations

import enum
import math
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Hashable, Optional

NANOS_PER_SECOND = 1_000_000_000
_U64_MAX = 2**64 - 1


def _to_nanos(seconds: float) -> int:
    return int(round(seconds * NANOS_PER_SECOND))


@dataclass(frozen=True)
class Quota:
    """A quota of ``max_tokens`` tokens fully replenished every ``replenish_all_every`` seconds.

    One token is replenished every ``replenish_all_every / max_tokens`` seconds, and bursts
    of up to ``max_tokens`` tokens are allowed. A ``max_tokens`` of 1 gives a hard limit.
    """

    replenish_all_every: float
    max_tokens: int


class RateLimited(Exception):
    """A request does not conform to the configured rate limit."""


class TooLarge(RateLimited):
    """The tokens required by the request exceed the maximum the quota allows."""

    def __init__(self) -> None:
        super().__init__("request requires more tokens than the quota allows")


class TooSoon(RateLimited):
    """The request does not fit in the quota; ``wait`` is the seconds until it would."""

    def __init__(self, wait: float) -> None:
        super().__init__(f"request too soon, retry in {wait:.9f}s")
        self.wait = wait


class LimitKind(enum.Enum):
    """The rate limit a request counts towards."""

    TOTAL = "total"
    NODE_ID = "node_id"
    IP = "ip"


@dataclass
class Limiter:
    """GCRA limiter keeping a theoretical arrival time (in nanoseconds) per key."""

    tau: int
    t: int
    tat_per_key: Dict[Hashable, int] = field(default_factory=dict)

    @classmethod
    def from_quota(cls, quota: Quota) -> "Limiter":
        if quota.max_tokens == 0:
            raise ValueError("Max number of tokens should be positive")
        tau = _to_nanos(quota.replenish_all_every)
        if tau == 0:
            raise ValueError("Replenish time must be positive")
        t = tau // quota.max_tokens
        if t > _U64_MAX or tau > _U64_MAX:
            raise ValueError("total replenish time is too long")
        return cls(tau=tau, t=t)

    def allows(self, time_since_start: float, key: Hashable, tokens: int) -> None:
        """Accept the request or raise :class:`TooLarge` / :class:`TooSoon`."""
        now = _to_nanos(time_since_start)
        additional_time = self.t * tokens
        if additional_time > self.tau:
            raise TooLarge()
        # A new key is treated as having a full bucket.
        tat = self.tat_per_key.setdefault(key, now)
        earliest_time = max(tat + additional_time - self.tau, 0)
        if now < earliest_time:
            raise TooSoon((earliest_time - now) / NANOS_PER_SECOND)
        self.tat_per_key[key] = max(now, tat) + additional_time

    def prune(self, time_limit: float) -> None:
        """Remove keys whose bucket is full by ``time_limit`` seconds."""
        limit = _to_nanos(time_limit)
        self.tat_per_key = {k: tat for k, tat in self.tat_per_key.items() if tat >= limit}


class RateLimiter:
    """Rate limits on the total traffic and, optionally, per node id and per IP."""

    def __init__(
        self,
        total_rl: Limiter,
        node_rl: Optional[Limiter],
        ip_rl: Optional[Limiter],
        total_requests_per_second: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.total_rl = total_rl
        self.node_rl = node_rl
        self.ip_rl = ip_rl
        self._total_requests_per_second = total_requests_per_second
        self._clock = clock
        self._init_time = clock()

    def _elapsed(self) -> float:
        return self._clock() - self._init_time

    def allows(self, kind: LimitKind, key: Hashable = None) -> None:
        """Count one token towards ``kind``; raise :class:`RateLimited` if not allowed."""
        elapsed = self._elapsed()
        if kind is LimitKind.TOTAL:
            self.total_rl.allows(elapsed, None, 1)
            return
        limiter = self.ip_rl if kind is LimitKind.IP else self.node_rl
        if limiter is None:
            return
        if key is None:
            raise ValueError(f"a key is required for {kind.value} limits")
        limiter.allows(elapsed, key, 1)

    def total_requests_per_second(self) -> float:
        """The estimated maximum number of requests per second."""
        return self._total_requests_per_second

    def prune(self) -> None:
        """Drop stale entries; meant to be called regularly."""
        elapsed = self._elapsed()
        self.total_rl.prune(elapsed)
        for limiter in (self.ip_rl, self.node_rl):
            if limiter is not None:
                limiter.prune(elapsed)


@dataclass(frozen=True)
class RateLimiterBuilder:
    """Builds a :class:`RateLimiter`. The total quota must be set."""

    total_quota: Optional[Quota] = None
    node_quota: Optional[Quota] = None
    ip_quota: Optional[Quota] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)

    def total_one_every(self, time_period: float) -> "RateLimiterBuilder":
        return replace(self, total_quota=Quota(time_period, 1))

    def node_one_every(self, time_period: float) -> "RateLimiterBuilder":
        return replace(self, node_quota=Quota(time_period, 1))

    def ip_one_every(self, time_period: float) -> "RateLimiterBuilder":
        return replace(self, ip_quota=Quota(time_period, 1))

    def total_n_every(self, n: int, time_period: float) -> "RateLimiterBuilder":
        return replace(self, total_quota=Quota(time_period, n))

    def node_n_every(self, n: int, time_period: float) -> "RateLimiterBuilder":
        return replace(self, node_quota=Quota(time_period, n))

    def ip_n_every(self, n: int, time_period: float) -> "RateLimiterBuilder":
        return replace(self, ip_quota=Quota(time_period, n))

    def build(self) -> RateLimiter:
        if self.total_quota is None:
            raise ValueError("Total quota not specified and must be set.")
        total_rl = Limiter.from_quota(self.total_quota)
        node_rl = Limiter.from_quota(self.node_quota) if self.node_quota else None
        ip_rl = Limiter.from_quota(self.ip_quota) if self.ip_quota else None

        quota = self.total_quota
        if quota.max_tokens == 1:
            rate = 1.0 / quota.replenish_all_every
        else:
            # doubled to account for potential bursts
            rate = 2.0 * quota.max_tokens / quota.replenish_all_every
        total_requests_per_second = float(math.floor(rate + 0.5))

        return RateLimiter(total_rl, node_rl, ip_rl, total_requests_per_second, self.clock)