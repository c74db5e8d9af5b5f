"""Configuration of the inbound packet filter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .rate_limiter import RateLimiter


@dataclass
class FilterConfig:
    """Settings for the packet filter.

    ``max_nodes_per_ip`` is the number of node ids allowed per IP before the IP is banned;
    ``max_bans_per_ip`` is the number of banned nodes on one IP before the IP is banned.
    ``None`` disables either check.
    """

    enabled: bool
    rate_limiter: Optional[RateLimiter] = None
    max_nodes_per_ip: Optional[int] = 10
    max_bans_per_ip: Optional[int] = 5