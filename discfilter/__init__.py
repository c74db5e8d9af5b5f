"""Packet filtering, rate limiting, IP voting, request and query helpers for peer discovery."""

__version__ = "0.1.0"

__all__ = [
    "cache",
    "config",
    "filter",
    "ip_update",
    "ip_vote",
    "query_info",
    "query_results",
    "rate_limiter",
    "requests",
]