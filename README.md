# discfilter

Building blocks for the networking side of a Kademlia-style peer discovery
service. Durations and times are plain `float` seconds throughout. Classes that
depend on time take an optional `clock` callable (default `time.monotonic`),
so tests can drive time by hand.

## Modules

- `discfilter.rate_limiter` contains `Limiter`, a GCRA token-bucket limiter that
  keeps one theoretical arrival time per key. It also has `RateLimiter`, which
  combines a required total quota with optional per-node-id and per-IP quotas
  and is built through `RateLimiterBuilder`. The `*_one_every` methods set a
  hard limit. The `*_n_every` methods allow bursts of `n`. A request that is
  refused raises `RateLimited`: either `TooLarge`, or `TooSoon`, which carries
  `wait` seconds. Quota errors raise `ValueError`.
- `discfilter.cache` contains `ReceivedPacketCache`, a time-ordered record of
  received entries. It keeps `time_window` seconds of history and accepts at
  most `target` insertions per second. `cache_insert` returns whether the entry
  was stored.
- `discfilter.config` contains `FilterConfig`, with the fields `enabled`,
  `rate_limiter`, `max_nodes_per_ip` (default 10) and `max_bans_per_ip`
  (default 5).
- `discfilter.filter` contains `Filter` and `BanList`.
  - `Filter.initial_pass(src)` checks the source address against the permit
    and ban lists and the per-IP and total rate limits.
  - `Filter.final_pass(node_id, src)` checks the node id against the permit and
    ban lists and the per-node rate limit, and counts node ids per IP.
  - Nodes and IPs that exceed their limits are banned for `ban_duration`
    seconds, or forever when it is `None`.
- `discfilter.ip_vote` contains `IpVote`. It collects the `(ip, port)` that
  peers report for us. `majority()` returns the IPv4 and IPv6 sockets that have
  at least `minimum_threshold` votes, which must be 2 or more. Each vote expires
  after `vote_duration` seconds.
- `discfilter.query_info` has the following:
  - `log2_distance` and `findnode_log2distance`, which give the adjacent
    distances to ask a peer for, for example `[12, 13, 11, 14, 10, ...]`.
  - `QueryInfo`, whose `rpc_request(peer)` builds a FINDNODE or FINDVALUE
    `RequestBody`.
- `discfilter.requests` contains `TalkRequest` and `FindValueRequest`. These are
  inbound requests that the application answers through a `sender` callable.
  - A `TalkRequest` that is closed without an answer sends an empty response.
    It can be used as a context manager.
  - `FindValueRequest.respond(None)` sends the prepared NODES messages instead
    of a value.
  - A sender that raises `ConnectionError`, or a second answer to the same
    request, raises `ResponseError`.
- `discfilter.ip_update` has the following:
  - `should_count_vote`, which counts only connected peers that we contacted
    ourselves.
  - `new_sockets`, which gives the majority sockets that differ from the ones
    currently advertised.
  - `EventStream`, a bounded event queue that drops events when it is full or
    closed.
- `discfilter.query_results` has the following:
  - `collect_query_results`, which maps a query's closest node ids to records.
    It uses the untrusted records first and then a lookup.
  - `merge_untrusted`, which adds newly seen records without duplicating node
    ids.

## Installation

```
pip install .
```

The package has no runtime dependencies.

## Examples

```python
from discfilter.rate_limiter import LimitKind, RateLimited, RateLimiterBuilder

limiter = (
    RateLimiterBuilder()
    .total_n_every(10, 1.0)
    .ip_one_every(0.1)
    .build()
)

try:
    limiter.allows(LimitKind.IP, "192.0.2.1")
    limiter.allows(LimitKind.TOTAL)
except RateLimited:
    print("rate limited")
```

```python
from discfilter.config import FilterConfig
from discfilter.filter import Filter

packet_filter = Filter(FilterConfig(enabled=True, rate_limiter=limiter), ban_duration=60.0)
src = ("192.0.2.1", 9000)
if packet_filter.initial_pass(src) and packet_filter.final_pass(b"\x01" * 32, src):
    print("accepted")
```

```python
from ipaddress import IPv4Address

from discfilter.ip_vote import IpVote

votes = IpVote(2, 10.0)
votes.insert(b"\x01" * 32, (IPv4Address("127.0.0.1"), 9000))
votes.insert(b"\x02" * 32, (IPv4Address("127.0.0.1"), 9000))
ip4, ip6 = votes.majority()  # ((IPv4Address('127.0.0.1'), 9000), None)
```

```python
from discfilter.query_info import findnode_log2distance

findnode_log2distance(bytes(32), bytes(31) + b"\x08", 5)  # [4, 5, 3, 6, 2]
```

## What the package does not do

The package is a set of building blocks. It has none of the following:

- UDP sockets, and no packet encoding or decoding.
- A session handler, routing table or running discovery service.
- A way to split NODES responses into packets.
- A command-line program.

The caller supplies the network I/O and decides what to do with the answers
these classes give.

## Running the tests

```
pip install .[test]
pytest
```