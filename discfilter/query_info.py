"""Query information and the FINDNODE distances requested from peers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

#: The number of distances (buckets) requested from each peer at once; at most 127.
DISTANCES_TO_REQUEST_PER_PEER = 3

#: The largest log2 distance between two 256-bit node ids.
MAX_DISTANCE = 256


def log2_distance(a: bytes, b: bytes) -> Optional[int]:
    """The log2 XOR distance between two node ids, or ``None`` if they are equal."""
    xor = int.from_bytes(a, "big") ^ int.from_bytes(b, "big")
    return xor.bit_length() or None


def findnode_log2distance(target: bytes, peer: bytes, size: int) -> Optional[List[int]]:
    """Distances to request from ``peer`` when looking for ``target``.

    Starting from the exact distance, adjacent distances are added alternately above and
    below, e.g. ``[12, 13, 11, 14, 10, ...]``. Returns ``None`` if ``peer`` is ``target``.
    """
    if size > 127:
        raise ValueError("Iterations cannot be greater than 127")
    distance = log2_distance(peer, target)
    if distance is None:
        return None

    result = [distance]
    difference = 1
    while len(result) < size:
        if distance + difference <= MAX_DISTANCE:
            result.append(distance + difference)
        if len(result) < size and distance - difference >= 0:
            result.append(distance - difference)
        difference += 1
    return result[:size]


class QueryType(enum.Enum):
    """What a query searches for."""

    FIND_NODE = "find_node"
    FIND_VALUE = "find_value"


@dataclass(frozen=True)
class RequestBody:
    """A FINDNODE request, or a FINDVALUE request when ``key`` is set."""

    distances: Tuple[int, ...]
    key: Optional[bytes] = None

    @property
    def query_type(self) -> QueryType:
        return QueryType.FIND_NODE if self.key is None else QueryType.FIND_VALUE


@dataclass
class QueryInfo:
    """A running query: its kind, target and the ENRs gathered along the way."""

    query_type: QueryType
    target: bytes
    untrusted_enrs: List[Any] = field(default_factory=list)
    callback: Any = None
    distances_to_request: int = DISTANCES_TO_REQUEST_PER_PEER

    def rpc_request(self, peer: bytes) -> RequestBody:
        """The request to send to ``peer`` for this query."""
        distances = findnode_log2distance(self.target, peer, self.distances_to_request)
        if distances is None:
            distances = [0]
        if self.query_type is QueryType.FIND_VALUE:
            return RequestBody(tuple(distances), key=self.target)
        return RequestBody(tuple(distances))

    def key(self) -> bytes:
        """The routing key of the query target."""
        return self.target