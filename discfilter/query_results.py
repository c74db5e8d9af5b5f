"""Turning the node ids a finished query returns into the records handed to the caller."""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Iterable, List, MutableSequence, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _swap_remove(items: List[T], index: int) -> T:
    """Remove ``items[index]``, moving the last item into its place."""
    last = items.pop()
    if index == len(items):
        return last
    found, items[index] = items[index], last
    return found


def collect_query_results(
    closest_peers: Iterable[Hashable],
    untrusted_enrs: Iterable[T],
    lookup: Callable[[Hashable], Optional[T]],
    node_id_of: Callable[[T], Hashable],
) -> List[T]:
    """The records for the node ids a query found, in the order of ``closest_peers``.

    A record is taken from ``untrusted_enrs`` when one matches, each record being used at
    most once; otherwise ``lookup`` (the routing table) is asked. Node ids for which no
    record is known are left out. ``untrusted_enrs`` itself is not modified.
    """
    pool = list(untrusted_enrs)
    found: List[T] = []
    for node_id in closest_peers:
        position = next(
            (i for i, enr in enumerate(pool) if node_id_of(enr) == node_id), None
        )
        if position is not None:
            found.append(_swap_remove(pool, position))
            continue
        enr = lookup(node_id)
        if enr is not None:
            found.append(enr)
        else:
            logger.warning("ENR not present in queries results")
    return found


def merge_untrusted(
    untrusted: MutableSequence[T],
    enrs: Iterable[T],
    node_id_of: Callable[[T], Hashable],
) -> List[T]:
    """Append to ``untrusted`` every record of ``enrs`` whose node id it does not yet hold.

    Returns the records that were appended, in order.
    """
    known = {node_id_of(enr) for enr in untrusted}
    added: List[T] = []
    for enr in enrs:
        node_id = node_id_of(enr)
        if node_id in known:
            continue
        known.add(node_id)
        untrusted.append(enr)
        added.append(enr)
    logger.debug("%d peers merged into the query", len(added))
    return added