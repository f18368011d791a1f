"""Connected-component discovery over bound links."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, List, Set

from ..logging_utils import apply_debug_logging
from ..model import Assembly, NodeId

logger = logging.getLogger(__name__)


def reachable_from(assembly: Assembly, seeds: Iterable[NodeId]) -> List[NodeId]:
    """Return every node connected to any of ``seeds`` through bound links.

    Breadth-first; each node appears once, in visit order. Pending links are
    not edges, so a node reachable only through one is excluded.
    """

    queue: Deque[NodeId] = deque()
    for seed in seeds:
        assembly.node(seed)
        queue.append(seed)

    visited: Set[NodeId] = set()
    order: List[NodeId] = []
    while queue:
        node = queue.popleft()
        if node in visited:
            continue
        visited.add(node)
        order.append(node)
        for neighbour in assembly.bound_neighbours(node):
            if neighbour not in visited:
                queue.append(neighbour)

    logger.debug("Reachable set has %d node(s)", len(order))
    return order


apply_debug_logging(globals(), logger=logger)


__all__ = ["reachable_from"]
