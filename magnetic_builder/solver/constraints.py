"""Constraint collection for a proposed connection."""

from __future__ import annotations

import logging
from typing import Iterable, List, Set, Tuple

from ..logging_utils import apply_debug_logging
from ..model import Assembly, LinkId, NodeId
from .model import Constraint

logger = logging.getLogger(__name__)

Tentative = Tuple[NodeId, NodeId, float]


def collect(assembly: Assembly, nodes: Iterable[NodeId], tentative: Tentative) -> List[Constraint]:
    """One constraint per bound link inside ``nodes``, then the tentative pair.

    Emission follows the iteration order of ``nodes`` and, per node, link
    handle order, so repeated calls on the same graph give the same list.
    """

    members = list(nodes)
    member_set = set(members)
    seen: Set[LinkId] = set()
    constraints: List[Constraint] = []

    for node in members:
        for link_id in assembly.bound_links(node):
            if link_id in seen:
                continue
            link = assembly.links[link_id]
            if link.anchor not in member_set or link.free not in member_set:
                continue
            seen.add(link_id)
            constraints.append(
                Constraint(
                    node_a=link.anchor,  # type: ignore[arg-type]
                    node_b=link.free,  # type: ignore[arg-type]
                    required_distance=link.required_distance,
                    origin_link=link_id,
                )
            )

    node_a, node_b, distance = tentative
    constraints.append(Constraint(node_a=node_a, node_b=node_b, required_distance=float(distance)))

    logger.info(
        "Collected %d constraint(s): existing=%d tentative=1",
        len(constraints),
        len(constraints) - 1,
    )
    return constraints


apply_debug_logging(globals(), logger=logger)


__all__ = ["Tentative", "collect"]
