"""Link placement derived from node positions."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Set

import numpy as np

from ..model import NODE_RADIUS, Assembly, LinkId, NodeId
from .model import LinkPlacement

logger = logging.getLogger(__name__)


def link_placement(assembly: Assembly, link_id: LinkId) -> Optional[LinkPlacement]:
    """Placement of a single link; ``None`` for a detached link."""

    link = assembly.link(link_id)
    if link.anchor is None:
        return None
    anchor = assembly.position(link.anchor)

    if link.free is not None:
        free = assembly.position(link.free)
        delta = free - anchor
        dist = float(np.linalg.norm(delta))
        # Coincident nodes keep the stored hint so the placement stays defined.
        direction = delta / dist if dist > 1e-12 else link.anchor_direction.copy()
        span = dist - 2.0 * NODE_RADIUS
        return LinkPlacement(
            link=link_id,
            state="bound",
            center=(anchor + free) * 0.5,
            direction=direction,
            start=anchor + direction * NODE_RADIUS,
            end=free - direction * NODE_RADIUS,
            span=span,
            scale=span / link.length,
        )

    direction = link.anchor_direction.copy()
    start = anchor + direction * NODE_RADIUS
    return LinkPlacement(
        link=link_id,
        state="pending",
        center=start + direction * (link.length * 0.5),
        direction=direction,
        start=start,
        end=start + direction * link.length,
        span=link.length,
        scale=1.0,
    )


def refresh_dependents(assembly: Assembly, nodes: Iterable[NodeId]) -> Dict[LinkId, LinkPlacement]:
    """Recompute the placement of every link touching ``nodes``, once per link."""

    placements: Dict[LinkId, LinkPlacement] = {}
    seen: Set[LinkId] = set()
    for nid in nodes:
        for link_id in assembly.incident_links(nid):
            if link_id in seen:
                continue
            seen.add(link_id)
            placement = link_placement(assembly, link_id)
            if placement is not None:
                placements[link_id] = placement
    logger.debug("Refreshed %d link placement(s)", len(placements))
    return placements


__all__ = ["link_placement", "refresh_dependents"]
