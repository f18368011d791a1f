"""Node/link arena for ball-and-shaft assemblies."""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set

import numpy as np

from .logging_utils import format_vec3

logger = logging.getLogger(__name__)

NodeId = int
LinkId = int

NODE_RADIUS = 0.5
CUBE_SIDE = 2.0
SMALL_LINK_LENGTH = CUBE_SIDE
LARGE_LINK_LENGTH = CUBE_SIDE * math.sqrt(2.0)
SNAP_TOLERANCE = 0.1

LINK_LENGTHS: Dict[str, float] = {
    "small": SMALL_LINK_LENGTH,
    "large": LARGE_LINK_LENGTH,
}

_UP = (0.0, 1.0, 0.0)


class AssemblyError(ValueError):
    """Raised when the node/link graph is used inconsistently."""


class UnknownNodeError(AssemblyError, KeyError):
    """Raised for a node handle that is not (or no longer) in the assembly."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class UnknownLinkError(AssemblyError, KeyError):
    """Raised for a link handle that is not (or no longer) in the assembly."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class LinkStateError(AssemblyError):
    """Raised when a link transition does not match its current state."""


def as_vec3(value: Iterable[float]) -> np.ndarray:
    vec = np.array([float(c) for c in value], dtype=float)
    if vec.shape != (3,):
        raise AssemblyError(f"expected a 3-vector, got {len(vec)} components")
    if not np.all(np.isfinite(vec)):
        raise AssemblyError(f"vector components must be finite, got {vec.tolist()}")
    return vec


def unit_vec3(value: Iterable[float]) -> np.ndarray:
    vec = as_vec3(value)
    norm = float(np.linalg.norm(vec))
    if norm <= 1e-12:
        raise AssemblyError("direction must be a non-zero vector")
    return vec / norm


def _grid_directions() -> np.ndarray:
    # axes first, then face diagonals, then space diagonals; ties keep the earlier entry
    steps = [vec for vec in itertools.product((1, 0, -1), repeat=3) if any(vec)]
    steps.sort(key=lambda vec: sum(1 for c in vec if c))
    dirs = np.array(steps, dtype=float)
    return dirs / np.linalg.norm(dirs, axis=1)[:, None]


GRID_DIRECTIONS = _grid_directions()


def snap_direction_to_grid(direction: Iterable[float]) -> np.ndarray:
    """Nearest of the 26 lattice directions (axes, face and space diagonals)."""

    vec = unit_vec3(direction)
    return GRID_DIRECTIONS[int(np.argmax(GRID_DIRECTIONS @ vec))].copy()


def link_length_for(size: str) -> float:
    try:
        return LINK_LENGTHS[size]
    except KeyError as exc:
        raise AssemblyError(
            f"unknown link size {size!r}; expected one of {sorted(LINK_LENGTHS)}"
        ) from exc


@dataclass
class Node:
    """A positioned ball. ``incident_links`` holds link handles only."""

    id: NodeId
    position: np.ndarray
    incident_links: Set[LinkId] = field(default_factory=set)
    locked: bool = False


@dataclass
class Link:
    """A fixed-length shaft between an anchor slot and a free slot."""

    id: LinkId
    length: float
    anchor: Optional[NodeId] = None
    free: Optional[NodeId] = None
    anchor_direction: np.ndarray = field(default_factory=lambda: np.array(_UP))
    size: Optional[str] = None
    color: Optional[int] = None

    @property
    def is_bound(self) -> bool:
        return self.anchor is not None and self.free is not None

    @property
    def is_pending(self) -> bool:
        return self.anchor is not None and self.free is None

    @property
    def is_detached(self) -> bool:
        return self.anchor is None and self.free is None

    @property
    def state(self) -> str:
        if self.is_bound:
            return "bound"
        if self.is_pending:
            return "pending"
        return "detached"

    @property
    def required_distance(self) -> float:
        """Centre-to-centre distance the link enforces between its nodes."""

        return self.length + 2.0 * NODE_RADIUS

    def endpoints(self) -> List[NodeId]:
        return [node for node in (self.anchor, self.free) if node is not None]

    def other_end(self, node: NodeId) -> Optional[NodeId]:
        if self.anchor == node:
            return self.free
        if self.free == node:
            return self.anchor
        return None


class Assembly:
    """Arena of nodes and links addressed by stable integer handles.

    Links reference nodes by handle and every node keeps the handles of its
    incident links, so adjacency is answered by index lookups instead of
    object back-references.
    """

    def __init__(self) -> None:
        self.nodes: Dict[NodeId, Node] = {}
        self.links: Dict[LinkId, Link] = {}
        self._node_ids = itertools.count()
        self._link_ids = itertools.count()

    def __repr__(self) -> str:
        return f"Assembly(nodes={len(self.nodes)}, links={len(self.links)})"

    # -- lookups -------------------------------------------------------

    def node(self, node_id: NodeId) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError as exc:
            raise UnknownNodeError(f"Unknown node {node_id!r}") from exc

    def link(self, link_id: LinkId) -> Link:
        try:
            return self.links[link_id]
        except KeyError as exc:
            raise UnknownLinkError(f"Unknown link {link_id!r}") from exc

    def position(self, node_id: NodeId) -> np.ndarray:
        return self.node(node_id).position

    def set_position(self, node_id: NodeId, position: Iterable[float]) -> None:
        self.node(node_id).position = as_vec3(position)

    def incident_links(self, node_id: NodeId) -> List[LinkId]:
        """Return the handles of links touching ``node_id`` in handle order."""

        return sorted(self.node(node_id).incident_links)

    def bound_links(self, node_id: NodeId) -> List[LinkId]:
        return [lid for lid in self.incident_links(node_id) if self.links[lid].is_bound]

    def bound_neighbours(self, node_id: NodeId) -> Iterator[NodeId]:
        for lid in self.bound_links(node_id):
            other = self.links[lid].other_end(node_id)
            if other is not None:
                yield other

    def stiffness(self, node_id: NodeId) -> int:
        """``1 + bound links``; better connected nodes move less."""

        return 1 + len(self.bound_links(node_id))

    def distance(self, a: NodeId, b: NodeId) -> float:
        return float(np.linalg.norm(self.position(b) - self.position(a)))

    # -- node editing --------------------------------------------------

    def add_node(self, position: Iterable[float], *, locked: bool = False) -> NodeId:
        node_id = next(self._node_ids)
        self.nodes[node_id] = Node(id=node_id, position=as_vec3(position), locked=locked)
        logger.debug("Added node %d at %s", node_id, format_vec3(self.nodes[node_id].position))
        return node_id

    def remove_node(self, node_id: NodeId) -> None:
        node = self.node(node_id)
        for lid in sorted(node.incident_links):
            self.disconnect_link(lid)
        del self.nodes[node_id]
        logger.debug("Removed node %d", node_id)

    def remove_stranded_nodes(self) -> List[NodeId]:
        """Delete nodes without any incident link and return their handles."""

        stranded = [nid for nid, node in self.nodes.items() if not node.incident_links]
        for nid in stranded:
            del self.nodes[nid]
        if stranded:
            logger.info("Removed %d stranded node(s)", len(stranded))
        return stranded

    def translate_nodes(self, node_ids: Iterable[NodeId], delta: Iterable[float]) -> None:
        offset = as_vec3(delta)
        for nid in node_ids:
            node = self.node(nid)
            node.position = node.position + offset

    # -- link editing --------------------------------------------------

    def add_link(
        self,
        anchor: NodeId,
        size: Optional[str] = None,
        *,
        length: Optional[float] = None,
        direction: Optional[Iterable[float]] = None,
        color: Optional[int] = None,
        grid: bool = False,
    ) -> LinkId:
        """Create a pending link on ``anchor``.

        ``length`` overrides the length implied by ``size``; with neither, a
        small link is created. With ``grid`` the direction is snapped to the
        nearest lattice direction (see :func:`snap_direction_to_grid`).
        """

        anchor_node = self.node(anchor)
        if length is None:
            size = size or "small"
            length = link_length_for(size)
        length = float(length)
        if not math.isfinite(length) or length <= 0.0:
            raise AssemblyError(f"link length must be positive, got {length}")
        heading = direction if direction is not None else _UP
        heading = snap_direction_to_grid(heading) if grid else unit_vec3(heading)
        link_id = next(self._link_ids)
        link = Link(
            id=link_id,
            length=length,
            anchor=anchor,
            anchor_direction=heading,
            size=size,
            color=color,
        )
        self.links[link_id] = link
        anchor_node.incident_links.add(link_id)
        logger.debug("Added %s link %d (length=%.3f) on node %d", size, link_id, length, anchor)
        return link_id

    def attach_free(self, link_id: LinkId, node_id: NodeId) -> None:
        """Bind the free slot of a pending link to ``node_id``."""

        link = self.link(link_id)
        node = self.node(node_id)
        if not link.is_pending:
            raise LinkStateError(f"link {link_id} is {link.state}, expected pending")
        if link.anchor == node_id:
            raise LinkStateError(f"link {link_id} cannot be bound to its own anchor {node_id}")
        link.free = node_id
        node.incident_links.add(link_id)
        logger.debug("Bound link %d: %d -> %d", link_id, link.anchor, node_id)

    def set_anchor_direction(self, link_id: LinkId, direction: Iterable[float]) -> None:
        self.link(link_id).anchor_direction = unit_vec3(direction)

    def disconnect_link(self, link_id: LinkId) -> None:
        """Release both ends, leaving the link detached."""

        link = self.link(link_id)
        for nid in link.endpoints():
            self.nodes[nid].incident_links.discard(link_id)
        link.anchor = None
        link.free = None

    def disconnect_anchor(self, link_id: LinkId) -> None:
        """Release the anchor end.

        A bound link stays attached to its free node, which becomes the new
        anchor; the link then points back toward where the old anchor was.
        """

        link = self.link(link_id)
        if link.anchor is None:
            return
        old_anchor = link.anchor
        self.nodes[old_anchor].incident_links.discard(link_id)
        if link.free is not None:
            new_anchor = link.free
            toward = self.position(old_anchor) - self.position(new_anchor)
            if float(np.linalg.norm(toward)) > 1e-12:
                link.anchor_direction = unit_vec3(toward)
            else:
                link.anchor_direction = -link.anchor_direction
            link.anchor = new_anchor
            link.free = None
        else:
            link.anchor = None

    def disconnect_free(self, link_id: LinkId) -> None:
        """Release the free end; the link keeps pointing where it was bound."""

        link = self.link(link_id)
        if link.free is None:
            return
        old_free = link.free
        if link.anchor is not None:
            toward = self.position(old_free) - self.position(link.anchor)
            if float(np.linalg.norm(toward)) > 1e-12:
                link.anchor_direction = unit_vec3(toward)
        self.nodes[old_free].incident_links.discard(link_id)
        link.free = None

    def remove_link(self, link_id: LinkId) -> None:
        self.disconnect_link(link_id)
        del self.links[link_id]
        logger.debug("Removed link %d", link_id)

    # -- pending link geometry -----------------------------------------

    def free_end_position(self, link_id: LinkId) -> Optional[np.ndarray]:
        """Tip of a pending link, or ``None`` when the link is not pending."""

        link = self.link(link_id)
        if not link.is_pending:
            return None
        anchor = self.position(link.anchor)  # type: ignore[arg-type]
        return anchor + link.anchor_direction * (NODE_RADIUS + link.length)

    def grow_node_at_free_end(self, link_id: LinkId) -> NodeId:
        """Create a node one radius beyond the free tip and bind the link to it."""

        tip = self.free_end_position(link_id)
        if tip is None:
            raise LinkStateError(f"link {link_id} has no free end to grow from")
        link = self.links[link_id]
        node_id = self.add_node(tip + link.anchor_direction * NODE_RADIUS)
        self.attach_free(link_id, node_id)
        return node_id

    def can_snap_to(self, link_id: LinkId, node_id: NodeId, tolerance: float = SNAP_TOLERANCE) -> bool:
        """Whether ``node_id`` already sits at the link's required distance."""

        link = self.link(link_id)
        if link.anchor is None or link.anchor == node_id:
            return False
        gap = self.distance(link.anchor, node_id) - link.required_distance
        return abs(gap) < tolerance

    def node_ids(self) -> List[NodeId]:
        return list(self.nodes)

    def link_ids(self) -> List[LinkId]:
        return list(self.links)

    def positions(self, node_ids: Optional[Sequence[NodeId]] = None) -> Dict[NodeId, np.ndarray]:
        """Copies of node positions, for snapshots and before/after checks."""

        ids = list(self.nodes) if node_ids is None else list(node_ids)
        return {nid: self.position(nid).copy() for nid in ids}


__all__ = [
    "Assembly",
    "AssemblyError",
    "CUBE_SIDE",
    "GRID_DIRECTIONS",
    "LARGE_LINK_LENGTH",
    "LINK_LENGTHS",
    "Link",
    "LinkId",
    "LinkStateError",
    "NODE_RADIUS",
    "Node",
    "NodeId",
    "SMALL_LINK_LENGTH",
    "SNAP_TOLERANCE",
    "UnknownLinkError",
    "UnknownNodeError",
    "as_vec3",
    "link_length_for",
    "snap_direction_to_grid",
    "unit_vec3",
]
