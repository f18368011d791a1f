"""Structure snapshots: node positions plus link endpoints, lengths and hints.

Links refer to nodes by their index in the snapshot's node list, so a
snapshot is independent of the handles of the assembly it came from.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from .model import (
    LINK_LENGTHS,
    Assembly,
    AssemblyError,
    LinkId,
    NodeId,
    link_length_for,
)

logger = logging.getLogger(__name__)

Vec3 = Tuple[float, float, float]


class SnapshotError(ValueError):
    """Raised when a snapshot payload is malformed."""


def _vec3(value: object, what: str) -> Vec3:
    if isinstance(value, Mapping):
        try:
            value = [value["x"], value["y"], value["z"]]
        except KeyError as exc:
            raise SnapshotError(f"{what}: missing component {exc.args[0]!r}") from exc
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise SnapshotError(f"{what}: expected three components, got {value!r}")
    try:
        x, y, z = (float(c) for c in value)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"{what}: components must be numbers, got {value!r}") from exc
    if not all(math.isfinite(c) for c in (x, y, z)):
        raise SnapshotError(f"{what}: components must be finite, got {value!r}")
    return (x, y, z)


def _optional_index(value: object, what: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise SnapshotError(f"{what}: expected an integer or null, got {value!r}")
    return value


def _flag(value: object, what: str) -> bool:
    if not isinstance(value, bool):
        raise SnapshotError(f"{what}: expected true or false, got {value!r}")
    return value


def _from_saved_layout(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename the builder app's ``balls`` / ``shafts`` save format to nodes and links.

    ``startBallIndex`` of -1 marks a shaft without an anchor; it is kept as
    ``None`` and skipped when loading.
    """

    balls = data.get("balls")
    shafts = data.get("shafts")
    if not isinstance(balls, list):
        raise SnapshotError("Invalid structure: missing balls")
    if not isinstance(shafts, list):
        raise SnapshotError("Invalid structure: missing shafts")

    links: List[Any] = []
    for shaft in shafts:
        if not isinstance(shaft, Mapping):
            links.append(shaft)
            continue
        start = shaft.get("startBallIndex")
        links.append(
            {
                "anchor": None if start == -1 else start,
                "free": shaft.get("endBallIndex"),
                "size": shaft.get("size"),
                "direction": shaft.get("direction", (0.0, 1.0, 0.0)),
                "color": shaft.get("color"),
            }
        )
    return {"name": data.get("name") or "", "nodes": balls, "links": links}


@dataclass
class NodeRecord:
    position: Vec3
    locked: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"position": list(self.position)}
        if self.locked:
            data["locked"] = True
        return data


@dataclass
class LinkRecord:
    anchor: Optional[int]
    free: Optional[int] = None
    length: Optional[float] = None
    size: Optional[str] = None
    direction: Vec3 = (0.0, 1.0, 0.0)
    color: Optional[int] = None

    def resolved_length(self) -> float:
        if self.length is not None:
            return self.length
        return link_length_for(self.size or "small")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "anchor": self.anchor,
            "free": self.free,
            "direction": list(self.direction),
        }
        if self.size is not None:
            data["size"] = self.size
        if self.length is not None:
            data["length"] = self.length
        if self.color is not None:
            data["color"] = self.color
        return data


@dataclass
class StructureSnapshot:
    name: str = ""
    nodes: List[NodeRecord] = field(default_factory=list)
    links: List[LinkRecord] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StructureSnapshot":
        if not isinstance(data, Mapping):
            raise SnapshotError("snapshot must be a JSON object")
        if "nodes" not in data and ("balls" in data or "shafts" in data):
            data = _from_saved_layout(data)
        raw_nodes = data.get("nodes")
        if not isinstance(raw_nodes, list):
            raise SnapshotError("Invalid structure: missing nodes")
        raw_links = data.get("links")
        if not isinstance(raw_links, list):
            raise SnapshotError("Invalid structure: missing links")

        nodes: List[NodeRecord] = []
        for idx, raw in enumerate(raw_nodes):
            if not isinstance(raw, Mapping):
                raise SnapshotError(f"node {idx}: expected an object")
            nodes.append(
                NodeRecord(
                    position=_vec3(raw.get("position"), f"node {idx} position"),
                    locked=_flag(raw.get("locked", False), f"node {idx} locked"),
                )
            )

        links: List[LinkRecord] = []
        for idx, raw in enumerate(raw_links):
            if not isinstance(raw, Mapping):
                raise SnapshotError(f"link {idx}: expected an object")
            size = raw.get("size")
            if size is not None and size not in LINK_LENGTHS:
                raise SnapshotError(f"link {idx}: unknown size {size!r}")
            length = raw.get("length")
            if length is not None:
                try:
                    length = float(length)
                except (TypeError, ValueError) as exc:
                    raise SnapshotError(f"link {idx}: length must be a number") from exc
                if not math.isfinite(length) or length <= 0.0:
                    raise SnapshotError(f"link {idx}: length must be positive, got {length}")
            links.append(
                LinkRecord(
                    anchor=_optional_index(raw.get("anchor"), f"link {idx} anchor"),
                    free=_optional_index(raw.get("free"), f"link {idx} free"),
                    length=length,
                    size=size,
                    direction=_vec3(raw.get("direction", (0.0, 1.0, 0.0)), f"link {idx} direction"),
                    color=_optional_index(raw.get("color"), f"link {idx} color"),
                )
            )

        return cls(name=str(data.get("name") or ""), nodes=nodes, links=links)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "nodes": [node.to_dict() for node in self.nodes],
            "links": [link.to_dict() for link in self.links],
        }


def load_snapshot(snapshot: StructureSnapshot) -> Tuple[Assembly, List[NodeId], List[Optional[LinkId]]]:
    """Build an :class:`Assembly` from ``snapshot``.

    Returns the assembly, the node handle for every node record and the link
    handle for every link record (``None`` for records that were skipped).
    Links whose anchor index is out of range are skipped; an out-of-range or
    self-referencing free index leaves the link pending.
    """

    assembly = Assembly()
    node_ids = [assembly.add_node(rec.position, locked=rec.locked) for rec in snapshot.nodes]
    link_ids: List[Optional[LinkId]] = []
    skipped = 0
    for idx, rec in enumerate(snapshot.links):
        if rec.anchor is None or not 0 <= rec.anchor < len(node_ids):
            logger.warning("Skipping link %d: anchor index %r out of range", idx, rec.anchor)
            link_ids.append(None)
            skipped += 1
            continue
        try:
            link_id = assembly.add_link(
                node_ids[rec.anchor],
                rec.size,
                length=rec.resolved_length(),
                direction=rec.direction,
                color=rec.color,
            )
        except AssemblyError as exc:
            raise SnapshotError(f"link {idx}: {exc}") from exc
        if rec.free is not None and 0 <= rec.free < len(node_ids) and rec.free != rec.anchor:
            assembly.attach_free(link_id, node_ids[rec.free])
        elif rec.free is not None:
            logger.warning("Link %d: free index %r ignored, link left pending", idx, rec.free)
        link_ids.append(link_id)

    logger.info(
        "Loaded snapshot %r: %d node(s), %d link(s), %d skipped",
        snapshot.name,
        len(node_ids),
        len(snapshot.links) - skipped,
        skipped,
    )
    return assembly, node_ids, link_ids


def snapshot_assembly(assembly: Assembly, name: str = "") -> StructureSnapshot:
    """Capture ``assembly``; nodes and links are numbered in handle order.

    Detached links have nothing to anchor them and are left out.
    """

    index = {nid: idx for idx, nid in enumerate(sorted(assembly.nodes))}
    nodes = [
        NodeRecord(
            position=tuple(float(c) for c in assembly.nodes[nid].position),  # type: ignore[arg-type]
            locked=assembly.nodes[nid].locked,
        )
        for nid in sorted(assembly.nodes)
    ]
    links: List[LinkRecord] = []
    for lid in sorted(assembly.links):
        link = assembly.links[lid]
        if link.anchor is None:
            continue
        direction = link.anchor_direction
        if link.free is not None:
            delta = assembly.position(link.free) - assembly.position(link.anchor)
            norm = float(np.linalg.norm(delta))
            if norm > 1e-12:
                direction = delta / norm
        links.append(
            LinkRecord(
                anchor=index[link.anchor],
                free=index[link.free] if link.free is not None else None,
                length=link.length,
                size=link.size,
                direction=tuple(float(c) for c in direction),  # type: ignore[arg-type]
                color=link.color,
            )
        )
    return StructureSnapshot(name=name, nodes=nodes, links=links)


def read_snapshot(path: Union[str, Path]) -> StructureSnapshot:
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"{path}: invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    return StructureSnapshot.from_dict(data)


def write_snapshot(path: Union[str, Path], snapshot: StructureSnapshot) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(snapshot.to_dict(), indent=2) + "\n", encoding="utf-8")


__all__ = [
    "LinkRecord",
    "NodeRecord",
    "SnapshotError",
    "StructureSnapshot",
    "load_snapshot",
    "read_snapshot",
    "snapshot_assembly",
    "write_snapshot",
]
