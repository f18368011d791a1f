"""Core data structures for the solver pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from ..model import LinkId, NodeId


@dataclass(frozen=True)
class Constraint:
    """Equality-distance requirement between two nodes.

    ``origin_link`` is ``None`` for the tentative constraint of a link that is
    not bound yet.
    """

    node_a: NodeId
    node_b: NodeId
    required_distance: float
    origin_link: Optional[LinkId] = None

    @property
    def is_tentative(self) -> bool:
        return self.origin_link is None

    def describe(self) -> str:
        origin = "tentative" if self.origin_link is None else f"link={self.origin_link}"
        return f"{self.node_a}-{self.node_b} d={self.required_distance:.6g} {origin}"


@dataclass
class SolveResult:
    converged: bool
    degraded: bool
    max_error: float
    iterations: int
    candidate_positions: Dict[NodeId, np.ndarray]
    stiffness: Dict[NodeId, float] = field(default_factory=dict)


@dataclass
class NodeState:
    original_position: np.ndarray
    candidate_position: np.ndarray
    stiffness: float

    @property
    def displacement(self) -> float:
        return float(np.linalg.norm(self.candidate_position - self.original_position))


@dataclass
class Plan:
    """Result of one solve attempt, committed in full or not at all."""

    states: Dict[NodeId, NodeState]
    constraints: List[Constraint]
    result: SolveResult

    @property
    def converged(self) -> bool:
        return self.result.converged

    @property
    def degraded(self) -> bool:
        return self.result.degraded

    def candidate_positions(self) -> Dict[NodeId, np.ndarray]:
        return {nid: state.candidate_position for nid, state in self.states.items()}


@dataclass
class PlanValidation:
    valid: bool
    message: str
    tentative_error: float = 0.0
    max_error: float = 0.0


@dataclass
class ConnectionResult:
    success: bool
    message: str
    degraded: bool = False
    max_error: float = 0.0
    moved_nodes: List[NodeId] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.success


@dataclass
class LinkPlacement:
    """Where a link sits in space, derived from its node positions."""

    link: LinkId
    state: str
    center: np.ndarray
    direction: np.ndarray
    start: np.ndarray
    end: np.ndarray
    span: float
    scale: float


__all__ = [
    "ConnectionResult",
    "Constraint",
    "LinkPlacement",
    "NodeState",
    "Plan",
    "PlanValidation",
    "SolveResult",
]
