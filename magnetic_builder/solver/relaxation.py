"""Iterative position projection for distance constraints."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Sequence

import numpy as np

from ..logging_utils import apply_debug_logging
from ..model import Assembly, NodeId
from ..observers import AssemblyObserver, NullObserver
from .config import SolverConfig, get_solver_config
from .model import Constraint, SolveResult

logger = logging.getLogger(__name__)


def _random_unit(rng: np.random.Generator) -> np.ndarray:
    while True:
        vec = rng.random(3) - 0.5
        norm = float(np.linalg.norm(vec))
        if norm > 1e-9:
            return vec / norm


def solve(
    assembly: Assembly,
    nodes: Iterable[NodeId],
    constraints: Sequence[Constraint],
    config: Optional[SolverConfig] = None,
    *,
    rng: Optional[np.random.Generator] = None,
    observer: Optional[AssemblyObserver] = None,
) -> SolveResult:
    """Relax ``nodes`` until every constraint holds within tolerance.

    Positions are copied before the first pass; the assembly is never
    written. Each pass projects every constraint once, in order, splitting
    the correction by inverse stiffness so better connected nodes move less.
    Coincident endpoints get a direction drawn from ``rng``.

    When the pass budget runs out the result still counts as converged if
    the last pass stayed below ``config.acceptance_tolerance``; ``degraded``
    is set in that case.
    """

    config = config or get_solver_config()
    rng = rng if rng is not None else np.random.default_rng()
    observer = observer or NullObserver()
    tol = config.position_tolerance

    positions: Dict[NodeId, np.ndarray] = {}
    stiffness: Dict[NodeId, float] = {}
    inverse: Dict[NodeId, float] = {}
    for nid in nodes:
        node = assembly.node(nid)
        positions[nid] = node.position.astype(float, copy=True)
        stiffness[nid] = float(assembly.stiffness(nid))
        inverse[nid] = 0.0 if node.locked else 1.0 / stiffness[nid]

    logger.info(
        "Relaxing %d node(s) against %d constraint(s)", len(positions), len(constraints)
    )

    max_error = float("inf")
    for iteration in range(config.max_iterations):
        max_error = 0.0
        for constraint in constraints:
            pos_a = positions.get(constraint.node_a)
            pos_b = positions.get(constraint.node_b)
            if pos_a is None or pos_b is None:
                continue

            delta = pos_b - pos_a
            dist = float(np.linalg.norm(delta))
            if dist < config.coincident_epsilon:
                direction = _random_unit(rng)
            else:
                direction = delta / dist

            error = dist - constraint.required_distance
            max_error = max(max_error, abs(error))
            if abs(error) <= tol:
                continue

            inv_a = inverse[constraint.node_a]
            inv_b = inverse[constraint.node_b]
            total = inv_a + inv_b
            if total <= 0.0:
                continue
            w_a = inv_a / total
            w_b = inv_b / total
            correction = error * config.relaxation_factor
            pos_a += direction * (correction * w_a)
            pos_b -= direction * (correction * w_b)

        observer.on_solver_step(iteration, max_error)
        if max_error < tol:
            logger.info("Converged after %d pass(es), max_error=%.6g", iteration + 1, max_error)
            return SolveResult(
                converged=True,
                degraded=False,
                max_error=max_error,
                iterations=iteration + 1,
                candidate_positions=positions,
                stiffness=stiffness,
            )
        if iteration % config.progress_interval == 0:
            logger.debug("Pass %d max_error=%.4f", iteration, max_error)

    accepted = max_error < config.acceptance_tolerance
    logger.info(
        "Pass budget of %d exhausted, max_error=%.4f (%s)",
        config.max_iterations,
        max_error,
        "accepted as degraded" if accepted else "rejected",
    )
    return SolveResult(
        converged=accepted,
        degraded=accepted,
        max_error=max_error,
        iterations=config.max_iterations,
        candidate_positions=positions,
        stiffness=stiffness,
    )


apply_debug_logging(globals(), logger=logger)


__all__ = ["solve"]
