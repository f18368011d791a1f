"""Plan construction, independent validation and all-or-nothing commit."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..logging_utils import apply_debug_logging, format_vec3
from ..model import Assembly, NodeId
from ..observers import AssemblyObserver, NullObserver
from .config import SolverConfig, get_solver_config
from .model import Constraint, NodeState, Plan, PlanValidation
from .relaxation import solve

logger = logging.getLogger(__name__)


def build_plan(
    assembly: Assembly,
    nodes: Iterable[NodeId],
    constraints: Sequence[Constraint],
    config: Optional[SolverConfig] = None,
    *,
    rng: Optional[np.random.Generator] = None,
    observer: Optional[AssemblyObserver] = None,
) -> Plan:
    """Solve ``constraints`` over ``nodes`` and record before/after positions."""

    members = list(nodes)
    result = solve(assembly, members, constraints, config, rng=rng, observer=observer)
    states = {
        nid: NodeState(
            original_position=assembly.position(nid).copy(),
            candidate_position=result.candidate_positions[nid],
            stiffness=result.stiffness[nid],
        )
        for nid in members
    }
    return Plan(states=states, constraints=list(constraints), result=result)


def validate_plan(plan: Plan, config: Optional[SolverConfig] = None) -> PlanValidation:
    """Re-measure every constraint on the candidate positions.

    Runs regardless of what the solver reported, so a degraded result that
    stretched an existing link too far is still caught here.
    """

    config = config or get_solver_config()
    bound = config.acceptance_tolerance

    tentative_error = 0.0
    existing_error = 0.0
    for constraint in plan.constraints:
        state_a = plan.states.get(constraint.node_a)
        state_b = plan.states.get(constraint.node_b)
        if state_a is None or state_b is None:
            return PlanValidation(valid=False, message="Missing node states")
        dist = float(np.linalg.norm(state_b.candidate_position - state_a.candidate_position))
        error = abs(dist - constraint.required_distance)
        if constraint.is_tentative:
            tentative_error = max(tentative_error, error)
        else:
            existing_error = max(existing_error, error)

    overall = max(tentative_error, existing_error)
    if tentative_error > bound:
        return PlanValidation(
            valid=False,
            message=f"New connection error: {tentative_error:.3f}",
            tentative_error=tentative_error,
            max_error=overall,
        )
    if existing_error > bound:
        return PlanValidation(
            valid=False,
            message=f"Constraint violation: {existing_error:.3f}",
            tentative_error=tentative_error,
            max_error=overall,
        )
    return PlanValidation(
        valid=True, message="Valid", tentative_error=tentative_error, max_error=overall
    )


def apply_plan(
    assembly: Assembly,
    plan: Plan,
    config: Optional[SolverConfig] = None,
    *,
    observer: Optional[AssemblyObserver] = None,
) -> List[NodeId]:
    """Write back every candidate that moved more than the position tolerance.

    Callers validate first; this function does not re-check the plan.
    """

    config = config or get_solver_config()
    observer = observer or NullObserver()
    moved: List[NodeId] = []
    for nid, state in plan.states.items():
        shift = state.displacement
        if shift <= config.position_tolerance:
            continue
        logger.debug(
            "Moving node %d from %s to %s (%.3f)",
            nid,
            format_vec3(state.original_position),
            format_vec3(state.candidate_position),
            shift,
        )
        observer.on_action(
            "move-node",
            {
                "node": nid,
                "from": state.original_position,
                "to": state.candidate_position,
                "distance": round(shift, 3),
            },
        )
        assembly.set_position(nid, state.candidate_position)
        moved.append(nid)
    logger.info("Applied plan: %d of %d node(s) moved", len(moved), len(plan.states))
    return moved


apply_debug_logging(globals(), logger=logger)


__all__ = ["apply_plan", "build_plan", "validate_plan"]
