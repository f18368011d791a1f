"""Solver façade: discover, collect, relax, validate and commit a connection."""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ..model import Assembly, LinkId, LinkStateError, NodeId
from ..observers import AssemblyObserver, NullObserver
from .config import SolverConfig, get_solver_config, set_solver_config
from .constraints import Tentative, collect
from .graph import reachable_from
from .model import (
    ConnectionResult,
    Constraint,
    LinkPlacement,
    NodeState,
    Plan,
    PlanValidation,
    SolveResult,
)
from .placement import link_placement, refresh_dependents
from .plan import apply_plan, build_plan, validate_plan
from .relaxation import solve

logger = logging.getLogger(__name__)


def propose_connection(
    assembly: Assembly,
    anchor: NodeId,
    link_id: LinkId,
    target: NodeId,
    *,
    config: Optional[SolverConfig] = None,
    rng: Optional[np.random.Generator] = None,
    observer: Optional[AssemblyObserver] = None,
) -> ConnectionResult:
    """Bind pending ``link_id`` from ``anchor`` to ``target``, moving nodes as needed.

    The connected assembly around both nodes is relaxed so that every bound
    link and the new one hold their required distances. Nothing is written
    unless the relaxed positions pass validation; a rejected proposal leaves
    positions and the link exactly as they were.
    """

    config = config or get_solver_config()
    observer = observer or NullObserver()
    link = assembly.link(link_id)
    if not link.is_pending or link.anchor != anchor:
        raise LinkStateError(
            f"link {link_id} must be pending on node {anchor} (state={link.state}, anchor={link.anchor})"
        )
    assembly.node(target)

    required = link.required_distance
    current = assembly.distance(anchor, target)
    observer.on_action(
        "propose-connection",
        {
            "anchor": anchor,
            "target": target,
            "link": link_id,
            "current_distance": current,
            "required_distance": required,
        },
    )
    logger.info(
        "Proposing link %d: %d -> %d current=%.4f required=%.4f",
        link_id,
        anchor,
        target,
        current,
        required,
    )

    if target == anchor:
        message = "Cannot connect a link back to its own anchor"
        observer.on_action("connection-rejected", {"message": message})
        return ConnectionResult(success=False, message=message)

    nodes = reachable_from(assembly, [anchor, target])
    constraints = collect(assembly, nodes, (anchor, target, required))
    plan = build_plan(assembly, nodes, constraints, config, rng=rng, observer=observer)

    if not plan.converged:
        message = f"Cannot satisfy constraints (error: {plan.result.max_error:.3f})"
        logger.info("Plan rejected: %s", message)
        observer.on_action("connection-rejected", {"message": message})
        return ConnectionResult(success=False, message=message, max_error=plan.result.max_error)

    validation = validate_plan(plan, config)
    if not validation.valid:
        logger.info("Validation failed: %s", validation.message)
        observer.on_action("connection-rejected", {"message": validation.message})
        return ConnectionResult(
            success=False,
            message=validation.message,
            degraded=plan.degraded,
            max_error=validation.max_error,
        )

    moved = apply_plan(assembly, plan, config, observer=observer)
    toward = assembly.position(target) - assembly.position(anchor)
    if float(np.linalg.norm(toward)) > 1e-12:
        assembly.set_anchor_direction(link_id, toward)
    assembly.attach_free(link_id, target)

    message = f"Connected! Adjusted {len(plan.states)} nodes."
    if plan.degraded:
        message += f" (approximate, error {validation.max_error:.3f})"
    observer.on_action(
        "connection-committed",
        {"moved": moved, "degraded": plan.degraded, "max_error": validation.max_error},
    )
    logger.info("Connection committed: %s", message)
    return ConnectionResult(
        success=True,
        message=message,
        degraded=plan.degraded,
        max_error=validation.max_error,
        moved_nodes=moved,
    )


def connect(
    assembly: Assembly,
    link_id: LinkId,
    target: NodeId,
    *,
    snap: bool = True,
    config: Optional[SolverConfig] = None,
    rng: Optional[np.random.Generator] = None,
    observer: Optional[AssemblyObserver] = None,
) -> ConnectionResult:
    """Connect a pending link to ``target`` the way a click does.

    A target already within snap tolerance is bound without moving anything;
    otherwise the connection goes through :func:`propose_connection`.
    """

    observer = observer or NullObserver()
    link = assembly.link(link_id)
    if link.anchor is None:
        raise LinkStateError(f"link {link_id} has no anchor")
    if snap and assembly.can_snap_to(link_id, target):
        assembly.attach_free(link_id, target)
        observer.on_action("direct-snap", {"link": link_id, "target": target})
        logger.info("Link %d snapped directly to node %d", link_id, target)
        return ConnectionResult(success=True, message="Connected directly.")
    return propose_connection(
        assembly, link.anchor, link_id, target, config=config, rng=rng, observer=observer
    )


__all__ = [
    "ConnectionResult",
    "Constraint",
    "LinkPlacement",
    "NodeState",
    "Plan",
    "PlanValidation",
    "SolveResult",
    "SolverConfig",
    "Tentative",
    "apply_plan",
    "build_plan",
    "collect",
    "connect",
    "get_solver_config",
    "link_placement",
    "propose_connection",
    "reachable_from",
    "refresh_dependents",
    "set_solver_config",
    "solve",
    "validate_plan",
]
