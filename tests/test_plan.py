import numpy as np
import pytest

from magnetic_builder.model import Assembly
from magnetic_builder.observers import RecordingObserver
from magnetic_builder.solver import (
    Constraint,
    NodeState,
    Plan,
    SolveResult,
    SolverConfig,
    apply_plan,
    build_plan,
    validate_plan,
)


def _plan(candidates, constraints, originals=None):
    originals = originals or candidates
    states = {
        nid: NodeState(
            original_position=np.array(originals[nid], dtype=float),
            candidate_position=np.array(pos, dtype=float),
            stiffness=1.0,
        )
        for nid, pos in candidates.items()
    }
    result = SolveResult(
        converged=True,
        degraded=False,
        max_error=0.0,
        iterations=1,
        candidate_positions={nid: state.candidate_position for nid, state in states.items()},
    )
    return Plan(states=states, constraints=list(constraints), result=result)


def test_valid_plan_passes():
    plan = _plan(
        {0: (0.0, 0.0, 0.0), 1: (0.0, 3.0, 0.0), 2: (0.0, 6.05, 0.0)},
        [Constraint(0, 1, 3.0, origin_link=0), Constraint(1, 2, 3.0)],
    )

    validation = validate_plan(plan)

    assert validation.valid
    assert validation.message == "Valid"
    assert validation.tentative_error == pytest.approx(0.05)
    assert validation.max_error == pytest.approx(0.05)


def test_tentative_error_above_loose_bound_fails():
    plan = _plan(
        {0: (0.0, 0.0, 0.0), 1: (0.0, 3.5, 0.0)},
        [Constraint(0, 1, 3.0)],
    )

    validation = validate_plan(plan)

    assert not validation.valid
    assert validation.message == "New connection error: 0.500"


def test_existing_link_violation_fails():
    plan = _plan(
        {0: (0.0, 0.0, 0.0), 1: (0.0, 3.3, 0.0), 2: (0.0, 6.3, 0.0)},
        [Constraint(0, 1, 3.0, origin_link=4), Constraint(1, 2, 3.0)],
    )

    validation = validate_plan(plan)

    assert not validation.valid
    assert validation.message == "Constraint violation: 0.300"
    assert validation.tentative_error == pytest.approx(0.0, abs=1e-12)


def test_missing_state_fails():
    plan = _plan({0: (0.0, 0.0, 0.0)}, [Constraint(0, 1, 3.0)])

    validation = validate_plan(plan)

    assert not validation.valid
    assert validation.message == "Missing node states"


def test_validation_bound_follows_config():
    plan = _plan({0: (0.0, 0.0, 0.0), 1: (0.0, 3.05, 0.0)}, [Constraint(0, 1, 3.0)])

    assert validate_plan(plan).valid
    assert not validate_plan(plan, SolverConfig(degraded_tolerance_factor=10.0)).valid


def test_apply_plan_only_writes_moved_nodes():
    assembly = Assembly()
    still = assembly.add_node((0.0, 0.0, 0.0))
    nudged = assembly.add_node((0.0, 3.0, 0.0))
    moved = assembly.add_node((0.0, 6.0, 0.0))
    plan = _plan(
        {
            still: (0.0, 0.0, 0.0),
            nudged: (0.0, 3.0005, 0.0),
            moved: (0.0, 7.0, 0.0),
        },
        [],
        originals=assembly.positions(),
    )
    observer = RecordingObserver()

    written = apply_plan(assembly, plan, observer=observer)

    assert written == [moved]
    assert np.array_equal(assembly.position(nudged), (0.0, 3.0, 0.0))
    assert np.allclose(assembly.position(moved), (0.0, 7.0, 0.0))
    assert observer.actions() == ["move-node"]


def test_build_plan_records_originals_and_candidates():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    b = assembly.add_node((0.0, 4.0, 0.0))

    plan = build_plan(assembly, [a, b], [Constraint(a, b, 3.0)])

    assert plan.converged
    assert set(plan.states) == {a, b}
    assert np.array_equal(plan.states[b].original_position, (0.0, 4.0, 0.0))
    assert plan.states[b].candidate_position[1] == pytest.approx(3.5, abs=1e-3)
    assert plan.states[a].candidate_position[1] == pytest.approx(0.5, abs=1e-3)
    assert plan.states[a].displacement == pytest.approx(0.5, abs=1e-3)
    # the plan holds its own arrays; the assembly is untouched
    assert np.array_equal(assembly.position(b), (0.0, 4.0, 0.0))
