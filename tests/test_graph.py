import pytest

from magnetic_builder.model import Assembly, UnknownNodeError
from magnetic_builder.solver import reachable_from


def _chain():
    """A-B-C bound in a chain, a pending link on C, and a lone node D."""

    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    b = assembly.add_node((3.0, 0.0, 0.0))
    c = assembly.add_node((6.0, 0.0, 0.0))
    d = assembly.add_node((0.0, 9.0, 0.0))
    ab = assembly.add_link(a, direction=(1.0, 0.0, 0.0))
    assembly.attach_free(ab, b)
    bc = assembly.add_link(b, direction=(1.0, 0.0, 0.0))
    assembly.attach_free(bc, c)
    pending = assembly.add_link(c, direction=(1.0, 0.0, 0.0))
    return assembly, (a, b, c, d), pending


def test_reachable_from_visits_component_breadth_first():
    assembly, (a, b, c, d), _ = _chain()

    assert reachable_from(assembly, [a]) == [a, b, c]
    assert reachable_from(assembly, [b]) == [b, a, c]


def test_isolated_node_is_singleton():
    assembly, (a, b, c, d), _ = _chain()
    assert reachable_from(assembly, [d]) == [d]


def test_repeated_and_connected_seeds_visit_each_node_once():
    assembly, (a, b, c, d), _ = _chain()

    order = reachable_from(assembly, [a, c, a])

    assert sorted(order) == sorted([a, b, c])
    assert len(order) == 3


def test_two_components_are_unioned():
    assembly, (a, b, c, d), _ = _chain()
    assert set(reachable_from(assembly, [a, d])) == {a, b, c, d}


def test_pending_links_are_not_edges():
    assembly, (a, b, c, d), pending = _chain()
    e = assembly.add_node(assembly.free_end_position(pending))

    assert e not in reachable_from(assembly, [a])

    assembly.attach_free(pending, e)
    assert e in reachable_from(assembly, [a])

    assembly.disconnect_free(pending)
    assert reachable_from(assembly, [a]) == [a, b, c]


def test_unknown_seed_raises():
    assembly, _, _ = _chain()
    with pytest.raises(UnknownNodeError):
        reachable_from(assembly, [99])
