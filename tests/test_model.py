import numpy as np
import pytest

from magnetic_builder.model import (
    GRID_DIRECTIONS,
    LARGE_LINK_LENGTH,
    SMALL_LINK_LENGTH,
    Assembly,
    AssemblyError,
    LinkStateError,
    UnknownLinkError,
    UnknownNodeError,
    snap_direction_to_grid,
)


def _bound_pair(distance=3.0):
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    b = assembly.add_node((distance, 0.0, 0.0))
    link = assembly.add_link(a, "small", direction=(1.0, 0.0, 0.0))
    assembly.attach_free(link, b)
    return assembly, a, b, link


def test_add_link_creates_pending_small_link_pointing_up():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    link_id = assembly.add_link(a)
    link = assembly.link(link_id)

    assert link.is_pending
    assert link.state == "pending"
    assert link.size == "small"
    assert link.length == pytest.approx(SMALL_LINK_LENGTH)
    assert link.required_distance == pytest.approx(SMALL_LINK_LENGTH + 1.0)
    assert np.allclose(link.anchor_direction, (0.0, 1.0, 0.0))
    assert assembly.incident_links(a) == [link_id]


def test_large_link_is_cube_face_diagonal():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    link = assembly.link(assembly.add_link(a, "large", direction=(0.0, 0.0, 2.0)))

    assert link.length == pytest.approx(2.0 * np.sqrt(2.0))
    assert link.length == pytest.approx(LARGE_LINK_LENGTH)
    assert np.allclose(link.anchor_direction, (0.0, 0.0, 1.0))


def test_explicit_length_has_no_size_class():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    link = assembly.link(assembly.add_link(a, length=1.25))

    assert link.size is None
    assert link.required_distance == pytest.approx(2.25)


@pytest.mark.parametrize("length", [0.0, -1.0, float("nan")])
def test_add_link_rejects_non_positive_length(length):
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    with pytest.raises(AssemblyError):
        assembly.add_link(a, length=length)


def test_add_link_rejects_unknown_size_and_zero_direction():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    with pytest.raises(AssemblyError, match="unknown link size"):
        assembly.add_link(a, "medium")
    with pytest.raises(AssemblyError, match="non-zero"):
        assembly.add_link(a, direction=(0.0, 0.0, 0.0))


def test_attach_free_binds_both_ends_and_updates_stiffness():
    assembly, a, b, link = _bound_pair()

    assert assembly.link(link).is_bound
    assert assembly.incident_links(a) == [link]
    assert assembly.incident_links(b) == [link]
    assert list(assembly.bound_neighbours(a)) == [b]
    assert assembly.stiffness(a) == 2
    assert assembly.stiffness(b) == 2


def test_pending_links_do_not_add_stiffness():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    assembly.add_link(a)
    assembly.add_link(a)
    assert assembly.stiffness(a) == 1


def test_attach_free_rejects_own_anchor_and_bound_links():
    assembly, a, b, link = _bound_pair()
    c = assembly.add_node((0.0, 5.0, 0.0))

    with pytest.raises(LinkStateError):
        assembly.attach_free(link, c)

    pending = assembly.add_link(a)
    with pytest.raises(LinkStateError, match="own anchor"):
        assembly.attach_free(pending, a)
    assert assembly.link(pending).is_pending


def test_unknown_handles_raise_key_errors():
    assembly = Assembly()
    with pytest.raises(UnknownNodeError):
        assembly.node(42)
    with pytest.raises(KeyError):
        assembly.position(42)
    with pytest.raises(UnknownLinkError):
        assembly.link(7)


def test_disconnect_free_keeps_pointing_at_old_free_node():
    assembly, a, b, link = _bound_pair()
    assembly.set_position(b, (0.0, 0.0, 4.0))

    assembly.disconnect_free(link)

    state = assembly.link(link)
    assert state.is_pending
    assert state.anchor == a
    assert np.allclose(state.anchor_direction, (0.0, 0.0, 1.0))
    assert assembly.incident_links(b) == []
    assert assembly.stiffness(a) == 1


def test_disconnect_anchor_moves_anchor_to_free_end():
    assembly, a, b, link = _bound_pair()

    assembly.disconnect_anchor(link)

    state = assembly.link(link)
    assert state.is_pending
    assert state.anchor == b
    assert state.free is None
    assert np.allclose(state.anchor_direction, (-1.0, 0.0, 0.0))
    assert assembly.incident_links(a) == []
    assert assembly.incident_links(b) == [link]


def test_disconnect_anchor_of_pending_link_detaches_it():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    link = assembly.add_link(a)

    assembly.disconnect_anchor(link)

    assert assembly.link(link).is_detached
    assert assembly.incident_links(a) == []


def test_remove_link_then_stranded_nodes():
    assembly, a, b, link = _bound_pair()
    c = assembly.add_node((0.0, 3.0, 0.0))
    keep = assembly.add_link(a, direction=(0.0, 1.0, 0.0))
    assembly.attach_free(keep, c)

    assembly.remove_link(link)
    removed = assembly.remove_stranded_nodes()

    assert link not in assembly.links
    assert removed == [b]
    assert set(assembly.nodes) == {a, c}


def test_remove_node_detaches_incident_links():
    assembly, a, b, link = _bound_pair()

    assembly.remove_node(a)

    assert a not in assembly.nodes
    assert assembly.link(link).is_detached
    assert assembly.incident_links(b) == []


def test_free_end_and_grow_node():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    link = assembly.add_link(a, "small")

    assert np.allclose(assembly.free_end_position(link), (0.0, 2.5, 0.0))

    grown = assembly.grow_node_at_free_end(link)

    assert np.allclose(assembly.position(grown), (0.0, 3.0, 0.0))
    assert assembly.link(link).free == grown
    assert assembly.free_end_position(link) is None
    assert assembly.distance(a, grown) == pytest.approx(assembly.link(link).required_distance)
    with pytest.raises(LinkStateError):
        assembly.grow_node_at_free_end(link)


def test_can_snap_to_uses_snap_tolerance():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))
    near = assembly.add_node((0.0, 3.05, 0.0))
    far = assembly.add_node((0.0, 3.2, 0.0))
    link = assembly.add_link(a)

    assert assembly.can_snap_to(link, near)
    assert not assembly.can_snap_to(link, far)
    assert not assembly.can_snap_to(link, a)


def test_translate_nodes_moves_assembly_rigidly():
    assembly, a, b, link = _bound_pair()

    assembly.translate_nodes([a, b], (1.0, 2.0, 3.0))

    assert np.allclose(assembly.position(a), (1.0, 2.0, 3.0))
    assert np.allclose(assembly.position(b), (4.0, 2.0, 3.0))
    assert assembly.distance(a, b) == pytest.approx(3.0)


def test_positions_returns_copies():
    assembly, a, b, link = _bound_pair()
    snapshot = assembly.positions()
    snapshot[a][0] = 99.0
    assert assembly.position(a)[0] == 0.0


def test_add_node_rejects_bad_vectors():
    assembly = Assembly()
    with pytest.raises(AssemblyError):
        assembly.add_node((0.0, 1.0))
    with pytest.raises(AssemblyError):
        assembly.add_node((0.0, float("inf"), 0.0))


def test_grid_has_26_unit_directions():
    assert GRID_DIRECTIONS.shape == (26, 3)
    assert np.allclose(np.linalg.norm(GRID_DIRECTIONS, axis=1), 1.0)


def test_snap_direction_to_axis():
    assert np.allclose(snap_direction_to_grid((0.1, -2.0, 0.2)), (0.0, -1.0, 0.0))


def test_snap_direction_to_face_diagonal():
    expected = np.array([1.0, 0.0, -1.0]) / np.sqrt(2.0)
    assert np.allclose(snap_direction_to_grid((0.9, 0.1, -1.1)), expected)


def test_snap_direction_to_cube_corner():
    expected = np.array([-1.0, 1.0, 1.0]) / np.sqrt(3.0)
    assert np.allclose(snap_direction_to_grid((-1.0, 0.8, 1.2)), expected)


def test_add_link_snaps_direction_only_on_request():
    assembly = Assembly()
    a = assembly.add_node((0.0, 0.0, 0.0))

    free_hand = assembly.add_link(a, direction=(1.0, 0.2, 0.0))
    snapped = assembly.add_link(a, direction=(1.0, 0.2, 0.0), grid=True)

    assert not np.allclose(assembly.link(free_hand).anchor_direction, (1.0, 0.0, 0.0))
    assert np.allclose(assembly.link(snapped).anchor_direction, (1.0, 0.0, 0.0))
