"""Example pipeline: grow two links from a hub and close the triangle."""

import numpy as np

from magnetic_builder import Assembly, RecordingObserver, connect, refresh_dependents


def main() -> None:
    assembly = Assembly()
    hub = assembly.add_node((0.0, 0.0, 0.0))
    right = assembly.add_link(hub, direction=(1.0, 0.0, 0.0))
    up = assembly.add_link(hub, direction=(0.0, 1.0, 0.0))
    b = assembly.grow_node_at_free_end(right)
    c = assembly.grow_node_at_free_end(up)
    closing = assembly.add_link(b, direction=(0.0, 1.0, 0.0))

    observer = RecordingObserver()
    result = connect(assembly, closing, c, rng=np.random.default_rng(123), observer=observer)
    print("Success:", result.success)
    print("Message:", result.message)
    for nid in assembly.node_ids():
        x, y, z = assembly.position(nid)
        print(f"{nid}: ({x:.6f}, {y:.6f}, {z:.6f})")
    for link_id, placement in refresh_dependents(assembly, result.moved_nodes).items():
        print(f"link {link_id}: {placement.state} scale={placement.scale:.3f}")
    print(observer.get_logs())


if __name__ == "__main__":
    main()
