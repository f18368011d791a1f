import argparse
import logging
from typing import Optional, Sequence

import numpy as np

from magnetic_builder import (
    LoggingObserver,
    SnapshotError,
    SolverConfig,
    connect,
    get_solver_config,
    load_snapshot,
    read_snapshot,
    snapshot_assembly,
    write_snapshot,
)
from magnetic_builder.model import AssemblyError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_INVALID = 2


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def _build_config(args: argparse.Namespace) -> SolverConfig:
    config = get_solver_config()
    if args.max_iterations is not None:
        config.max_iterations = args.max_iterations
    if args.tolerance is not None:
        config.position_tolerance = args.tolerance
    # Re-run the dataclass checks on the overridden values.
    return SolverConfig(**vars(config))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Connect a pending link of a ball-and-shaft structure to a node"
    )
    parser.add_argument("path", help="Path to the structure snapshot (JSON)")
    parser.add_argument("--link", type=int, required=True, help="Index of the pending link in the snapshot")
    parser.add_argument("--target", type=int, required=True, help="Index of the target node in the snapshot")
    parser.add_argument("--output", help="Write the resulting structure snapshot to this path")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=123,
        help="Seed for the coincident-node tie-break (default: 123)",
    )
    parser.add_argument("--max-iterations", type=int, help="Relaxation pass budget")
    parser.add_argument("--tolerance", type=float, help="Position tolerance")
    parser.add_argument(
        "--no-snap",
        action="store_true",
        help="Always run the solver, even when the target is within snap tolerance",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    try:
        config = _build_config(args)
        snapshot = read_snapshot(args.path)
        assembly, node_ids, link_ids = load_snapshot(snapshot)
    except (OSError, SnapshotError, ValueError) as exc:
        logger.error("Cannot load %s: %s", args.path, exc)
        return EXIT_INVALID

    if not 0 <= args.link < len(link_ids) or link_ids[args.link] is None:
        logger.error("Link index %d is not a loaded link", args.link)
        return EXIT_INVALID
    if not 0 <= args.target < len(node_ids):
        logger.error("Node index %d out of range (0..%d)", args.target, len(node_ids) - 1)
        return EXIT_INVALID

    link_id = link_ids[args.link]
    if not assembly.links[link_id].is_pending:
        logger.error("Link %d is not pending", args.link)
        return EXIT_INVALID

    observer = LoggingObserver(progress_interval=config.progress_interval)
    try:
        result = connect(
            assembly,
            link_id,
            node_ids[args.target],
            snap=not args.no_snap,
            config=config,
            rng=np.random.default_rng(args.seed),
            observer=observer,
        )
    except AssemblyError as exc:
        logger.error("Cannot connect: %s", exc)
        return EXIT_INVALID

    print(f"Success: {result.success}")
    print(f"Message: {result.message}")
    if result.degraded:
        print(f"Degraded: max error {result.max_error:.4f}")
    print("Positions:")
    for idx, nid in enumerate(node_ids):
        x, y, z = (float(c) for c in assembly.position(nid))
        print(f"  {idx}: ({x:.6f}, {y:.6f}, {z:.6f})")

    if args.output:
        write_snapshot(args.output, snapshot_assembly(assembly, snapshot.name))
        logger.info("Wrote %s", args.output)

    return EXIT_OK if result.success else EXIT_REJECTED


if __name__ == "__main__":
    raise SystemExit(main())
