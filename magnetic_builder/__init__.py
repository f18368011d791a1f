from .model import (
    Assembly,
    AssemblyError,
    Link,
    LinkStateError,
    Node,
    UnknownLinkError,
    UnknownNodeError,
    LARGE_LINK_LENGTH,
    NODE_RADIUS,
    SMALL_LINK_LENGTH,
    SNAP_TOLERANCE,
    snap_direction_to_grid,
)
from .observers import AssemblyObserver, LoggingObserver, NullObserver, RecordingObserver
from .snapshot import (
    LinkRecord,
    NodeRecord,
    SnapshotError,
    StructureSnapshot,
    load_snapshot,
    read_snapshot,
    snapshot_assembly,
    write_snapshot,
)
from .solver import (
    ConnectionResult,
    Constraint,
    LinkPlacement,
    SolverConfig,
    SolveResult,
    collect,
    connect,
    get_solver_config,
    propose_connection,
    reachable_from,
    refresh_dependents,
    set_solver_config,
    solve,
)

__all__ = [
    'Assembly',
    'AssemblyError',
    'AssemblyObserver',
    'ConnectionResult',
    'Constraint',
    'LARGE_LINK_LENGTH',
    'Link',
    'LinkPlacement',
    'LinkRecord',
    'LinkStateError',
    'LoggingObserver',
    'NODE_RADIUS',
    'Node',
    'NodeRecord',
    'NullObserver',
    'RecordingObserver',
    'SMALL_LINK_LENGTH',
    'SNAP_TOLERANCE',
    'SnapshotError',
    'SolveResult',
    'SolverConfig',
    'StructureSnapshot',
    'UnknownLinkError',
    'UnknownNodeError',
    'collect',
    'connect',
    'get_solver_config',
    'load_snapshot',
    'propose_connection',
    'reachable_from',
    'read_snapshot',
    'refresh_dependents',
    'set_solver_config',
    'snap_direction_to_grid',
    'snapshot_assembly',
    'solve',
    'write_snapshot',
]
