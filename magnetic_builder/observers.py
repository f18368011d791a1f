"""Observer hooks the connection pipeline reports to.

The core never requires an observer; :class:`NullObserver` is used when the
caller passes none.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

import numpy as np

logger = logging.getLogger(__name__)


@runtime_checkable
class AssemblyObserver(Protocol):
    def on_action(self, action: str, details: Optional[Mapping[str, Any]] = None) -> None:
        ...

    def on_solver_step(self, iteration: int, max_error: float) -> None:
        ...


class NullObserver:
    def on_action(self, action: str, details: Optional[Mapping[str, Any]] = None) -> None:
        return None

    def on_solver_step(self, iteration: int, max_error: float) -> None:
        return None


class LoggingObserver:
    """Forward actions to :mod:`logging`; solver steps every ``progress_interval`` passes."""

    def __init__(self, logger: Optional[logging.Logger] = None, progress_interval: int = 100) -> None:
        self.logger = logger or logging.getLogger("magnetic_builder.actions")
        self.progress_interval = max(1, int(progress_interval))

    def on_action(self, action: str, details: Optional[Mapping[str, Any]] = None) -> None:
        if details:
            self.logger.info("%s %s", action, _to_json(details))
        else:
            self.logger.info("%s", action)

    def on_solver_step(self, iteration: int, max_error: float) -> None:
        if iteration % self.progress_interval == 0:
            self.logger.debug("solver pass %d max_error=%.4f", iteration, max_error)


@dataclass
class LogEntry:
    elapsed: float
    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        head = f"[+{self.elapsed:.3f}s] [{self.kind}] {self.message}"
        if not self.details:
            return head
        return head + "\n" + _to_json(self.details, indent=2)


class RecordingObserver:
    """Session log kept in memory, with timestamps relative to the session start."""

    def __init__(self, record_solver_steps: bool = False) -> None:
        self.record_solver_steps = record_solver_steps
        self.entries: List[LogEntry] = []
        self.action_count = 0
        self._start = time.monotonic()

    def _elapsed(self) -> float:
        return time.monotonic() - self._start

    def on_action(self, action: str, details: Optional[Mapping[str, Any]] = None) -> None:
        self.action_count += 1
        self.entries.append(
            LogEntry(
                elapsed=self._elapsed(),
                kind=f"ACTION #{self.action_count}",
                message=action,
                details=dict(details or {}),
            )
        )

    def on_solver_step(self, iteration: int, max_error: float) -> None:
        if not self.record_solver_steps:
            return
        self.entries.append(
            LogEntry(
                elapsed=self._elapsed(),
                kind="SOLVER",
                message=f"Iteration {iteration}: error={max_error:.4f}",
            )
        )

    def actions(self) -> List[str]:
        return [entry.message for entry in self.entries if entry.kind.startswith("ACTION")]

    def get_logs(self) -> str:
        return "\n".join(entry.render() for entry in self.entries)

    def clear(self) -> None:
        self.entries.clear()
        self.action_count = 0
        self._start = time.monotonic()


def _jsonable(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return [round(float(c), 6) for c in value.tolist()]
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return value


def _to_json(details: Mapping[str, Any], indent: Optional[int] = None) -> str:
    return json.dumps(_jsonable(details), indent=indent, default=str)


__all__ = [
    "AssemblyObserver",
    "LogEntry",
    "LoggingObserver",
    "NullObserver",
    "RecordingObserver",
]
