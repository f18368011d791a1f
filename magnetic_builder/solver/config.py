"""Configuration helpers for solver components."""

from __future__ import annotations

import copy
import math
from dataclasses import dataclass


@dataclass
class SolverConfig:
    """Tunables of the relaxation solver and the plan validator."""

    position_tolerance: float = 1e-3
    max_iterations: int = 500
    relaxation_factor: float = 0.5
    # Budget-exhausted runs still count as (degraded) success below
    # ``position_tolerance * degraded_tolerance_factor``.
    degraded_tolerance_factor: float = 100.0
    coincident_epsilon: float = 1e-4
    progress_interval: int = 100

    def __post_init__(self) -> None:
        for name in (
            "position_tolerance",
            "relaxation_factor",
            "degraded_tolerance_factor",
            "coincident_epsilon",
        ):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")
        if self.position_tolerance <= 0.0:
            raise ValueError(f"position_tolerance must be positive, got {self.position_tolerance}")
        if int(self.max_iterations) < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not 0.0 < self.relaxation_factor <= 1.0:
            raise ValueError(f"relaxation_factor must be in (0, 1], got {self.relaxation_factor}")
        if self.degraded_tolerance_factor < 1.0:
            raise ValueError(
                f"degraded_tolerance_factor must be >= 1, got {self.degraded_tolerance_factor}"
            )
        if self.coincident_epsilon <= 0.0:
            raise ValueError(f"coincident_epsilon must be positive, got {self.coincident_epsilon}")
        self.max_iterations = int(self.max_iterations)
        self.progress_interval = max(1, int(self.progress_interval))

    @property
    def acceptance_tolerance(self) -> float:
        """Error bound used for degraded success and for plan validation."""

        return self.position_tolerance * self.degraded_tolerance_factor


_SOLVER_CONFIG = SolverConfig()


def get_solver_config() -> SolverConfig:
    return copy.deepcopy(_SOLVER_CONFIG)


def set_solver_config(config: SolverConfig) -> None:
    global _SOLVER_CONFIG
    _SOLVER_CONFIG = copy.deepcopy(config)
