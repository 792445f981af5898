from __future__ import annotations

from dataclasses import replace
from typing import Optional

from .sim.core.config import SimulationConfig
from .sim.core.flock import Flock
from .sim.types.snapshot import Snapshot


def initialize(config: SimulationConfig, seed: Optional[int] = None) -> Flock:
    """Validate ``config`` and build a flock ready to step.

    ``seed`` overrides ``config.seed`` when given. A ``ConfigError`` is raised
    before anything is allocated. The returned handle is already halted when the
    step budget is zero.
    """
    if seed is not None:
        config = replace(config, seed=seed)
    return Flock(config)


def step(handle: Flock) -> Snapshot:
    return handle.step()


def is_halted(handle: Flock) -> bool:
    return handle.is_halted


def agent_snapshot(handle: Flock) -> Snapshot:
    return handle.snapshot()
