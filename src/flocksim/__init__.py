from __future__ import annotations

from .api import agent_snapshot, initialize, is_halted, step
from .sim.core.config import BoundsConfig, NoiseConfig, RuleConfig, SimulationConfig, load_config
from .sim.core.errors import ConfigError, FlockError, NumericAnomaly
from .sim.core.flock import Flock, RunState
from .sim.types.snapshot import Snapshot

__all__ = [
    "BoundsConfig",
    "ConfigError",
    "Flock",
    "FlockError",
    "NoiseConfig",
    "NumericAnomaly",
    "RuleConfig",
    "RunState",
    "SimulationConfig",
    "Snapshot",
    "agent_snapshot",
    "initialize",
    "is_halted",
    "load_config",
    "step",
]
