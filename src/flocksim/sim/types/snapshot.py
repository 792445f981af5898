from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(frozen=True, slots=True)
class Snapshot:
    tick: int
    state: str
    metrics: TickMetrics
    agents: List[Dict[str, Any]]
    bounds: "SnapshotBounds"
    metadata: "SnapshotMetadata"


@dataclass(frozen=True, slots=True)
class SnapshotBounds:
    x_limit: float
    y_limit: float
    z_limit: float


@dataclass(frozen=True, slots=True)
class SnapshotMetadata:
    agent_count: int
    velocity_limit: float
    step_budget: int
    steps_remaining: int
    seed: int
    update_mode: str
    config_version: str
    halt_reason: str | None = None
