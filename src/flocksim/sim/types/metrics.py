from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    agents: int
    neighbor_checks: int
    noise_events: int
    out_of_bounds: int
    average_speed: float
    max_speed: float
    polarization: float
    centroid: tuple[float, float, float]
    spread: float
    tick_duration_ms: float = 0.0
