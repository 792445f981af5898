from __future__ import annotations

import math

from ..core.agent import AgentArrays
from ..core.config import BoundsConfig
from ..types.metrics import TickMetrics


def create_metrics(
    tick: int,
    agents: AgentArrays,
    bounds: BoundsConfig,
    neighbor_checks: int,
    noise_events: int,
    duration_ms: float,
) -> TickMetrics:
    count = len(agents)
    if count == 0:
        return TickMetrics(
            tick=tick,
            agents=0,
            neighbor_checks=neighbor_checks,
            noise_events=noise_events,
            out_of_bounds=0,
            average_speed=0.0,
            max_speed=0.0,
            polarization=0.0,
            centroid=(0.0, 0.0, 0.0),
            spread=0.0,
            tick_duration_ms=duration_ms,
        )

    x_limit, y_limit, z_limit = bounds.limits
    speed_sum = 0.0
    max_speed = 0.0
    heading_x = 0.0
    heading_y = 0.0
    heading_z = 0.0
    sum_x = 0.0
    sum_y = 0.0
    sum_z = 0.0
    out_of_bounds = 0

    for position, velocity in zip(agents.positions, agents.velocities):
        speed = velocity.length()
        speed_sum += speed
        if speed > max_speed:
            max_speed = speed
        if speed > 0.0:
            heading_x += velocity.x / speed
            heading_y += velocity.y / speed
            heading_z += velocity.z / speed
        sum_x += position.x
        sum_y += position.y
        sum_z += position.z
        if abs(position.x) > x_limit or abs(position.y) > y_limit or abs(position.z) > z_limit:
            out_of_bounds += 1

    centroid = (sum_x / count, sum_y / count, sum_z / count)
    spread = 0.0
    for position in agents.positions:
        spread += math.hypot(position.x - centroid[0], position.y - centroid[1], position.z - centroid[2])

    return TickMetrics(
        tick=tick,
        agents=count,
        neighbor_checks=neighbor_checks,
        noise_events=noise_events,
        out_of_bounds=out_of_bounds,
        average_speed=speed_sum / count,
        max_speed=max_speed,
        polarization=math.hypot(heading_x, heading_y, heading_z) / count,
        centroid=centroid,
        spread=spread / count,
        tick_duration_ms=duration_ms,
    )
