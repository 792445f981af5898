from __future__ import annotations

from pygame.math import Vector3

from ..core.errors import NumericAnomaly
from ..utils.math3d import _clamp_length, _is_finite, _safe_normalize
from .steering import Corrections


def integrate_velocity(agent_id: int, velocity: Vector3, corrections: Corrections, velocity_limit: float) -> Vector3:
    new_velocity = _clamp_length(velocity + corrections.total(), velocity_limit)
    if not _is_finite(new_velocity):
        raise NumericAnomaly(agent_id, "velocity", tuple(new_velocity))
    return new_velocity


def integrate_position(
    agent_id: int,
    position: Vector3,
    velocity: Vector3,
    orientation: Vector3,
) -> tuple[Vector3, Vector3]:
    new_position = position + velocity
    if not _is_finite(new_position):
        raise NumericAnomaly(agent_id, "position", tuple(new_position))
    # look at the new position; standing still keeps the old facing
    facing = _safe_normalize(new_position - position)
    if facing.length_squared() == 0.0:
        facing = Vector3(orientation)
    return new_position, facing
