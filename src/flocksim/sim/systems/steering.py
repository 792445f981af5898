from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, TYPE_CHECKING

from pygame.math import Vector3

from ..core.config import BoundsConfig, NoiseConfig, RuleConfig
from ..core.rng import DeterministicRng
from ..utils.math3d import _angle_between, _mean_of

if TYPE_CHECKING:
    from ..core.config import SimulationConfig
    from ..core.spatial_grid import BruteForceNeighbors, SpatialGrid


@dataclass(slots=True)
class Corrections:
    separation: Vector3
    alignment: Vector3
    cohesion: Vector3
    bounds: Vector3
    noise: Vector3
    neighbor_checks: int = 0
    noise_applied: bool = False

    def total(self) -> Vector3:
        return self.separation + self.alignment + self.cohesion + self.bounds + self.noise


def cohesion(
    position: Vector3,
    positions: Sequence[Vector3],
    neighbors: List[int],
    rule: RuleConfig,
) -> Vector3:
    if not neighbors:
        return Vector3()
    return (_mean_of(positions, neighbors) - position) * rule.factor


def separation(
    position: Vector3,
    positions: Sequence[Vector3],
    neighbors: List[int],
    rule: RuleConfig,
) -> Vector3:
    if not neighbors:
        return Vector3()
    return (position - _mean_of(positions, neighbors)) * rule.factor


def alignment(velocities: Sequence[Vector3], neighbors: List[int], rule: RuleConfig) -> Vector3:
    if not neighbors:
        return Vector3()
    return _mean_of(velocities, neighbors) * rule.factor


def bounds(position: Vector3, config: BoundsConfig) -> Vector3:
    push = config.push_factor
    correction = Vector3()
    for axis, limit in enumerate(config.limits):
        value = position[axis]
        if value < -limit:
            correction[axis] = push
        elif value > limit:
            correction[axis] = -push
    return correction


def is_aligned(
    velocity: Vector3,
    velocities: Sequence[Vector3],
    neighbors: List[int],
    noise: NoiseConfig,
) -> bool:
    if not neighbors:
        return False
    return _angle_between(velocity, _mean_of(velocities, neighbors)) < noise.angle


def noise_alignment(
    velocity: Vector3,
    velocities: Sequence[Vector3],
    neighbors: List[int],
    noise: NoiseConfig,
    velocity_limit: float,
    rng: DeterministicRng,
) -> Vector3:
    return _random_noise(is_aligned(velocity, velocities, neighbors, noise), noise, velocity_limit, rng)


def _random_noise(aligned: bool, noise: NoiseConfig, velocity_limit: float, rng: DeterministicRng) -> Vector3:
    if aligned:
        return Vector3()
    direction = rng.next_unit_sphere()
    magnitude = rng.next_float() * velocity_limit
    return direction * (magnitude * noise.factor)


def compute_corrections(
    index: int,
    positions: Sequence[Vector3],
    velocities: Sequence[Vector3],
    query: "BruteForceNeighbors | SpatialGrid",
    config: "SimulationConfig",
    rng: DeterministicRng,
) -> Corrections:
    position = positions[index]
    velocity = velocities[index]

    separation_neighbors = query.neighbors_within(index, config.separation.radius)
    alignment_neighbors = query.neighbors_within(index, config.alignment.radius)
    cohesion_neighbors = query.neighbors_within(index, config.cohesion.radius)
    aligned = is_aligned(velocity, velocities, alignment_neighbors, config.noise)

    return Corrections(
        separation=separation(position, positions, separation_neighbors, config.separation),
        alignment=alignment(velocities, alignment_neighbors, config.alignment),
        cohesion=cohesion(position, positions, cohesion_neighbors, config.cohesion),
        bounds=bounds(position, config.bounds),
        noise=_random_noise(aligned, config.noise, config.velocity_limit, rng),
        neighbor_checks=len(separation_neighbors) + len(alignment_neighbors) + len(cohesion_neighbors),
        noise_applied=not aligned,
    )
