from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from pygame.math import Vector3


@dataclass(frozen=True, slots=True)
class Agent:
    id: int
    position: Vector3
    velocity: Vector3
    orientation: Vector3


@dataclass(slots=True)
class AgentArrays:
    """Dense per-agent state. An agent's id is its index in every list."""

    positions: List[Vector3] = field(default_factory=list)
    velocities: List[Vector3] = field(default_factory=list)
    orientations: List[Vector3] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.positions)

    @property
    def ids(self) -> range:
        return range(len(self.positions))

    def append(self, position: Vector3, velocity: Vector3, orientation: Vector3) -> int:
        self.positions.append(position)
        self.velocities.append(velocity)
        self.orientations.append(orientation)
        return len(self.positions) - 1

    def agent(self, agent_id: int) -> Agent:
        return Agent(
            id=agent_id,
            position=Vector3(self.positions[agent_id]),
            velocity=Vector3(self.velocities[agent_id]),
            orientation=Vector3(self.orientations[agent_id]),
        )

    def copy(self) -> "AgentArrays":
        return AgentArrays(
            positions=[Vector3(p) for p in self.positions],
            velocities=[Vector3(v) for v in self.velocities],
            orientations=[Vector3(o) for o in self.orientations],
        )

    def commit(self, other: "AgentArrays") -> None:
        self.positions[:] = other.positions
        self.velocities[:] = other.velocities
        self.orientations[:] = other.orientations

    def clear(self) -> None:
        self.positions.clear()
        self.velocities.clear()
        self.orientations.clear()
