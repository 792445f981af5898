from __future__ import annotations

import logging
from enum import Enum
from time import perf_counter
from typing import Any, Dict

from pygame.math import Vector3

from .agent import AgentArrays
from .config import SimulationConfig
from .rng import DeterministicRng
from .spatial_grid import create_neighbor_query
from ..systems import metrics as metrics_system
from ..systems.integration import integrate_position, integrate_velocity
from ..systems.steering import compute_corrections
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotBounds, SnapshotMetadata
from ..utils.math3d import FORWARD, _orientation_angles, _safe_normalize

logger = logging.getLogger(__name__)

_PLACEMENT_RNG_SALT = 0x5EED0F1A5C0FFEE1
_NOISE_RNG_SALT = 0xB1A5ED1CE0DDBA11


def _derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & 0xFFFFFFFFFFFFFFFF


class RunState(str, Enum):
    RUNNING = "Running"
    HALTED = "Halted"


class Flock:
    def __init__(self, config: SimulationConfig):
        config.validate()
        self._config = config
        self._placement_rng = DeterministicRng(_derive_stream_seed(config.seed, _PLACEMENT_RNG_SALT))
        self._noise_rng = DeterministicRng(_derive_stream_seed(config.seed, _NOISE_RNG_SALT))
        self._query = create_neighbor_query(config.neighbor_search, config.cell_size)
        self._agents = AgentArrays()
        self._tick = 0
        self._steps_remaining = config.step_budget
        self._halt_reason: str | None = None
        self._metrics: TickMetrics | None = None
        self._bootstrap_population()
        logger.debug(
            "initialized flock: %d agents, %d steps, seed=%d, mode=%s, search=%s",
            config.agent_count,
            config.step_budget,
            config.seed,
            config.update_mode,
            config.neighbor_search,
        )

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def agents(self) -> AgentArrays:
        return self._agents

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def steps_remaining(self) -> int:
        return self._steps_remaining

    @property
    def state(self) -> RunState:
        if self._halt_reason is not None or self._steps_remaining <= 0:
            return RunState.HALTED
        return RunState.RUNNING

    @property
    def is_halted(self) -> bool:
        return self.state is RunState.HALTED

    @property
    def halt_reason(self) -> str | None:
        if self._halt_reason is None and self._steps_remaining <= 0:
            return "step budget exhausted"
        return self._halt_reason

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def halt(self, reason: str = "stopped") -> None:
        if self._halt_reason is None:
            self._halt_reason = reason
            logger.info("flock halted at tick %d: %s", self._tick, reason)

    def reset(self) -> None:
        self._agents.clear()
        self._placement_rng.reset()
        self._noise_rng.reset()
        self._tick = 0
        self._steps_remaining = self._config.step_budget
        self._halt_reason = None
        self._metrics = None
        self._bootstrap_population()
        logger.debug("flock reset to tick 0")

    def step(self) -> Snapshot:
        if self.is_halted:
            return self.snapshot()

        start = perf_counter()
        # Nothing is committed until the metrics for the new state exist.
        try:
            if self._config.update_mode == "sequential":
                updated, neighbor_checks, noise_events = self._advance_sequential()
            else:
                updated, neighbor_checks, noise_events = self._advance_simultaneous()
            elapsed_ms = (perf_counter() - start) * 1000.0
            metrics = metrics_system.create_metrics(
                self._tick + 1,
                updated,
                self._config.bounds,
                neighbor_checks,
                noise_events,
                elapsed_ms,
            )
        except ArithmeticError as exc:
            self._halt_reason = f"numeric anomaly: {exc}"
            logger.warning("halting flock at tick %d: %s", self._tick, exc)
            raise

        self._agents.commit(updated)
        self._tick += 1
        self._steps_remaining -= 1
        self._metrics = metrics
        if self._steps_remaining == 0:
            logger.info("step budget of %d exhausted", self._config.step_budget)
        return self.snapshot()

    def snapshot(self) -> Snapshot:
        config = self._config
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.create_metrics(self._tick, self._agents, config.bounds, 0, 0, 0.0)
        return Snapshot(
            tick=self._tick,
            state=self.state.value,
            metrics=metrics,
            agents=[self._agent_snapshot(agent_id) for agent_id in self._agents.ids],
            bounds=SnapshotBounds(
                x_limit=config.bounds.x_limit,
                y_limit=config.bounds.y_limit,
                z_limit=config.bounds.z_limit,
            ),
            metadata=SnapshotMetadata(
                agent_count=config.agent_count,
                velocity_limit=config.velocity_limit,
                step_budget=config.step_budget,
                steps_remaining=self._steps_remaining,
                seed=config.seed,
                update_mode=config.update_mode,
                config_version=config.config_version,
                halt_reason=self.halt_reason,
            ),
        )

    def _advance_simultaneous(self) -> tuple[AgentArrays, int, int]:
        current = self._agents
        positions = current.positions
        velocities = current.velocities
        query = self._query
        query.rebuild(positions)
        updated = AgentArrays()
        neighbor_checks = 0
        noise_events = 0

        for agent_id in current.ids:
            corrections = compute_corrections(agent_id, positions, velocities, query, self._config, self._noise_rng)
            neighbor_checks += corrections.neighbor_checks
            noise_events += int(corrections.noise_applied)
            velocity = integrate_velocity(agent_id, velocities[agent_id], corrections, self._config.velocity_limit)
            position, orientation = integrate_position(
                agent_id, positions[agent_id], velocity, current.orientations[agent_id]
            )
            updated.append(position, velocity, orientation)
        return updated, neighbor_checks, noise_events

    def _advance_sequential(self) -> tuple[AgentArrays, int, int]:
        # Later agents see the already-moved state of earlier ones, so results
        # depend on id order. Works on a copy so a failed pass commits nothing.
        working = self._agents.copy()
        positions = working.positions
        velocities = working.velocities
        query = self._query
        query.rebuild(positions)
        neighbor_checks = 0
        noise_events = 0

        for agent_id in working.ids:
            corrections = compute_corrections(agent_id, positions, velocities, query, self._config, self._noise_rng)
            neighbor_checks += corrections.neighbor_checks
            noise_events += int(corrections.noise_applied)
            velocity = integrate_velocity(agent_id, velocities[agent_id], corrections, self._config.velocity_limit)
            velocities[agent_id] = velocity
            position, orientation = integrate_position(
                agent_id, positions[agent_id], velocity, working.orientations[agent_id]
            )
            positions[agent_id] = position
            working.orientations[agent_id] = orientation
            query.move(agent_id, position)
        return working, neighbor_checks, noise_events

    def _bootstrap_population(self) -> None:
        config = self._config
        limit = config.velocity_limit
        for _ in range(config.agent_count):
            position = self._placement_rng.next_in_box(*config.bounds.limits)
            velocity = Vector3(
                self._placement_rng.next_range(-limit, limit),
                self._placement_rng.next_range(-limit, limit),
                self._placement_rng.next_range(-limit, limit),
            )
            orientation = _safe_normalize(velocity)
            if orientation.length_squared() == 0.0:
                orientation = Vector3(FORWARD)
            self._agents.append(position, velocity, orientation)

    def _agent_snapshot(self, agent_id: int) -> Dict[str, Any]:
        agent = self._agents.agent(agent_id)
        position = agent.position
        velocity = agent.velocity
        orientation = agent.orientation
        yaw, pitch = _orientation_angles(orientation)
        return {
            "id": agent.id,
            "position": (position.x, position.y, position.z),
            "velocity": (velocity.x, velocity.y, velocity.z),
            "orientation": (orientation.x, orientation.y, orientation.z),
            "yaw": yaw,
            "pitch": pitch,
            "speed": velocity.length(),
        }
