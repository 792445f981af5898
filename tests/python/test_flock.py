from __future__ import annotations

import dataclasses
import math

import pytest
from pygame.math import Vector3
from pytest import approx

from flocksim import ConfigError, NumericAnomaly, agent_snapshot, initialize, is_halted, step
from flocksim.sim.core.config import BoundsConfig, NoiseConfig, SimulationConfig
from flocksim.sim.core.flock import Flock, RunState
from flocksim.sim.core.rng import DeterministicRng
from flocksim.sim.core.spatial_grid import BruteForceNeighbors
from flocksim.sim.systems.steering import compute_corrections


def _positions(flock: Flock) -> list[tuple[float, float, float]]:
    return [(p.x, p.y, p.z) for p in flock.agents.positions]


def run_steps(config: SimulationConfig, steps: int) -> list[list[tuple[float, float, float]]]:
    flock = Flock(config)
    trajectory = []
    for _ in range(steps):
        flock.step()
        trajectory.append(_positions(flock))
    return trajectory


def _place(flock: Flock, positions: list[Vector3], velocities: list[Vector3]) -> None:
    for agent_id, (position, velocity) in enumerate(zip(positions, velocities)):
        flock.agents.positions[agent_id] = position
        flock.agents.velocities[agent_id] = velocity


def test_deterministic_steps():
    config = SimulationConfig(seed=1234, agent_count=40, step_budget=100)
    result_a = run_steps(config, 25)
    # recreate config to ensure RNG streams start fresh
    config_b = SimulationConfig(seed=1234, agent_count=40, step_budget=100)
    result_b = run_steps(config_b, 25)
    assert result_a == result_b


def test_different_seeds_diverge():
    result_a = run_steps(SimulationConfig(seed=1, agent_count=10), 3)
    result_b = run_steps(SimulationConfig(seed=2, agent_count=10), 3)
    assert result_a != result_b


def test_initial_population_respects_box_and_speed_range():
    config = SimulationConfig(seed=3, agent_count=200)
    flock = Flock(config)
    limit = config.velocity_limit

    assert len(flock.agents) == 200
    for position, velocity in zip(flock.agents.positions, flock.agents.velocities):
        assert abs(position.x) <= config.bounds.x_limit
        assert abs(position.y) <= config.bounds.y_limit
        assert abs(position.z) <= config.bounds.z_limit
        assert all(-limit <= component <= limit for component in velocity)


def test_velocity_limit_holds_every_step():
    config = SimulationConfig(seed=21, agent_count=60, step_budget=80)
    flock = Flock(config)
    while not flock.is_halted:
        flock.step()
        for velocity in flock.agents.velocities:
            assert velocity.length() <= config.velocity_limit + 1e-9


def test_grid_search_reproduces_bruteforce_trajectory():
    brute = run_steps(SimulationConfig(seed=8, agent_count=45, neighbor_search="brute"), 15)
    grid = run_steps(SimulationConfig(seed=8, agent_count=45, neighbor_search="grid", cell_size=12.0), 15)
    assert brute == grid


def test_pair_between_separation_and_cohesion_radius_closes_in():
    config = SimulationConfig(seed=4, agent_count=2, noise=NoiseConfig(factor=0.0))
    flock = Flock(config)
    _place(flock, [Vector3(-10, 0, 0), Vector3(10, 0, 0)], [Vector3(), Vector3()])
    distance_before = flock.agents.positions[0].distance_to(flock.agents.positions[1])
    assert config.separation.radius < distance_before < config.cohesion.radius

    query = BruteForceNeighbors()
    query.rebuild(flock.agents.positions)
    corrections = compute_corrections(
        0, flock.agents.positions, flock.agents.velocities, query, config, DeterministicRng(0)
    )
    assert corrections.separation == Vector3()

    flock.step()

    left, right = flock.agents.positions
    assert tuple(left) == approx((-9.4, 0.0, 0.0))
    assert tuple(right) == approx((9.4, 0.0, 0.0))
    assert left.distance_to(Vector3()) < 10.0
    assert right.distance_to(Vector3()) < 10.0
    assert tuple(flock.agents.orientations[0]) == approx((1.0, 0.0, 0.0))
    assert tuple(flock.agents.orientations[1]) == approx((-1.0, 0.0, 0.0))


def test_lone_agent_only_feels_bounds_and_noise():
    config = SimulationConfig(seed=12, agent_count=1, step_budget=30)
    flock = Flock(config)
    query = BruteForceNeighbors()
    while not flock.is_halted:
        query.rebuild(flock.agents.positions)
        corrections = compute_corrections(
            0, flock.agents.positions, flock.agents.velocities, query, config, DeterministicRng(flock.tick)
        )
        assert corrections.separation == Vector3()
        assert corrections.alignment == Vector3()
        assert corrections.cohesion == Vector3()
        assert corrections.neighbor_checks == 0
        assert corrections.noise_applied
        snapshot = flock.step()
        assert snapshot.metrics.neighbor_checks == 0
        assert snapshot.metrics.noise_events == 1


def test_agent_outside_box_is_nudged_back():
    config = SimulationConfig(
        seed=6,
        agent_count=1,
        bounds=BoundsConfig(x_limit=10.0, y_limit=10.0, z_limit=10.0, push_factor=0.2),
        noise=NoiseConfig(factor=0.0),
    )
    flock = Flock(config)
    _place(flock, [Vector3(11, 0, 0)], [Vector3()])

    flock.step()

    assert tuple(flock.agents.velocities[0]) == approx((-0.2, 0.0, 0.0))
    assert flock.metrics.out_of_bounds == 1


def test_sequential_mode_lets_later_agents_see_earlier_moves():
    def run(mode: str) -> list[tuple[float, float, float]]:
        config = SimulationConfig(seed=4, agent_count=2, update_mode=mode, noise=NoiseConfig(factor=0.0))
        flock = Flock(config)
        _place(flock, [Vector3(-10, 0, 0), Vector3(10, 0, 0)], [Vector3(1, 0, 0), Vector3(1, 0, 0)])
        flock.step()
        return _positions(flock)

    simultaneous = run("snapshot")
    sequential = run("sequential")

    assert simultaneous[0] == approx((-8.5, 0.0, 0.0))
    assert sequential[0] == approx((-8.5, 0.0, 0.0))
    assert simultaneous[1] == approx((10.45, 0.0, 0.0))
    assert sequential[1] == approx((10.52, 0.0, 0.0))


def test_budget_exhaustion_halts_and_further_steps_are_noops():
    flock = initialize(SimulationConfig(seed=2, agent_count=5, step_budget=3))
    for _ in range(3):
        assert not is_halted(flock)
        step(flock)

    assert is_halted(flock)
    assert flock.state is RunState.HALTED
    frozen = _positions(flock)
    snapshot = step(flock)

    assert snapshot.tick == 3
    assert snapshot.state == "Halted"
    assert snapshot.metadata.halt_reason == "step budget exhausted"
    assert _positions(flock) == frozen


def test_zero_budget_starts_halted():
    flock = initialize(SimulationConfig(agent_count=3, step_budget=0))
    assert is_halted(flock)
    assert step(flock).tick == 0


def test_external_halt_stops_stepping():
    flock = initialize(SimulationConfig(agent_count=3, step_budget=10))
    step(flock)
    flock.halt("viewer closed")

    assert is_halted(flock)
    assert flock.halt_reason == "viewer closed"
    assert step(flock).tick == 1


def test_numeric_anomaly_halts_without_touching_committed_state():
    flock = initialize(SimulationConfig(seed=5, agent_count=6, step_budget=10))
    step(flock)
    before = _positions(flock)
    flock.agents.velocities[0] = Vector3(math.nan, 0.0, 0.0)

    with pytest.raises(NumericAnomaly):
        step(flock)

    assert is_halted(flock)
    assert flock.tick == 1
    assert flock.steps_remaining == 9
    assert _positions(flock) == before
    assert flock.halt_reason.startswith("numeric anomaly")


def test_huge_extents_step_cleanly():
    flock = Flock(SimulationConfig(seed=1, agent_count=5, step_budget=3, bounds=BoundsConfig(x_limit=1e160)))

    snapshot = flock.step()

    assert snapshot.tick == 1
    assert snapshot.state == "Running"
    assert snapshot.metrics.spread > 0.0
    assert math.isfinite(snapshot.metrics.spread)


def test_metrics_failure_halts_before_commit(monkeypatch):
    from flocksim.sim.systems import metrics as metrics_system

    flock = Flock(SimulationConfig(seed=6, agent_count=4, step_budget=5))
    before = _positions(flock)

    def overflow(*args, **kwargs):
        raise OverflowError("math range error")

    monkeypatch.setattr(metrics_system, "create_metrics", overflow)

    with pytest.raises(OverflowError):
        flock.step()

    assert flock.is_halted
    assert flock.tick == 0
    assert flock.steps_remaining == 5
    assert _positions(flock) == before
    assert flock.halt_reason == "numeric anomaly: math range error"


def test_agent_snapshot_entries_match_agent_views():
    flock = initialize(SimulationConfig(seed=8, agent_count=3))
    step(flock)

    entry = agent_snapshot(flock).agents[2]
    view = flock.agents.agent(2)

    assert entry["id"] == view.id
    assert entry["position"] == tuple(view.position)
    assert entry["velocity"] == tuple(view.velocity)
    assert entry["orientation"] == tuple(view.orientation)


def test_initialize_seed_overrides_config_seed():
    config = SimulationConfig(seed=1, agent_count=4)
    flock = initialize(config, seed=99)

    assert flock.config.seed == 99
    assert _positions(flock) == _positions(Flock(SimulationConfig(seed=99, agent_count=4)))


def test_initialize_rejects_bad_config():
    with pytest.raises(ConfigError):
        initialize(SimulationConfig(agent_count=0))


def test_snapshot_is_detached_from_live_state():
    flock = initialize(SimulationConfig(seed=10, agent_count=3))
    snapshot = agent_snapshot(flock)
    payload = snapshot.agents[0]

    for key in ["id", "position", "velocity", "orientation", "yaw", "pitch", "speed"]:
        assert key in payload
    assert payload["position"] == tuple(flock.agents.positions[0])
    assert payload["speed"] == approx(flock.agents.velocities[0].length())

    payload["position"] = (0.0, 0.0, 0.0)
    assert agent_snapshot(flock).agents[0]["position"] != (0.0, 0.0, 0.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        snapshot.tick = 5


def test_snapshot_carries_metadata():
    config = SimulationConfig(seed=7, agent_count=4, step_budget=9, update_mode="sequential")
    flock = initialize(config)
    snapshot = step(flock)

    assert snapshot.tick == 1
    assert snapshot.state == "Running"
    assert snapshot.metadata.seed == 7
    assert snapshot.metadata.steps_remaining == 8
    assert snapshot.metadata.update_mode == "sequential"
    assert snapshot.bounds.x_limit == approx(config.bounds.x_limit)
    assert snapshot.metrics.agents == 4
    assert 0.0 <= snapshot.metrics.polarization <= 1.0 + 1e-9


def test_reset_rebuilds_identical_population():
    flock = initialize(SimulationConfig(seed=31, agent_count=8, step_budget=5))
    initial = _positions(flock)
    first_run = []
    while not is_halted(flock):
        step(flock)
        first_run.append(_positions(flock))

    flock.reset()

    assert not is_halted(flock)
    assert _positions(flock) == initial
    second_run = []
    while not is_halted(flock):
        step(flock)
        second_run.append(_positions(flock))
    assert first_run == second_run
