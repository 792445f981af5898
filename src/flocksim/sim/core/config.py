from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from .errors import ConfigError

UPDATE_MODES = ("snapshot", "sequential")
NEIGHBOR_SEARCHES = ("brute", "grid")


@dataclass(frozen=True)
class BoundsConfig:
    x_limit: float = 135.0
    y_limit: float = 73.0
    z_limit: float = 75.0
    push_factor: float = 0.2

    @property
    def limits(self) -> tuple[float, float, float]:
        return (self.x_limit, self.y_limit, self.z_limit)


@dataclass(frozen=True)
class RuleConfig:
    radius: float
    factor: float


@dataclass(frozen=True)
class NoiseConfig:
    # radians
    angle: float = math.pi / 4
    factor: float = 0.5


@dataclass(frozen=True)
class SimulationConfig:
    agent_count: int = 100
    velocity_limit: float = 1.5
    step_budget: int = 1000
    seed: int = 42
    update_mode: str = "snapshot"
    neighbor_search: str = "brute"
    cell_size: float = 15.0
    config_version: str = "v1"
    bounds: BoundsConfig = field(default_factory=BoundsConfig)
    separation: RuleConfig = field(default_factory=lambda: RuleConfig(radius=15.0, factor=0.07))
    alignment: RuleConfig = field(default_factory=lambda: RuleConfig(radius=60.0, factor=0.05))
    cohesion: RuleConfig = field(default_factory=lambda: RuleConfig(radius=70.0, factor=0.03))
    noise: NoiseConfig = field(default_factory=NoiseConfig)

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)

    def validate(self) -> None:
        if isinstance(self.agent_count, bool) or not isinstance(self.agent_count, int) or self.agent_count <= 0:
            raise ConfigError(f"agent_count must be a positive integer, got {self.agent_count!r}")
        if isinstance(self.step_budget, bool) or not isinstance(self.step_budget, int) or self.step_budget < 0:
            raise ConfigError(f"step_budget must be a non-negative integer, got {self.step_budget!r}")
        if isinstance(self.seed, bool) or not isinstance(self.seed, int):
            raise ConfigError(f"seed must be an integer, got {self.seed!r}")
        _require_non_negative("velocity_limit", self.velocity_limit)
        for axis, limit in zip("xyz", self.bounds.limits):
            _require_finite(f"bounds.{axis}_limit", limit)
            if limit <= 0:
                raise ConfigError(f"bounds.{axis}_limit must be positive, got {limit!r}")
        _require_non_negative("bounds.push_factor", self.bounds.push_factor)
        for name in ("separation", "alignment", "cohesion"):
            rule: RuleConfig = getattr(self, name)
            _require_non_negative(f"{name}.radius", rule.radius)
            _require_non_negative(f"{name}.factor", rule.factor)
        _require_non_negative("noise.angle", self.noise.angle)
        _require_non_negative("noise.factor", self.noise.factor)
        _require_finite("cell_size", self.cell_size)
        if self.cell_size <= 0:
            raise ConfigError(f"cell_size must be positive, got {self.cell_size!r}")
        if self.update_mode not in UPDATE_MODES:
            raise ConfigError(f"update_mode must be one of {UPDATE_MODES}, got {self.update_mode!r}")
        if self.neighbor_search not in NEIGHBOR_SEARCHES:
            raise ConfigError(f"neighbor_search must be one of {NEIGHBOR_SEARCHES}, got {self.neighbor_search!r}")


def _require_finite(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ConfigError(f"{name} must be a finite number, got {value!r}")


def _require_non_negative(name: str, value: Any) -> None:
    _require_finite(name, value)
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {value!r}")


def _build(cls: type, raw: Any, section: str) -> Any:
    if not isinstance(raw, dict):
        raise ConfigError(f"{section} must be a mapping, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"unknown {section} keys: {', '.join(unknown)}")
    try:
        return cls(**raw)
    except TypeError as exc:
        raise ConfigError(f"{section}: {exc}") from exc


def load_config(raw: Dict[str, Any]) -> SimulationConfig:
    nested = {
        "bounds": BoundsConfig,
        "separation": RuleConfig,
        "alignment": RuleConfig,
        "cohesion": RuleConfig,
        "noise": NoiseConfig,
    }
    defaults = SimulationConfig()
    values: Dict[str, Any] = {}
    for name, cls in nested.items():
        if name not in raw:
            continue
        section = raw[name]
        if isinstance(section, dict) and cls is RuleConfig:
            base = getattr(defaults, name)
            section = {"radius": base.radius, "factor": base.factor, **section}
        values[name] = _build(cls, section, name)
    sim_values = {k: v for k, v in raw.items() if k not in nested}
    unknown = sorted(set(sim_values) - {f.name for f in fields(SimulationConfig)})
    if unknown:
        raise ConfigError(f"unknown simulation keys: {', '.join(unknown)}")
    return SimulationConfig(**values, **sim_values)
