from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.errors import NumericAnomaly
from ..sim.core.flock import Flock
from ..sim.types.metrics import TickMetrics
from ..sim.types.snapshot import Snapshot

logger = logging.getLogger(__name__)

SnapshotSink = Callable[[Snapshot], None]

_BASIC_HEADER = [
    "tick",
    "agents",
    "neighbor_checks",
    "noise_events",
    "out_of_bounds",
    "avg_speed",
    "max_speed",
    "polarization",
    "tick_ms",
]

_DETAILED_HEADER = [
    *_BASIC_HEADER,
    "centroid_x",
    "centroid_y",
    "centroid_z",
    "spread",
    "neighbor_checks_per_agent",
    "noise_ratio",
    "out_of_bounds_ratio",
    "tick_ms_per_agent",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.agents,
        metrics.neighbor_checks,
        metrics.noise_events,
        metrics.out_of_bounds,
        f"{metrics.average_speed:.4f}",
        f"{metrics.max_speed:.4f}",
        f"{metrics.polarization:.4f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    agents = metrics.agents
    if agents <= 0:
        neighbor_checks_per_agent = 0.0
        noise_ratio = 0.0
        out_of_bounds_ratio = 0.0
        tick_ms_per_agent = 0.0
    else:
        neighbor_checks_per_agent = metrics.neighbor_checks / agents
        noise_ratio = metrics.noise_events / agents
        out_of_bounds_ratio = metrics.out_of_bounds / agents
        tick_ms_per_agent = tick_ms / agents
    centroid_x, centroid_y, centroid_z = metrics.centroid
    return [
        *_format_basic_row(metrics, tick_ms),
        f"{centroid_x:.4f}",
        f"{centroid_y:.4f}",
        f"{centroid_z:.4f}",
        f"{metrics.spread:.4f}",
        f"{neighbor_checks_per_agent:.4f}",
        f"{noise_ratio:.4f}",
        f"{out_of_bounds_ratio:.4f}",
        f"{tick_ms_per_agent:.4f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    total = sum(values)
    count = len(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(total / count),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p95": _percentile(sorted_values, 0.95),
        "p99": _percentile(sorted_values, 0.99),
    }


def build_config(
    config_path: Optional[Path] = None,
    steps: Optional[int] = None,
    seed: Optional[int] = None,
    update_mode: Optional[str] = None,
    neighbor_search: Optional[str] = None,
) -> SimulationConfig:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    overrides = {
        "step_budget": steps,
        "seed": seed,
        "update_mode": update_mode,
        "neighbor_search": neighbor_search,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    return replace(config, **overrides) if overrides else config


def run_headless(
    steps: Optional[int],
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 500,
    config_path: Optional[Path] = None,
    update_mode: Optional[str] = None,
    neighbor_search: Optional[str] = None,
    sink: Optional[SnapshotSink] = None,
) -> Flock:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = build_config(config_path, steps, seed, update_mode, neighbor_search)
    flock = Flock(config)

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    tick_ms_series: list[float] = []
    speed_series: list[float] = []
    polarization_series: list[float] = []
    noise_series: list[float] = []
    max_tick_ms = (-1.0, -1)
    max_noise = (-1, -1)

    try:
        while not flock.is_halted:
            try:
                snapshot = flock.step()
            except NumericAnomaly:
                logger.error("run stopped after %d ticks: %s", flock.tick, flock.halt_reason)
                break
            metrics = snapshot.metrics
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms

            if sink is not None:
                sink(snapshot)

            if summary_path:
                tick_ms_series.append(tick_ms)
                speed_series.append(metrics.average_speed)
                polarization_series.append(metrics.polarization)
                noise_series.append(float(metrics.noise_events))
                if tick_ms > max_tick_ms[0]:
                    max_tick_ms = (tick_ms, metrics.tick)
                if metrics.noise_events > max_noise[0]:
                    max_noise = (metrics.noise_events, metrics.tick)

            if writer:
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(metrics, tick_ms))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    if summary_path:
        window = max(1, int(summary_window))
        tail_slice = slice(max(0, len(tick_ms_series) - window), len(tick_ms_series))
        summary = {
            "steps": flock.tick,
            "step_budget": config.step_budget,
            "seed": config.seed,
            "agents": config.agent_count,
            "update_mode": config.update_mode,
            "neighbor_search": config.neighbor_search,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "halt_reason": flock.halt_reason,
            "tick_ms": _summary_stats(tick_ms_series),
            "avg_speed": _summary_stats(speed_series),
            "polarization": _summary_stats(polarization_series),
            "noise_events": _summary_stats(noise_series),
            "peaks": {
                "tick_ms": {"value": float(max_tick_ms[0]), "tick": max_tick_ms[1]},
                "noise_events": {"value": max_noise[0], "tick": max_noise[1]},
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(tick_ms_series[tail_slice]),
                "polarization": _summary_stats(polarization_series[tail_slice]),
                "noise_events": _summary_stats(noise_series[tail_slice]),
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    return flock


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless flocking simulation")
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--steps", type=int, default=None, help="Override the configured step budget")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided.",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--summary-window",
        type=int,
        default=500,
        help="Tail window size (ticks) for summary stats.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--update-mode", choices=["snapshot", "sequential"], default=None)
    parser.add_argument("--neighbor-search", choices=["brute", "grid"], default=None)
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
        update_mode=args.update_mode,
        neighbor_search=args.neighbor_search,
    )


if __name__ == "__main__":
    main()
