# Copyright (c) Syntropy Systems
"""Parameter sweeps over simulation configs."""
from __future__ import annotations

import itertools
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, TypedDict, cast

import numpy as np
import yaml

from grainsim.config import SimulationConfig

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from grainsim.models.base import JSONValue


class SweepParamSpec(TypedDict, total=False):
    """Discrete values, or a distribution over min..max, for one parameter."""

    values: list[JSONValue]
    distribution: str
    min: float
    max: float


@dataclass
class SweepConfig:
    """Configuration for a parameter sweep."""

    parameters: dict[str, SweepParamSpec]
    base: dict[str, object] = field(default_factory=dict)
    method: str = "grid"  # grid or random
    name: str | None = None
    # Random sweeps only
    max_runs: int | None = None
    seed: int | None = None

    @classmethod
    def from_yaml(cls, path: Path) -> SweepConfig:
        """Load sweep configuration from YAML file."""
        with path.open() as f:
            data = cast("dict[str, object]", yaml.safe_load(f) or {})

        if "parameters" not in data:
            msg = "Sweep config must have 'parameters' field"
            raise ValueError(msg)

        return cls(
            parameters=cast("dict[str, SweepParamSpec]", data["parameters"]),
            base=cast("dict[str, object]", data.get("base") or {}),
            method=cast("str", data.get("method", "grid")),
            name=cast("Optional[str]", data.get("name")),
            max_runs=cast("Optional[int]", data.get("max_runs")),
            seed=cast("Optional[int]", data.get("seed")),
        )


@dataclass
class SweepPoint:
    """A single simulation config from a sweep."""

    name: str
    tags: list[str]
    overrides: dict[str, JSONValue]
    config: SimulationConfig


def generate_grid_combinations(
    parameters: dict[str, SweepParamSpec],
) -> Iterator[dict[str, JSONValue]]:
    """Every combination of the listed ``values``, first parameter slowest."""
    axes: dict[str, list[JSONValue]] = {}
    for name, spec in parameters.items():
        if "values" not in spec:
            msg = f"Parameter '{name}' must have 'values' for grid sweep"
            raise ValueError(msg)
        axes[name] = list(spec["values"])

    for combo in itertools.product(*axes.values()):
        yield dict(zip(axes, combo))


def _draw(
    name: str, spec: SweepParamSpec, rng: np.random.Generator
) -> JSONValue:
    if "values" in spec:
        values = spec["values"]
        return values[int(rng.integers(len(values)))]
    if "distribution" not in spec:
        msg = f"Parameter '{name}' must have 'values' or 'distribution'"
        raise ValueError(msg)

    low = float(spec.get("min", 0.0))
    high = float(spec.get("max", 1.0))
    dist = spec["distribution"]
    if dist == "uniform":
        return float(rng.uniform(low, high))
    if dist == "log_uniform":
        value = math.exp(rng.uniform(math.log(low), math.log(high)))
        return min(max(value, low), high)
    if dist == "int_uniform":
        return int(rng.integers(int(low), int(high), endpoint=True))
    msg = f"Unknown distribution: {dist}"
    raise ValueError(msg)


def generate_random_combinations(
    parameters: dict[str, SweepParamSpec],
    max_runs: int,
    seed: int | None = None,
) -> Iterator[dict[str, JSONValue]]:
    """Draw ``max_runs`` random points.

    A parameter either lists discrete ``values`` or names a
    ``distribution`` (uniform, log_uniform or int_uniform) over
    ``min``..``max``.
    """
    rng = np.random.default_rng(seed)
    for _ in range(max_runs):
        yield {name: _draw(name, spec, rng) for name, spec in parameters.items()}


def generate_sweep_points(
    sweep: SweepConfig,
    prefix: str | None = None,
    base_config: SimulationConfig | None = None,
) -> list[SweepPoint]:
    """Generate all simulation configs for a sweep.

    Each point starts from ``base_config`` (defaults if omitted), applies
    the sweep's ``base`` overrides, then the point's own parameters.
    Invalid combinations raise InvalidParameterError.
    """
    base_name = prefix or sweep.name or "sweep"

    if sweep.method == "grid":
        combinations = list(generate_grid_combinations(sweep.parameters))
    elif sweep.method == "random":
        if sweep.max_runs is None:
            msg = "Random sweeps require 'max_runs' to be set"
            raise ValueError(msg)
        combinations = list(
            generate_random_combinations(sweep.parameters, sweep.max_runs, sweep.seed)
        )
    else:
        msg = f"Unknown sweep method: {sweep.method}"
        raise ValueError(msg)

    start = base_config or SimulationConfig()
    if sweep.base:
        start = start.with_overrides(_flatten(sweep.base))

    points: list[SweepPoint] = []
    for i, params in enumerate(combinations):
        config = start.with_overrides(params).validate()
        points.append(
            SweepPoint(
                name=f"{base_name}-{i}",
                tags=[f"sweep:{base_name}"],
                overrides=params,
                config=config,
            )
        )

    return points


def _flatten(mapping: dict[str, object]) -> dict[str, object]:
    """Turn nested condition sections into dotted keys."""
    flat: dict[str, object] = {}
    for key, value in mapping.items():
        if key in ("control", "treatment") and isinstance(value, dict):
            for name, item in cast("dict[str, object]", value).items():
                flat[f"{key}.{name}"] = item
        else:
            flat[key] = value
    return flat
