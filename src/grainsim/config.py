# Copyright (c) Syntropy Systems
"""Configuration management for grainsim."""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, cast

import yaml
from pydantic import ValidationError

from grainsim.community import SPATIAL_MODELS
from grainsim.errors import InvalidParameterError
from grainsim.metrics import SCALES
from grainsim.models.study import ConditionSpec
from grainsim.rarefaction import TARGET_RULES
from grainsim.sampling import Placement

if TYPE_CHECKING:
    from collections.abc import Mapping

    from grainsim.models.base import JSONValue

CONFIG_FILENAME = "grainsim.yaml"

# Scalar fields that may be read from YAML, with the types they accept
_SCALAR_FIELDS: dict[str, tuple[type, ...]] = {
    "seed": (int,),
    "n_studies": (int,),
    "sigma": (int, float),
    "spatial": (str,),
    "cluster_spread": (int, float),
    "mother_points": (int, float),
    "grain_min": (int, float),
    "grain_max": (int, float),
    "n_quadrats": (int,),
    "placement": (str,),
    "scale": (str,),
    "rarefaction_target": (int,),
    "target_rule": (str,),
}
_FLOAT_FIELDS = {"sigma", "cluster_spread", "mother_points", "grain_min", "grain_max"}


def _default_control() -> ConditionSpec:
    return ConditionSpec(pool_size=200, n_individuals=2000)


def _default_treatment() -> ConditionSpec:
    return ConditionSpec(pool_size=100, n_individuals=2000)


@dataclass
class SimulationConfig:
    """Parameters of a simulated meta-analysis."""

    # Root seed; every study gets an independent child seed
    seed: int = 42

    n_studies: int = 20
    control: ConditionSpec = field(default_factory=_default_control)
    treatment: ConditionSpec = field(default_factory=_default_treatment)

    # sd of log-abundances of the species abundance distribution
    sigma: float = 1.0

    # Spatial placement of individuals: random or thomas (clustered)
    spatial: str = "random"
    cluster_spread: float = 0.02
    mother_points: float = 1.0

    # Study grains are drawn uniformly from [grain_min, grain_max]
    grain_min: float = 0.01
    grain_max: float = 0.05
    n_quadrats: int = 5
    placement: str = "random"

    # alpha: mean over quadrats, gamma: pooled quadrats
    scale: str = "alpha"

    # Fixed rarefaction effort; None picks one with target_rule
    rarefaction_target: int | None = None
    target_rule: str = "min_total"

    def validate(self) -> SimulationConfig:
        """Raise InvalidParameterError if any value is out of range."""
        problems: list[str] = []
        if self.n_studies <= 0:
            problems.append(f"n_studies must be positive, got {self.n_studies}")
        if not self.sigma > 0:
            problems.append(f"sigma must be positive, got {self.sigma}")
        if not self.grain_min > 0:
            problems.append(f"grain_min must be positive, got {self.grain_min}")
        if self.grain_max < self.grain_min:
            problems.append("grain_max must not be smaller than grain_min")
        if self.grain_max > 1.0:
            problems.append(f"grain_max {self.grain_max} exceeds the unit extent")
        if self.n_quadrats <= 0:
            problems.append(f"n_quadrats must be positive, got {self.n_quadrats}")
        if self.spatial not in SPATIAL_MODELS:
            problems.append(f"Unknown spatial model: {self.spatial}")
        if self.spatial == "thomas" and not (
            self.cluster_spread > 0 and self.mother_points > 0
        ):
            problems.append("cluster_spread and mother_points must be positive")
        if self.placement not in {p.value for p in Placement}:
            problems.append(f"Unknown placement: {self.placement}")
        if self.scale not in SCALES:
            problems.append(f"Unknown scale: {self.scale}")
        if self.target_rule not in TARGET_RULES:
            problems.append(f"Unknown target rule: {self.target_rule}")
        if self.rarefaction_target is not None and self.rarefaction_target < 0:
            problems.append("rarefaction_target must be non-negative")

        if problems:
            msg = "Invalid simulation config: " + "; ".join(problems)
            raise InvalidParameterError(msg)
        return self

    def to_dict(self) -> dict[str, JSONValue]:
        """Plain mapping suitable for YAML or JSON."""
        data = cast("dict[str, JSONValue]", dataclasses.asdict(self))
        data["control"] = cast("JSONValue", self.control.model_dump())
        data["treatment"] = cast("JSONValue", self.treatment.model_dump())
        return data

    def with_overrides(self, overrides: Mapping[str, object]) -> SimulationConfig:
        """Return a copy with values replaced.

        Keys are field names; condition fields use dotted keys such as
        ``treatment.pool_size``.
        """
        data = cast("dict[str, object]", self.to_dict())
        for key, value in overrides.items():
            section, _, name = key.partition(".")
            if name:
                if section not in ("control", "treatment"):
                    msg = f"Unknown config section: {section}"
                    raise InvalidParameterError(msg)
                nested = dict(cast("dict[str, object]", data[section]))
                nested[name] = value
                data[section] = nested
            elif key in data:
                data[key] = value
            else:
                msg = f"Unknown config key: {key}"
                raise InvalidParameterError(msg)
        return config_from_dict(data, strict=True)


def _parse_condition(value: object, default: ConditionSpec) -> ConditionSpec:
    if not isinstance(value, dict):
        return default
    merged = {**default.model_dump(), **cast("dict[str, object]", value)}
    try:
        return ConditionSpec.model_validate(merged)
    except ValidationError as e:
        msg = f"Invalid condition parameters: {e}"
        raise InvalidParameterError(msg) from e


def config_from_dict(
    data: Mapping[str, object], *, strict: bool = False
) -> SimulationConfig:
    """Build a config from a mapping.

    Unknown keys are ignored. Values of the wrong type keep the default,
    unless ``strict`` is set, in which case they raise.
    """
    config = SimulationConfig()

    for name, types in _SCALAR_FIELDS.items():
        if name not in data:
            continue
        value = data[name]
        if name == "rarefaction_target" and value is None:
            config.rarefaction_target = None
            continue
        if isinstance(value, bool) or not isinstance(value, types):
            if strict:
                msg = f"Invalid value for {name}: {value!r}"
                raise InvalidParameterError(msg)
            continue
        if name in _FLOAT_FIELDS:
            value = float(cast("float", value))
        setattr(config, name, value)

    if "control" in data:
        config.control = _parse_condition(data["control"], config.control)
    if "treatment" in data:
        config.treatment = _parse_condition(data["treatment"], config.treatment)

    return config


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find the nearest grainsim.yaml by walking up from start_path.

    Returns None if no config file is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        current = current.parent

    # Check root
    candidate = current / CONFIG_FILENAME
    if candidate.is_file():
        return candidate

    return None


def get_global_config_dir() -> Path:
    """Get the global grainsim config directory (~/.grainsim)."""
    return Path.home() / ".grainsim"


def load_config(path: Path | None = None) -> SimulationConfig:
    """Load configuration from YAML or defaults.

    Looks for config in:
    1. Provided path
    2. Nearest grainsim.yaml walking up
    3. ~/.grainsim/config.yaml
    4. Defaults
    """
    config_path = path
    if config_path is None:
        config_path = find_config_file()
    if config_path is None:
        global_config = get_global_config_dir() / "config.yaml"
        if global_config.exists():
            config_path = global_config

    if config_path is None:
        return SimulationConfig()

    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open() as f:
        data = cast("dict[str, object]", yaml.safe_load(f) or {})

    return config_from_dict(data)
