# Copyright (c) Syntropy Systems
"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from grainsim.config import (
    CONFIG_FILENAME,
    SimulationConfig,
    config_from_dict,
    find_config_file,
    get_global_config_dir,
    load_config,
)
from grainsim.errors import InvalidParameterError
from grainsim.models.study import ConditionSpec


class TestSimulationConfig:
    """Tests for SimulationConfig."""

    def test_defaults(self) -> None:
        """Test the reference scenario defaults."""
        config = SimulationConfig()

        assert config.control == ConditionSpec(pool_size=200, n_individuals=2000)
        assert config.treatment == ConditionSpec(pool_size=100, n_individuals=2000)
        assert config.sigma == 1.0
        assert config.placement == "random"
        assert config.target_rule == "min_total"
        assert config.rarefaction_target is None
        assert config.validate() is config

    def test_validate_collects_problems(self) -> None:
        """Test that every problem is reported at once."""
        config = SimulationConfig(n_studies=0, grain_min=0.2, grain_max=0.1)

        with pytest.raises(InvalidParameterError) as info:
            _ = config.validate()

        message = str(info.value)
        assert "n_studies" in message
        assert "grain_max" in message

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("spatial", "hexagonal"),
            ("placement", "spiral"),
            ("scale", "beta"),
            ("target_rule", "median"),
            ("grain_max", 2.0),
            ("sigma", 0.0),
        ],
    )
    def test_validate_rejects(self, field: str, value: object) -> None:
        """Test that out-of-range values are rejected."""
        config = SimulationConfig()
        setattr(config, field, value)

        with pytest.raises(InvalidParameterError):
            _ = config.validate()

    def test_to_dict_round_trip(self) -> None:
        """Test that to_dict output rebuilds the same config."""
        config = SimulationConfig(seed=7, n_quadrats=9, placement="grid")

        assert config_from_dict(config.to_dict()) == config

    def test_to_dict_is_yaml_safe(self) -> None:
        """Test that the mapping serializes with safe_dump."""
        text = yaml.safe_dump(SimulationConfig().to_dict())

        assert "pool_size: 200" in text


class TestOverrides:
    """Tests for with_overrides."""

    def test_scalar_and_dotted_keys(self) -> None:
        """Test replacing top-level and condition values."""
        config = SimulationConfig().with_overrides(
            {"sigma": 2.0, "treatment.pool_size": 50}
        )

        assert config.sigma == 2.0
        assert config.treatment.pool_size == 50
        assert config.treatment.n_individuals == 2000
        assert config.control.pool_size == 200

    def test_original_unchanged(self) -> None:
        """Test that overrides return a copy."""
        base = SimulationConfig()
        _ = base.with_overrides({"seed": 1})

        assert base.seed == 42

    def test_unknown_key(self) -> None:
        """Test that unknown keys are rejected."""
        with pytest.raises(InvalidParameterError, match="Unknown config key"):
            _ = SimulationConfig().with_overrides({"learning_rate": 0.1})

    def test_unknown_section(self) -> None:
        """Test that dotted keys must name a condition."""
        with pytest.raises(InvalidParameterError, match="section"):
            _ = SimulationConfig().with_overrides({"placebo.pool_size": 3})

    def test_wrong_type_is_strict(self) -> None:
        """Test that overrides do not silently drop bad values."""
        with pytest.raises(InvalidParameterError, match="n_studies"):
            _ = SimulationConfig().with_overrides({"n_studies": "many"})

    def test_invalid_condition(self) -> None:
        """Test that condition values are validated."""
        with pytest.raises(InvalidParameterError, match="condition"):
            _ = SimulationConfig().with_overrides({"control.pool_size": 0})


class TestConfigFromDict:
    """Tests for config_from_dict."""

    def test_wrong_types_keep_defaults(self) -> None:
        """Test lenient parsing of malformed values."""
        config = config_from_dict({"seed": "abc", "n_studies": True, "sigma": 2})

        assert config.seed == 42
        assert config.n_studies == 20
        assert config.sigma == 2.0
        assert isinstance(config.sigma, float)

    def test_unknown_keys_ignored(self) -> None:
        """Test that extra keys are ignored."""
        config = config_from_dict({"comment": "hello", "seed": 5})

        assert config.seed == 5

    def test_explicit_null_target(self) -> None:
        """Test that a null target means choose one automatically."""
        config = config_from_dict({"rarefaction_target": None})

        assert config.rarefaction_target is None


class TestLoadConfig:
    """Tests for config file discovery."""

    def test_defaults_without_files(self, project: Path) -> None:
        """Test that no config file gives defaults."""
        assert load_config() == SimulationConfig()

    def test_explicit_path(self, small_config_file: Path) -> None:
        """Test loading a given YAML file."""
        config = load_config(small_config_file)

        assert config.seed == 3
        assert config.n_studies == 6
        assert config.n_quadrats == 4
        assert config.treatment.pool_size == 100

    def test_missing_explicit_path(self, project: Path) -> None:
        """Test that a named file must exist."""
        with pytest.raises(FileNotFoundError):
            _ = load_config(project / "nope.yaml")

    def test_walks_up(self, project: Path) -> None:
        """Test that the nearest config in a parent directory is found."""
        _ = (project / CONFIG_FILENAME).write_text("seed: 99\n")
        nested = project / "a" / "b"
        nested.mkdir(parents=True)

        assert find_config_file(nested) == (project / CONFIG_FILENAME).resolve()
        assert find_config_file(project.parent) is None

    def test_project_config_used(self, project: Path) -> None:
        """Test that load_config reads grainsim.yaml from the working directory."""
        _ = (project / CONFIG_FILENAME).write_text("seed: 99\nn_quadrats: 2\n")

        config = load_config()

        assert config.seed == 99
        assert config.n_quadrats == 2

    def test_global_config(self, project: Path) -> None:
        """Test the ~/.grainsim fallback."""
        global_dir = get_global_config_dir()
        global_dir.mkdir()
        _ = (global_dir / "config.yaml").write_text("n_studies: 3\n")

        assert load_config().n_studies == 3

    def test_empty_file(self, project: Path) -> None:
        """Test that an empty YAML file gives defaults."""
        path = project / "empty.yaml"
        _ = path.write_text("")

        assert load_config(path) == SimulationConfig()
