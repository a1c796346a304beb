# Copyright (c) Syntropy Systems
"""Pytest fixtures for grainsim tests."""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import numpy as np
import pytest

from grainsim.community import Community, generate_community
from grainsim.config import SimulationConfig
from grainsim.models.study import ConditionSpec

# Store original cwd at module load time
_original_cwd = Path.cwd()

SMALL_CONFIG_YAML = """
seed: 3
n_studies: 6
control:
  pool_size: 200
  n_individuals: 2000
treatment:
  pool_size: 100
  n_individuals: 2000
sigma: 1.0
grain_min: 0.01
grain_max: 0.05
n_quadrats: 4
placement: random
target_rule: min_total
"""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def project(
    temp_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[Path, None, None]:
    """Temporary working directory isolated from any user config."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))

    workdir = temp_dir / "work"
    workdir.mkdir()
    os.chdir(workdir)

    yield workdir

    # Always return to original cwd
    os.chdir(_original_cwd)


@pytest.fixture
def small_config() -> SimulationConfig:
    """A quick config: few studies, dense enough communities."""
    return SimulationConfig(
        seed=3,
        n_studies=6,
        control=ConditionSpec(pool_size=200, n_individuals=2000),
        treatment=ConditionSpec(pool_size=100, n_individuals=2000),
        grain_min=0.01,
        grain_max=0.05,
        n_quadrats=4,
    )


@pytest.fixture
def small_config_file(project: Path) -> Path:
    """The small config written as YAML in the project directory."""
    path = project / "small.yaml"
    _ = path.write_text(SMALL_CONFIG_YAML)
    return path


@pytest.fixture
def community() -> Community:
    """The reference community: S=200, J=2000, sigma=1."""
    return generate_community(200, 2000, 1.0, seed=np.random.SeedSequence(11))
