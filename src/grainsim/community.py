# Copyright (c) Syntropy Systems
"""Synthetic community generation.

Communities live in a unit-square extent. Species abundances follow a
log-normal species abundance distribution; individuals are placed either
uniformly at random or clustered around per-species mother points (a
Thomas process, wrapped on a torus so density stays even at the edges).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

import numpy as np

from grainsim.errors import InvalidParameterError

if TYPE_CHECKING:
    from collections.abc import Sequence

    import numpy.typing as npt

logger = logging.getLogger(__name__)

SpatialModel = Literal["random", "thomas"]
SPATIAL_MODELS: tuple[SpatialModel, ...] = ("random", "thomas")

# Extent is the unit square; grain is expressed as a fraction of its area.
EXTENT_AREA = 1.0


def resolve_rng(
    seed: int | np.random.SeedSequence | None = None,
    rng: np.random.Generator | None = None,
) -> np.random.Generator:
    """Return ``rng`` if given, else a fresh generator seeded with ``seed``."""
    if rng is not None:
        if seed is not None:
            msg = "Pass either seed or rng, not both"
            raise ValueError(msg)
        return rng
    return np.random.default_rng(seed)


def _require_positive(name: str, value: float) -> None:
    if not value > 0:
        msg = f"{name} must be positive, got {value}"
        raise InvalidParameterError(msg)


@dataclass(frozen=True, eq=False)
class Community:
    """A realized community: one species id and position per individual."""

    species: npt.NDArray[np.int64]
    x: npt.NDArray[np.float64]
    y: npt.NDArray[np.float64]
    pool_size: int

    def __post_init__(self) -> None:
        if not (self.species.shape == self.x.shape == self.y.shape):
            msg = "species, x and y must have the same length"
            raise ValueError(msg)
        for array in (self.species, self.x, self.y):
            array.setflags(write=False)

    @classmethod
    def from_abundances(
        cls,
        abundances: Sequence[int] | npt.NDArray[np.int64],
        *,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> Community:
        """Place a community with known species counts at random."""
        counts = np.asarray(abundances, dtype=np.int64)
        if counts.ndim != 1 or counts.size == 0:
            msg = "abundances must be a non-empty 1-D sequence"
            raise InvalidParameterError(msg)
        if np.any(counts < 0):
            msg = "abundances must be non-negative"
            raise InvalidParameterError(msg)
        generator = resolve_rng(seed, rng)
        species = np.repeat(np.arange(counts.size, dtype=np.int64), counts)
        x, y = _random_positions(species.size, generator)
        return cls(species=species, x=x, y=y, pool_size=int(counts.size))

    @property
    def n_individuals(self) -> int:
        """Total number of individuals."""
        return int(self.species.size)

    @property
    def abundances(self) -> npt.NDArray[np.int64]:
        """Counts per species id over the whole pool (zeros included)."""
        return np.bincount(self.species, minlength=self.pool_size)

    @property
    def present_species(self) -> npt.NDArray[np.int64]:
        """Ids of species with at least one individual."""
        return np.flatnonzero(self.abundances)

    @property
    def richness(self) -> int:
        """Number of species with at least one individual."""
        return int(np.count_nonzero(self.abundances))

    @property
    def density(self) -> float:
        """Individuals per unit area."""
        return self.n_individuals / EXTENT_AREA


def simulate_abundances(
    pool_size: int,
    n_individuals: int,
    sigma: float,
    rng: np.random.Generator,
) -> npt.NDArray[np.int64]:
    """Draw species counts from a log-normal abundance distribution.

    Relative abundances are log-normal with mean-log 0 and sd-log ``sigma``;
    exactly ``n_individuals`` are then split among species by a multinomial
    draw, so some species of the pool may end up absent.
    """
    _require_positive("pool_size", pool_size)
    _require_positive("n_individuals", n_individuals)
    _require_positive("sigma", sigma)

    weights = rng.lognormal(mean=0.0, sigma=sigma, size=int(pool_size))
    return rng.multinomial(int(n_individuals), weights / weights.sum())


def _random_positions(
    n: int, rng: np.random.Generator
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    return rng.uniform(0.0, 1.0, size=n), rng.uniform(0.0, 1.0, size=n)


def _thomas_positions(
    species: npt.NDArray[np.int64],
    abundances: npt.NDArray[np.int64],
    cluster_spread: float,
    mother_points: float,
    rng: np.random.Generator,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    x = np.empty(species.size, dtype=np.float64)
    y = np.empty(species.size, dtype=np.float64)

    for species_id in np.flatnonzero(abundances):
        members = np.flatnonzero(species == species_id)
        n_mothers = max(1, int(rng.poisson(mother_points)))
        mother_x = rng.uniform(0.0, 1.0, size=n_mothers)
        mother_y = rng.uniform(0.0, 1.0, size=n_mothers)
        parent = rng.integers(0, n_mothers, size=members.size)
        x[members] = mother_x[parent] + rng.normal(0.0, cluster_spread, members.size)
        y[members] = mother_y[parent] + rng.normal(0.0, cluster_spread, members.size)

    return np.mod(x, 1.0), np.mod(y, 1.0)


def generate_community(
    pool_size: int,
    n_individuals: int,
    sigma: float = 1.0,
    *,
    spatial: SpatialModel = "random",
    cluster_spread: float = 0.02,
    mother_points: float = 1.0,
    seed: int | np.random.SeedSequence | None = None,
    rng: np.random.Generator | None = None,
) -> Community:
    """Generate a community for one condition of a study.

    Deterministic for a given seed. Raises InvalidParameterError for
    non-positive pool size, individual count, shape or cluster parameters.
    """
    if spatial not in SPATIAL_MODELS:
        msg = f"Unknown spatial model: {spatial}"
        raise InvalidParameterError(msg)
    if spatial == "thomas":
        _require_positive("cluster_spread", cluster_spread)
        _require_positive("mother_points", mother_points)

    generator = resolve_rng(seed, rng)
    abundances = simulate_abundances(pool_size, n_individuals, sigma, generator)
    species = np.repeat(np.arange(abundances.size, dtype=np.int64), abundances)

    if spatial == "random":
        x, y = _random_positions(species.size, generator)
    else:
        x, y = _thomas_positions(
            species, abundances, cluster_spread, mother_points, generator
        )

    community = Community(species=species, x=x, y=y, pool_size=int(pool_size))
    logger.debug(
        "Generated %s community: S=%d J=%d realized richness=%d",
        spatial,
        pool_size,
        n_individuals,
        community.richness,
    )
    return community
