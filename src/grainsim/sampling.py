# Copyright (c) Syntropy Systems
"""Quadrat sampling of simulated communities."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from grainsim.community import EXTENT_AREA, resolve_rng
from grainsim.errors import InvalidParameterError

if TYPE_CHECKING:
    import numpy.typing as npt

    from grainsim.community import Community

logger = logging.getLogger(__name__)


class Placement(str, Enum):
    """How quadrats are laid out over the extent."""

    RANDOM = "random"
    GRID = "grid"


@dataclass(frozen=True, eq=False)
class Sample:
    """Sites-by-species counts from one set of quadrats.

    Columns follow ``species``, the ids present in the sampled community.
    ``quadrats`` holds the lower-left corner of each site.
    """

    counts: npt.NDArray[np.int64]
    species: npt.NDArray[np.int64]
    quadrats: npt.NDArray[np.float64]
    grain: float

    def __post_init__(self) -> None:
        if self.counts.ndim != 2:
            msg = "counts must be a sites-by-species matrix"
            raise ValueError(msg)
        if self.counts.shape[1] != self.species.size:
            msg = "counts columns must match species labels"
            raise ValueError(msg)

    @property
    def n_sites(self) -> int:
        """Number of quadrats."""
        return int(self.counts.shape[0])

    @property
    def site_totals(self) -> npt.NDArray[np.int64]:
        """Total individuals per site."""
        return self.counts.sum(axis=1)

    def pooled(self) -> npt.NDArray[np.int64]:
        """Species counts summed over all sites."""
        return self.counts.sum(axis=0)


def quadrat_side(grain: float) -> float:
    """Side length of a square quadrat with the given area."""
    return math.sqrt(grain)


def _validate(n_quadrats: int, grain: float) -> None:
    if n_quadrats <= 0:
        msg = f"n_quadrats must be positive, got {n_quadrats}"
        raise InvalidParameterError(msg)
    if not grain > 0:
        msg = f"grain must be positive, got {grain}"
        raise InvalidParameterError(msg)
    if grain > EXTENT_AREA:
        msg = f"grain {grain} does not fit in extent of area {EXTENT_AREA}"
        raise InvalidParameterError(msg)


def _grid_corners(n_quadrats: int, side: float) -> npt.NDArray[np.float64]:
    n_cols = math.ceil(math.sqrt(n_quadrats))
    n_rows = math.ceil(n_quadrats / n_cols)
    corners = np.empty((n_quadrats, 2), dtype=np.float64)
    for k in range(n_quadrats):
        row, col = divmod(k, n_cols)
        centre_x = (col + 0.5) / n_cols
        centre_y = (row + 0.5) / n_rows
        corners[k, 0] = centre_x - side / 2
        corners[k, 1] = centre_y - side / 2
    # Quadrats larger than a cell are pushed back inside the extent
    return np.clip(corners, 0.0, 1.0 - side)


def place_quadrats(
    n_quadrats: int,
    grain: float,
    placement: Placement | str = Placement.RANDOM,
    *,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> npt.NDArray[np.float64]:
    """Return the lower-left corners of ``n_quadrats`` square quadrats.

    Random placement draws corners uniformly so that each quadrat lies fully
    inside the extent. Grid placement centres one quadrat per cell of a
    ceil(sqrt(K)) column grid, row by row.
    """
    _validate(n_quadrats, grain)
    try:
        placement = Placement(placement)
    except ValueError as e:
        msg = f"Unknown placement: {placement}"
        raise InvalidParameterError(msg) from e
    side = quadrat_side(grain)

    if placement is Placement.GRID:
        return _grid_corners(n_quadrats, side)

    generator = resolve_rng(seed, rng)
    return generator.uniform(0.0, 1.0 - side, size=(n_quadrats, 2))


def count_in_quadrats(
    community: Community,
    corners: npt.NDArray[np.float64],
    side: float,
) -> npt.NDArray[np.int64]:
    """Count individuals of each present species inside each quadrat."""
    present = community.present_species
    counts = np.zeros((corners.shape[0], present.size), dtype=np.int64)
    for k, (x0, y0) in enumerate(corners):
        inside = (
            (community.x >= x0)
            & (community.x < x0 + side)
            & (community.y >= y0)
            & (community.y < y0 + side)
        )
        per_species = np.bincount(
            community.species[inside], minlength=community.pool_size
        )
        counts[k] = per_species[present]
    return counts


def sample_quadrats(
    community: Community,
    n_quadrats: int,
    grain: float,
    placement: Placement | str = Placement.RANDOM,
    *,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> Sample:
    """Sample a community with quadrats of area ``grain``.

    Expected individuals per quadrat is ``grain * community.density``.
    """
    corners = place_quadrats(n_quadrats, grain, placement, seed=seed, rng=rng)
    counts = count_in_quadrats(community, corners, quadrat_side(grain))
    sample = Sample(
        counts=counts,
        species=community.present_species,
        quadrats=corners,
        grain=float(grain),
    )
    logger.debug(
        "Sampled %d quadrats at grain %.4g: totals=%s",
        n_quadrats,
        grain,
        sample.site_totals.tolist(),
    )
    return sample
