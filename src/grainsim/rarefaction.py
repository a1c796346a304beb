# Copyright (c) Syntropy Systems
"""Individual-based rarefaction (Hurlbert 1971).

Expected richness in a random subsample of T individuals drawn without
replacement from N:

    E[S_T] = S - sum_i C(N - n_i, T) / C(N, T)

Terms with N - n_i < T are zero. Ratios of binomial coefficients are taken
in log space so large N does not overflow.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Literal

import numpy as np
from scipy.special import gammaln

from grainsim.errors import InvalidParameterError, RarefactionError

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy.typing as npt

    from grainsim.metrics import Scale
    from grainsim.sampling import Sample

logger = logging.getLogger(__name__)

TargetRule = Literal["smallest_grain_mean", "min_total"]
TARGET_RULES: tuple[TargetRule, ...] = ("smallest_grain_mean", "min_total")


def _as_effort(target: float) -> int:
    effort = int(target)
    if effort != target or effort < 0:
        msg = f"Rarefaction target must be a non-negative integer, got {target}"
        raise InvalidParameterError(msg)
    return effort


def _as_counts(counts: npt.ArrayLike) -> npt.NDArray[np.int64]:
    n_i = np.asarray(counts, dtype=np.int64)
    if n_i.ndim != 1:
        msg = "counts must be a 1-D vector of species abundances"
        raise InvalidParameterError(msg)
    if np.any(n_i < 0):
        msg = "counts must be non-negative"
        raise InvalidParameterError(msg)
    return n_i[n_i > 0]


def _log_comb(n: npt.ArrayLike, k: int) -> npt.NDArray[np.float64]:
    n_arr = np.asarray(n, dtype=np.float64)
    return gammaln(n_arr + 1) - gammaln(k + 1) - gammaln(n_arr - k + 1)


def _rarefy_positive(n_i: npt.NDArray[np.int64], effort: int) -> float:
    total = int(n_i.sum())
    remaining = total - n_i
    contributes = remaining >= effort
    if not np.any(contributes):
        return float(n_i.size)
    log_ratio = _log_comb(remaining[contributes], effort) - _log_comb(total, effort)
    return float(n_i.size - np.exp(log_ratio).sum())


def rarefy(counts: npt.ArrayLike, target: float) -> float:
    """Expected richness at ``target`` individuals.

    Raises RarefactionError if ``target`` exceeds the total abundance;
    the estimate is never extrapolated.
    """
    effort = _as_effort(target)
    n_i = _as_counts(counts)
    total = int(n_i.sum())
    if effort > total:
        raise RarefactionError(effort, total)
    return _rarefy_positive(n_i, effort)


def rarefaction_curve(
    counts: npt.ArrayLike, efforts: Iterable[float]
) -> npt.NDArray[np.float64]:
    """Expected richness at each effort in ``efforts``."""
    n_i = _as_counts(counts)
    total = int(n_i.sum())
    values: list[float] = []
    for target in efforts:
        effort = _as_effort(target)
        if effort > total:
            raise RarefactionError(effort, total)
        values.append(_rarefy_positive(n_i, effort))
    return np.asarray(values, dtype=np.float64)


def standardize_sample(sample: Sample, target: float) -> npt.NDArray[np.float64]:
    """Rarefied richness at ``target`` individuals for every site.

    Raises RarefactionError naming the first site with fewer individuals
    than the target.
    """
    effort = _as_effort(target)
    totals = sample.site_totals
    for site, total in enumerate(totals):
        if effort > total:
            raise RarefactionError(effort, int(total), site=site)
    return np.asarray(
        [_rarefy_positive(_as_counts(row), effort) for row in sample.counts],
        dtype=np.float64,
    )


def standardize_pooled(sample: Sample, target: float) -> float:
    """Rarefied richness of a sample's pooled counts."""
    return rarefy(sample.pooled(), target)


def _totals(sample: Sample, scale: Scale) -> npt.NDArray[np.int64]:
    if scale == "gamma":
        return np.asarray([sample.site_totals.sum()], dtype=np.int64)
    return sample.site_totals


def choose_target(
    samples: Iterable[Sample],
    rule: TargetRule = "smallest_grain_mean",
    scale: Scale = "alpha",
) -> int:
    """Pick a common rarefaction effort for a set of samples.

    ``smallest_grain_mean`` is the floored mean abundance of the samples
    taken at the smallest grain. ``min_total`` is the smallest abundance
    of any sample, so every sample can be standardized. A target below one
    individual raises InvalidParameterError.
    """
    pool = list(samples)
    if not pool:
        msg = "Need at least one sample to choose a rarefaction target"
        raise InvalidParameterError(msg)

    if rule == "smallest_grain_mean":
        smallest = min(sample.grain for sample in pool)
        totals = np.concatenate(
            [_totals(sample, scale) for sample in pool if sample.grain == smallest]
        )
        target = math.floor(float(totals.mean()))
    elif rule == "min_total":
        target = int(min(int(_totals(sample, scale).min()) for sample in pool))
    else:
        msg = f"Unknown target rule: {rule}"
        raise InvalidParameterError(msg)

    if target < 1:
        msg = (
            f"Rarefaction target by {rule} is {target}: a sample has no "
            "individuals; set rarefaction_target or use a larger grain"
        )
        raise InvalidParameterError(msg)

    logger.debug("Rarefaction target by %s at %s scale: %d", rule, scale, target)
    return target
