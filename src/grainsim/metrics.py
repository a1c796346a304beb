# Copyright (c) Syntropy Systems
"""Diversity metrics and log-ratio effect sizes."""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Literal

import numpy as np

from grainsim.errors import UndefinedEffectSizeError
from grainsim.models.records import (
    ALL_METRICS,
    RAW_METRICS,
    EffectSize,
    EffectSizeRecord,
    MetricName,
    MetricRecord,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    import numpy.typing as npt

    from grainsim.community import Community
    from grainsim.sampling import Sample

logger = logging.getLogger(__name__)

Scale = Literal["alpha", "gamma"]
SCALES: tuple[Scale, ...] = ("alpha", "gamma")


def s_pie(counts: npt.ArrayLike) -> tuple[float | None, str | None]:
    """Effective number of species from Hurlbert's PIE.

    PIE = N/(N-1) * (1 - sum p_i^2) and S_PIE = 1/(1 - PIE), which reduces
    to N(N-1) / sum n_i(n_i-1). Returns ``(value, None)`` or
    ``(None, reason)`` when undefined.
    """
    n_i = np.asarray(counts, dtype=np.int64)
    n = int(n_i.sum())
    if n < 2:
        return None, f"S_PIE needs at least 2 individuals, got {n}"
    same_species_pairs = int(np.sum(n_i * (n_i - 1)))
    if same_species_pairs == 0:
        return None, "S_PIE is infinite: every individual is a different species"
    return n * (n - 1) / same_species_pairs, None


def site_metrics(counts: npt.ArrayLike, site: int | None = None) -> MetricRecord:
    """Abundance, richness and S_PIE for one vector of species counts."""
    n_i = np.asarray(counts, dtype=np.int64)
    value, reason = s_pie(n_i)
    undefined = {"s_pie": reason} if reason is not None else {}
    return MetricRecord(
        site=site,
        abundance=float(n_i.sum()),
        richness=float(np.count_nonzero(n_i)),
        s_pie=value,
        undefined=undefined,
    )


def sample_metrics(sample: Sample) -> list[MetricRecord]:
    """Per-site metrics for every row of a sample."""
    return [site_metrics(row, site=k) for k, row in enumerate(sample.counts)]


def community_metrics(community: Community) -> MetricRecord:
    """Metrics of a whole community, without sampling."""
    return site_metrics(community.abundances)


def aggregate_metrics(records: Sequence[MetricRecord]) -> MetricRecord:
    """Collapse per-site records into their mean (alpha scale).

    If any site has an undefined value for a metric, the aggregate is
    undefined for that metric too, carrying the first site's reason.
    """
    if not records:
        msg = "Cannot aggregate an empty list of metric records"
        raise ValueError(msg)

    values: dict[str, float | None] = {}
    undefined: dict[str, str] = {}
    for metric in ALL_METRICS:
        column = [record.value(metric) for record in records]
        if metric == "rarefied_richness" and all(
            v is None and record.reason(metric) is None
            for v, record in zip(column, records)
        ):
            values[metric] = None
            continue

        missing = [record for v, record in zip(column, records) if v is None]
        if missing:
            first = missing[0]
            reason = first.reason(metric) or "undefined"
            label = f"site {first.site}" if first.site is not None else "aggregate"
            undefined[metric] = f"{label}: {reason}"
            values[metric] = None
        else:
            values[metric] = float(np.mean(np.asarray(column, dtype=np.float64)))

    abundance = values["abundance"]
    richness = values["richness"]
    if abundance is None or richness is None:
        msg = "Abundance and richness are always defined"
        raise ValueError(msg)

    return MetricRecord(
        abundance=abundance,
        richness=richness,
        s_pie=values["s_pie"],
        rarefied_richness=values["rarefied_richness"],
        undefined=undefined,
    )


def study_metrics(sample: Sample, scale: Scale = "alpha") -> MetricRecord:
    """Study-level metrics at the requested scale.

    ``alpha`` averages per-site metrics; ``gamma`` pools all sites first.
    """
    if scale == "alpha":
        return aggregate_metrics(sample_metrics(sample))
    if scale == "gamma":
        return site_metrics(sample.pooled())
    msg = f"Unknown scale: {scale}"
    raise ValueError(msg)


def _operand_problem(label: str, value: float | None) -> str | None:
    if value is None:
        return f"{label} value is undefined"
    if not math.isfinite(value):
        return f"{label} value is not finite ({value})"
    if value == 0:
        return f"{label} value is zero"
    if value < 0:
        return f"{label} value is negative ({value})"
    return None


def log_ratio(
    treatment: float | None,
    control: float | None,
    *,
    strict: bool = False,
) -> EffectSize:
    """Log response ratio ln(treatment / control).

    Zero, negative, missing or non-finite operands make the ratio undefined.
    The result then has ``lrr=None`` and a reason, or with ``strict=True``
    an UndefinedEffectSizeError is raised.
    """
    problem = _operand_problem("control", control) or _operand_problem(
        "treatment", treatment
    )
    if problem is None and treatment is not None and control is not None:
        return EffectSize(lrr=math.log(treatment / control))

    reason = problem or "operand is undefined"
    if strict:
        raise UndefinedEffectSizeError(reason)
    return EffectSize(lrr=None, undefined_reason=reason)


def effect_sizes(
    study_id: int,
    grain: float,
    control: MetricRecord,
    treatment: MetricRecord,
    metrics: Iterable[MetricName] = RAW_METRICS,
) -> list[EffectSizeRecord]:
    """Effect-size records comparing treatment to control for each metric."""
    results: list[EffectSizeRecord] = []
    for metric in metrics:
        control_value = control.value(metric)
        treatment_value = treatment.value(metric)
        effect = log_ratio(treatment_value, control_value)

        reason = effect.undefined_reason
        if reason is not None:
            # Prefer the upstream explanation when a metric itself was undefined
            if control_value is None and control.reason(metric):
                reason = f"control {control.reason(metric)}"
            elif treatment_value is None and treatment.reason(metric):
                reason = f"treatment {treatment.reason(metric)}"
            logger.warning(
                "Study %d: %s effect size undefined (%s)", study_id, metric, reason
            )

        results.append(
            EffectSizeRecord(
                study_id=study_id,
                grain=grain,
                metric=metric,
                control=control_value,
                treatment=treatment_value,
                lrr=effect.lrr,
                undefined_reason=reason,
            )
        )
    return results
