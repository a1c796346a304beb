# Copyright (c) Syntropy Systems
"""Simulated meta-analysis: studies, sampling, effect sizes, standardization."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, cast

import numpy as np
import pandas as pd
from scipy import stats

from grainsim.community import Community, generate_community
from grainsim.errors import RarefactionError
from grainsim.metrics import effect_sizes, study_metrics
from grainsim.models.records import ALL_METRICS, EffectSizeRecord, MetricRecord
from grainsim.models.study import CONDITIONS, Condition, Study
from grainsim.rarefaction import choose_target, standardize_pooled, standardize_sample
from grainsim.sampling import Sample, sample_quadrats

if TYPE_CHECKING:
    from collections.abc import Iterable

    from grainsim.community import SpatialModel
    from grainsim.config import SimulationConfig
    from grainsim.metrics import Scale
    from grainsim.rarefaction import TargetRule

logger = logging.getLogger(__name__)

EFFECT_COLUMNS = [
    "study_id",
    "grain",
    "metric",
    "control",
    "treatment",
    "lrr",
    "undefined_reason",
]
SUMMARY_COLUMNS = [
    "metric",
    "n_defined",
    "n_undefined",
    "mean_lrr",
    "sd_lrr",
    "grain_slope",
    "grain_r",
    "grain_p",
]


@dataclass(frozen=True)
class StudyOutcome:
    """Communities, samples and raw study-level metrics of one study."""

    study: Study
    communities: dict[Condition, Community]
    samples: dict[Condition, Sample]
    metrics: dict[Condition, MetricRecord]


@dataclass
class MetaAnalysisResult:
    """Everything produced by one simulated meta-analysis."""

    config: SimulationConfig
    outcomes: list[StudyOutcome]
    target: int
    effects: list[EffectSizeRecord] = field(default_factory=list)

    @property
    def studies(self) -> list[Study]:
        """The simulated studies, in id order."""
        return [outcome.study for outcome in self.outcomes]

    def table(self) -> pd.DataFrame:
        """Per-study, per-metric effect sizes."""
        return effects_table(self.effects)

    def summary(self) -> pd.DataFrame:
        """Per-metric summary of the effect sizes."""
        return summarize_effects(self.table())

    def undefined(self) -> list[EffectSizeRecord]:
        """Effect sizes that could not be computed."""
        return [effect for effect in self.effects if not effect.defined]


def draw_studies(config: SimulationConfig) -> list[Study]:
    """Create the immutable study records for a run.

    Grains are uniform on [grain_min, grain_max]; each study receives an
    independent child seed of the root seed.
    """
    _ = config.validate()
    root = np.random.SeedSequence(config.seed)
    child_seeds = root.spawn(config.n_studies)
    grain_rng = np.random.default_rng(root)
    grains = grain_rng.uniform(config.grain_min, config.grain_max, config.n_studies)

    return [
        Study(
            study_id=i,
            grain=float(grain),
            control=config.control,
            treatment=config.treatment,
            seed=int(child.generate_state(1)[0]),
        )
        for i, (grain, child) in enumerate(zip(grains, child_seeds))
    ]


def run_study(study: Study, config: SimulationConfig) -> StudyOutcome:
    """Generate and sample both conditions of a study."""
    seeds = iter(np.random.SeedSequence(study.seed).spawn(2 * len(CONDITIONS)))

    communities: dict[Condition, Community] = {}
    samples: dict[Condition, Sample] = {}
    metrics: dict[Condition, MetricRecord] = {}

    for condition in CONDITIONS:
        spec = study.condition(condition)
        community = generate_community(
            spec.pool_size,
            spec.n_individuals,
            config.sigma,
            spatial=cast("SpatialModel", config.spatial),
            cluster_spread=config.cluster_spread,
            mother_points=config.mother_points,
            rng=np.random.default_rng(next(seeds)),
        )
        sample = sample_quadrats(
            community,
            config.n_quadrats,
            study.grain,
            config.placement,
            rng=np.random.default_rng(next(seeds)),
        )
        communities[condition] = community
        samples[condition] = sample
        metrics[condition] = study_metrics(sample, _scale(config))

    logger.debug(
        "Study %d (grain %.4f): control N=%.1f S=%.1f, treatment N=%.1f S=%.1f",
        study.study_id,
        study.grain,
        metrics["control"].abundance,
        metrics["control"].richness,
        metrics["treatment"].abundance,
        metrics["treatment"].richness,
    )
    return StudyOutcome(
        study=study, communities=communities, samples=samples, metrics=metrics
    )


def _scale(config: SimulationConfig) -> Scale:
    return cast("Scale", config.scale)


def standardize_metrics(
    sample: Sample,
    record: MetricRecord,
    target: int,
    scale: Scale = "alpha",
) -> MetricRecord:
    """Attach rarefied richness at ``target`` individuals to a study record.

    A sample that cannot reach the target keeps an undefined value with the
    rarefaction error as its reason.
    """
    try:
        if scale == "gamma":
            value = standardize_pooled(sample, target)
        else:
            value = float(np.mean(standardize_sample(sample, target)))
    except RarefactionError as e:
        logger.warning("Standardization rejected at grain %.4f: %s", sample.grain, e)
        return record.with_rarefied(None, str(e))
    return record.with_rarefied(value)


def run_meta_analysis(config: SimulationConfig) -> MetaAnalysisResult:
    """Run every study, standardize effort and compute effect sizes.

    Studies are independent, so their order does not affect the result.
    """
    studies = draw_studies(config)
    outcomes = [run_study(study, config) for study in studies]
    scale = _scale(config)

    if config.rarefaction_target is not None:
        target = config.rarefaction_target
    else:
        target = choose_target(
            (outcome.samples[c] for outcome in outcomes for c in CONDITIONS),
            rule=cast("TargetRule", config.target_rule),
            scale=scale,
        )
    logger.info(
        "Simulated %d studies; standardizing to %d individuals", len(outcomes), target
    )

    effects: list[EffectSizeRecord] = []
    for outcome in outcomes:
        control = standardize_metrics(
            outcome.samples["control"], outcome.metrics["control"], target, scale
        )
        treatment = standardize_metrics(
            outcome.samples["treatment"], outcome.metrics["treatment"], target, scale
        )
        effects.extend(
            effect_sizes(
                outcome.study.study_id,
                outcome.study.grain,
                control,
                treatment,
                ALL_METRICS,
            )
        )

    return MetaAnalysisResult(
        config=config, outcomes=outcomes, target=target, effects=effects
    )


def effects_table(effects: Iterable[EffectSizeRecord]) -> pd.DataFrame:
    """Tabulate effect-size records."""
    rows = [effect.model_dump() for effect in effects]
    return pd.DataFrame(rows, columns=EFFECT_COLUMNS)


def summarize_effects(table: pd.DataFrame) -> pd.DataFrame:
    """Summarize effect sizes per metric.

    Reports how many studies are defined and undefined, the mean and sd of
    the defined log-ratios, and the linear dependence of the log-ratio on
    grain. Grain statistics are NaN with fewer than 3 defined studies.
    """
    rows: list[dict[str, object]] = []
    for metric in dict.fromkeys(table["metric"]):
        subset = table[table["metric"] == metric]
        lrr = pd.to_numeric(subset["lrr"], errors="coerce")
        defined = subset[np.isfinite(lrr.to_numpy(dtype=np.float64))]
        defined_lrr = lrr[defined.index].to_numpy(dtype=np.float64)
        grains = defined["grain"].to_numpy(dtype=np.float64)

        slope = r_value = p_value = math.nan
        if defined_lrr.size >= 3 and np.ptp(grains) > 0:
            fit = stats.linregress(grains, defined_lrr)
            slope, r_value, p_value = (
                float(fit.slope),
                float(fit.rvalue),
                float(fit.pvalue),
            )

        rows.append(
            {
                "metric": metric,
                "n_defined": int(defined_lrr.size),
                "n_undefined": int(len(subset) - defined_lrr.size),
                "mean_lrr": float(defined_lrr.mean()) if defined_lrr.size else math.nan,
                "sd_lrr": float(defined_lrr.std(ddof=1))
                if defined_lrr.size > 1
                else math.nan,
                "grain_slope": slope,
                "grain_r": r_value,
                "grain_p": p_value,
            }
        )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def grain_dependence_reduction(summary: pd.DataFrame) -> float:
    """How much standardization shrinks the grain slope of richness LRR.

    Positive when rarefied richness depends less on grain than raw richness.
    NaN when either slope is unavailable.
    """
    slopes = summary.set_index("metric")["grain_slope"]
    if "richness" not in slopes.index or "rarefied_richness" not in slopes.index:
        return math.nan
    raw = float(slopes["richness"])
    rarefied = float(slopes["rarefied_richness"])
    return abs(raw) - abs(rarefied)
