# Copyright (c) Syntropy Systems
"""Pydantic models for metric and effect-size records."""

from __future__ import annotations

import math
from typing import Literal

from pydantic import Field

from .base import FrozenModel, GrainsimBaseModel

MetricName = Literal["abundance", "richness", "s_pie", "rarefied_richness"]

RAW_METRICS: tuple[MetricName, ...] = ("abundance", "richness", "s_pie")
ALL_METRICS: tuple[MetricName, ...] = (*RAW_METRICS, "rarefied_richness")


class MetricRecord(GrainsimBaseModel):
    """Diversity metrics for one site, or for an aggregate of sites.

    A metric that cannot be computed is stored as ``None`` and the reason is
    kept in ``undefined`` under the metric name.
    """

    site: int | None = None
    abundance: float
    richness: float
    s_pie: float | None = None
    rarefied_richness: float | None = None
    undefined: dict[str, str] = Field(default_factory=dict)

    def value(self, metric: MetricName) -> float | None:
        """Return a metric value, or None when undefined."""
        value: float | None = getattr(self, metric)
        return value

    def reason(self, metric: MetricName) -> str | None:
        """Return why a metric is undefined, if it is."""
        return self.undefined.get(metric)

    def with_rarefied(
        self, value: float | None, reason: str | None = None
    ) -> MetricRecord:
        """Return a copy carrying a standardized richness value."""
        undefined = dict(self.undefined)
        if value is None:
            undefined["rarefied_richness"] = reason or "not standardized"
        else:
            undefined.pop("rarefied_richness", None)
        return self.model_copy(
            update={"rarefied_richness": value, "undefined": undefined}
        )


class EffectSize(FrozenModel):
    """Log-ratio of a treatment metric over a control metric."""

    lrr: float | None
    undefined_reason: str | None = None

    @property
    def defined(self) -> bool:
        """Whether the log-ratio has a finite value."""
        return self.lrr is not None and math.isfinite(self.lrr)


class EffectSizeRecord(GrainsimBaseModel):
    """Per-study, per-metric effect size."""

    study_id: int
    grain: float
    metric: MetricName
    control: float | None
    treatment: float | None
    lrr: float | None
    undefined_reason: str | None = None

    @property
    def defined(self) -> bool:
        """Whether the effect size has a finite value."""
        return self.lrr is not None and math.isfinite(self.lrr)
