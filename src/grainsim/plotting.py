# Copyright (c) Syntropy Systems
"""Effect-size plots."""
from __future__ import annotations

from typing import TYPE_CHECKING

import matplotlib as mpl

mpl.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

if TYPE_CHECKING:
    from pathlib import Path

    import pandas as pd
    from matplotlib.figure import Figure

METRIC_LABELS = {
    "abundance": "Abundance",
    "richness": "Richness",
    "s_pie": "S_PIE",
    "rarefied_richness": "Rarefied richness",
}


def plot_effect_sizes(table: pd.DataFrame, target: int | None = None) -> Figure:
    """Scatter log-ratio effect sizes against grain, one panel per metric.

    Undefined effect sizes are marked with a red cross on the zero line
    at their grain so they remain visible.
    """
    metrics = [m for m in METRIC_LABELS if m in set(table["metric"])]
    n_panels = max(1, len(metrics))
    fig, axes = plt.subplots(
        1, n_panels, figsize=(3.2 * n_panels, 3.2), sharey=True, squeeze=False
    )

    for ax, metric in zip(axes[0], metrics):
        subset = table[table["metric"] == metric]
        lrr = subset["lrr"].to_numpy(dtype=np.float64)
        grain = subset["grain"].to_numpy(dtype=np.float64)
        defined = np.isfinite(lrr)

        ax.scatter(grain[defined], lrr[defined], s=18, color="tab:blue")
        if np.any(~defined):
            ax.scatter(
                grain[~defined],
                np.zeros(int((~defined).sum())),
                marker="x",
                color="tab:red",
                label="undefined",
            )
            ax.legend(loc="best", fontsize="small")
        ax.axhline(0.0, color="grey", linewidth=0.8, linestyle="--")

        title = METRIC_LABELS[metric]
        if metric == "rarefied_richness" and target is not None:
            title = f"{title} (n={target})"
        ax.set_title(title)
        ax.set_xlabel("Grain (quadrat area)")

    axes[0][0].set_ylabel("ln(treatment / control)")
    fig.tight_layout()
    return fig


def save_effect_plot(
    table: pd.DataFrame, path: Path, target: int | None = None
) -> Path:
    """Render the effect-size plot to ``path``."""
    fig = plot_effect_sizes(table, target)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(path, dpi=150)
    finally:
        plt.close(fig)
    return path
