# Copyright (c) Syntropy Systems
"""Tests for effect-size plots."""

from pathlib import Path

import matplotlib.pyplot as plt

from grainsim.models.records import EffectSizeRecord
from grainsim.pipeline import effects_table
from grainsim.plotting import plot_effect_sizes, save_effect_plot


def _table():
    records = [
        EffectSizeRecord(
            study_id=i,
            grain=0.01 * (i + 1),
            metric=metric,
            control=10.0,
            treatment=8.0,
            lrr=-0.2,
        )
        for i in range(3)
        for metric in ("richness", "rarefied_richness")
    ]
    records.append(
        EffectSizeRecord(
            study_id=3,
            grain=0.04,
            metric="rarefied_richness",
            control=None,
            treatment=8.0,
            lrr=None,
            undefined_reason="control value is undefined",
        )
    )
    return effects_table(records)


class TestPlotting:
    """Tests for plot_effect_sizes."""

    def test_one_panel_per_metric(self) -> None:
        """Test that each metric in the table gets a panel."""
        fig = plot_effect_sizes(_table(), target=12)
        try:
            titles = [ax.get_title() for ax in fig.axes]
            assert titles == ["Richness", "Rarefied richness (n=12)"]
        finally:
            plt.close(fig)

    def test_undefined_marked(self) -> None:
        """Test that undefined effect sizes get a legend entry."""
        fig = plot_effect_sizes(_table())
        try:
            rarefied = fig.axes[1]
            assert rarefied.get_legend() is not None
            assert fig.axes[0].get_legend() is None
        finally:
            plt.close(fig)

    def test_undefined_on_zero_line(self) -> None:
        """Test that undefined effect sizes sit at LRR 0 at their grain."""
        fig = plot_effect_sizes(_table())
        try:
            markers = fig.axes[1].collections[-1].get_offsets()
            assert markers.tolist() == [[0.04, 0.0]]
        finally:
            plt.close(fig)

    def test_save(self, temp_dir: Path) -> None:
        """Test writing the figure to disk."""
        path = save_effect_plot(_table(), temp_dir / "plots" / "effects.png", 12)

        assert path.exists()
        assert path.stat().st_size > 0
