# Copyright (c) Syntropy Systems
"""grainsim run command."""
from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.table import Table

from grainsim.config import load_config
from grainsim.errors import InvalidParameterError
from grainsim.pipeline import run_meta_analysis
from grainsim.plotting import save_effect_plot

if TYPE_CHECKING:
    import pandas as pd

console = Console()

TABLE_SUFFIXES = (".csv", ".json")


def _fmt(value: float | None) -> str:
    if value is None or math.isnan(value):
        return "-"
    return f"{value:+.4f}"


def summary_table(summary: pd.DataFrame, title: str) -> Table:
    """Render a per-metric effect-size summary."""
    table = Table(title=title)
    table.add_column("Metric")
    table.add_column("Mean LRR", justify="right")
    table.add_column("SD", justify="right")
    table.add_column("Defined", justify="right")
    table.add_column("Undefined", justify="right")
    table.add_column("Grain slope", justify="right")
    table.add_column("p", justify="right")

    for row in summary.itertuples(index=False):
        undefined = str(row.n_undefined)
        if row.n_undefined:
            undefined = f"[red]{undefined}[/red]"
        p_value = "-" if math.isnan(row.grain_p) else f"{row.grain_p:.3f}"
        table.add_row(
            str(row.metric),
            _fmt(row.mean_lrr),
            "-" if math.isnan(row.sd_lrr) else f"{row.sd_lrr:.4f}",
            str(row.n_defined),
            undefined,
            _fmt(row.grain_slope),
            p_value,
        )
    return table


def write_table(frame: pd.DataFrame, output: Path) -> None:
    """Write a table as CSV or JSON, chosen by file extension."""
    suffix = output.suffix.lower()
    if suffix not in TABLE_SUFFIXES:
        msg = "Output must be .csv or .json"
        raise ValueError(msg)
    output.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".json":
        _ = output.write_text(frame.to_json(orient="records", indent=2))
    else:
        frame.to_csv(output, index=False)


def run(
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a grainsim.yaml (default: nearest one, then defaults)",
    ),
    seed: int | None = typer.Option(None, "--seed", "-s", help="Root random seed"),
    studies: int | None = typer.Option(
        None, "--studies", "-n", help="Number of simulated studies"
    ),
    target: int | None = typer.Option(
        None, "--target", "-t", help="Rarefaction target (individuals)"
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write effect sizes to .csv or .json"
    ),
    plot: Path | None = typer.Option(
        None, "--plot", "-p", help="Write an effect-size plot (e.g. effects.png)"
    ),
) -> None:
    """Run a simulated meta-analysis and summarize the effect sizes.

    Example:
        grainsim run --seed 7 --studies 20 --output effects.csv --plot effects.png

    """
    if output is not None and output.suffix.lower() not in TABLE_SUFFIXES:
        console.print("[red]Output must be .csv or .json[/red]")
        raise typer.Exit(1)

    overrides: dict[str, object] = {}
    if seed is not None:
        overrides["seed"] = seed
    if studies is not None:
        overrides["n_studies"] = studies
    if target is not None:
        overrides["rarefaction_target"] = target

    try:
        config = load_config(config_file).with_overrides(overrides).validate()
    except (OSError, InvalidParameterError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from e

    try:
        result = run_meta_analysis(config)
    except InvalidParameterError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(
        f"\n[bold]{len(result.outcomes)} studies[/bold] "
        f"[dim](seed {config.seed}, {config.scale} scale, "
        f"grain {config.grain_min:g}-{config.grain_max:g})[/dim]"
    )
    console.print(f"  [dim]rarefaction target:[/dim] {result.target} individuals")
    console.print(summary_table(result.summary(), "Log-ratio effect sizes"))

    undefined = result.undefined()
    if undefined:
        console.print(f"\n[yellow]{len(undefined)} undefined effect size(s)[/yellow]")
        for effect in undefined[:10]:
            console.print(
                f"  study {effect.study_id} {effect.metric}: {effect.undefined_reason}"
            )
        if len(undefined) > 10:
            console.print(f"  [dim]... and {len(undefined) - 10} more[/dim]")

    if output is not None:
        write_table(result.table(), output)
        console.print(f"[green]Wrote effect sizes to {output}[/green]")

    if plot is not None:
        _ = save_effect_plot(result.table(), plot, result.target)
        console.print(f"[green]Wrote plot to {plot}[/green]")
