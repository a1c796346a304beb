# Copyright (c) Syntropy Systems
"""grainsim sweep command."""
from __future__ import annotations

import math
from pathlib import Path

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from grainsim.cli.run import TABLE_SUFFIXES, write_table
from grainsim.config import load_config
from grainsim.errors import InvalidParameterError
from grainsim.pipeline import grain_dependence_reduction, run_meta_analysis
from grainsim.sweep import SweepConfig, generate_sweep_points

console = Console()


def _cell(value: float) -> str:
    return "-" if math.isnan(value) else f"{value:+.4f}"


def sweep(
    config_file: Path = typer.Argument(
        ...,
        help="Path to sweep configuration YAML file",
        exists=True,
    ),
    base: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Base grainsim.yaml every sweep point starts from",
    ),
    prefix: str | None = typer.Option(
        None,
        "--prefix",
        "-p",
        help="Prefix for point names (overrides name in config)",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Write the sweep results to .csv or .json"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Preview sweep points without running them",
    ),
) -> None:
    r"""Run a simulated meta-analysis for every point of a parameter sweep.

    Example sweep.yaml:

    \b
        name: grain-sweep
        method: grid
        base:
          n_studies: 10
        parameters:
          grain_max:
            values: [0.02, 0.05, 0.1]
          sigma:
            values: [0.5, 1.0]
    """
    if output is not None and output.suffix.lower() not in TABLE_SUFFIXES:
        console.print("[red]Output must be .csv or .json[/red]")
        raise typer.Exit(1)

    try:
        sweep_config = SweepConfig.from_yaml(config_file)
        base_config = load_config(base) if base is not None else None
    except (OSError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from e

    try:
        points = generate_sweep_points(sweep_config, prefix, base_config)
    except ValueError as e:
        console.print(f"[red]Error generating sweep:[/red] {e}")
        raise typer.Exit(1) from e

    if not points:
        console.print("[yellow]No points generated from sweep config[/yellow]")
        return

    table = Table(title=f"Sweep: {prefix or sweep_config.name or 'unnamed'}")
    table.add_column("#", style="dim")
    table.add_column("Name")
    table.add_column("Parameters")

    for i, point in enumerate(points):
        param_str = ", ".join(f"{k}={v}" for k, v in point.overrides.items())
        table.add_row(str(i), point.name, param_str)

    console.print(table)
    console.print(f"\n[bold]{len(points)} points[/bold] in sweep")

    if dry_run:
        console.print("\n[yellow]Dry run - nothing simulated[/yellow]")
        return

    results = Table(title="Richness effect sizes per sweep point")
    results.add_column("Name")
    results.add_column("Target", justify="right")
    results.add_column("Raw LRR", justify="right")
    results.add_column("Rarefied LRR", justify="right")
    results.add_column("Raw slope", justify="right")
    results.add_column("Rarefied slope", justify="right")
    results.add_column("Undefined", justify="right")

    rows: list[dict[str, object]] = []
    for point in points:
        try:
            result = run_meta_analysis(point.config)
        except InvalidParameterError as e:
            console.print(f"[red]Error in {point.name}:[/red] {e}")
            raise typer.Exit(1) from e

        summary = result.summary()
        by_metric = summary.set_index("metric")
        raw_lrr = float(by_metric.loc["richness", "mean_lrr"])
        rarefied_lrr = float(by_metric.loc["rarefied_richness", "mean_lrr"])
        raw_slope = float(by_metric.loc["richness", "grain_slope"])
        rarefied_slope = float(by_metric.loc["rarefied_richness", "grain_slope"])
        n_undefined = len(result.undefined())

        results.add_row(
            point.name,
            str(result.target),
            _cell(raw_lrr),
            _cell(rarefied_lrr),
            _cell(raw_slope),
            _cell(rarefied_slope),
            str(n_undefined),
        )
        rows.append(
            {
                "name": point.name,
                **point.overrides,
                "target": result.target,
                "richness_lrr": raw_lrr,
                "rarefied_lrr": rarefied_lrr,
                "richness_slope": raw_slope,
                "rarefied_slope": rarefied_slope,
                "slope_reduction": grain_dependence_reduction(summary),
                "n_undefined": n_undefined,
            }
        )

    console.print(results)
    console.print(f"\n[green]Completed {len(rows)} sweep points[/green]")

    if output is not None:
        write_table(pd.DataFrame(rows), output)
        console.print(f"[green]Wrote sweep results to {output}[/green]")
