# Copyright (c) Syntropy Systems
"""grainsim rarefy command."""
from __future__ import annotations

from pathlib import Path

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from grainsim.errors import InvalidParameterError, RarefactionError
from grainsim.rarefaction import rarefy as rarefy_counts

console = Console()


def rarefy(
    counts_file: Path = typer.Argument(
        ...,
        help="CSV of sites (rows) by species (columns) counts",
        exists=True,
        dir_okay=False,
    ),
    target: int = typer.Option(
        ..., "--target", "-t", help="Number of individuals to rarefy to"
    ),
    labels: bool = typer.Option(
        True,
        "--labels/--no-labels",
        help="Treat the first column as site labels",
    ),
) -> None:
    r"""Expected richness of each site at a common number of individuals.

    Sites with fewer individuals than the target are reported and make the
    command exit with status 1; they are never extrapolated.

    Example counts.csv:

    \b
        site,sp1,sp2,sp3
        a,10,5,0
        b,3,3,3
    """
    try:
        frame = pd.read_csv(counts_file, index_col=0 if labels else None)
        frame = frame.apply(pd.to_numeric)
        if (frame % 1 != 0).any().any():
            msg = "counts must be whole numbers of individuals"
            raise ValueError(msg)
        frame = frame.astype("int64")
    except (OSError, ValueError) as e:
        console.print(f"[red]Error reading counts:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"Rarefied richness at {target} individuals")
    table.add_column("Site")
    table.add_column("N", justify="right")
    table.add_column("S", justify="right")
    table.add_column("E[S]", justify="right")

    failures = 0
    for site, row in frame.iterrows():
        counts = row.to_numpy()
        observed = int((counts > 0).sum())
        try:
            value = f"{rarefy_counts(counts, target):.4f}"
        except RarefactionError as e:
            failures += 1
            value = f"[red]undefined: {e.available} < {e.target}[/red]"
        except InvalidParameterError as e:
            console.print(f"[red]Error:[/red] site {site}: {e}")
            raise typer.Exit(1) from e
        table.add_row(str(site), str(int(counts.sum())), str(observed), value)

    console.print(table)

    if failures:
        console.print(
            f"[red]{failures} site(s) have fewer than {target} individuals[/red]"
        )
        raise typer.Exit(1)
