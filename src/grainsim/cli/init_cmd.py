# Copyright (c) Syntropy Systems
"""grainsim init command."""

from pathlib import Path

import typer
import yaml
from rich.console import Console

from grainsim.config import CONFIG_FILENAME, SimulationConfig

console = Console()


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
) -> None:
    """Write a default grainsim.yaml.

    The file lists every simulation parameter with its default value.
    """
    target = path.resolve()
    config_path = target / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {config_path}")
        return

    target.mkdir(parents=True, exist_ok=True)
    with config_path.open("w") as f:
        yaml.safe_dump(SimulationConfig().to_dict(), f, default_flow_style=False)

    console.print(f"[green]Initialized grainsim config:[/green] {config_path}")
