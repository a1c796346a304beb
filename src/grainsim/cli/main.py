# Copyright (c) Syntropy Systems
"""Main CLI entry point for grainsim."""

import logging

import typer
from rich.logging import RichHandler

from grainsim.cli.init_cmd import init
from grainsim.cli.rarefy import rarefy
from grainsim.cli.run import run
from grainsim.cli.sweep import sweep

app = typer.Typer(
    name="grainsim",
    help=(
        "Simulate how sampling grain confounds biodiversity meta-analyses, "
        "and how rarefaction standardizes effect sizes."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


# Register commands
_ = app.command()(init)
_ = app.command()(run)
_ = app.command()(rarefy)
_ = app.command()(sweep)


if __name__ == "__main__":
    app()
