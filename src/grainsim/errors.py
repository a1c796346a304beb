# Copyright (c) Syntropy Systems
"""Exception types raised by grainsim."""
from __future__ import annotations


class GrainsimError(Exception):
    """Base class for grainsim errors."""


class InvalidParameterError(GrainsimError, ValueError):
    """A simulation parameter is out of range."""


class RarefactionError(GrainsimError, ValueError):
    """Rarefaction target exceeds the available individuals."""

    def __init__(self, target: int, available: int, site: int | None = None) -> None:
        self.target = target
        self.available = available
        self.site = site
        where = f"site {site}" if site is not None else "sample"
        msg = (
            f"Rarefaction target {target} exceeds {where} abundance "
            f"{available}; refusing to extrapolate"
        )
        super().__init__(msg)


class UndefinedEffectSizeError(GrainsimError, ArithmeticError):
    """Log-ratio effect size is undefined for the given operands."""
