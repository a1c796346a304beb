# Copyright (c) Syntropy Systems
"""Pydantic models for simulated studies."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from .base import FrozenModel

Condition = Literal["control", "treatment"]
CONDITIONS: tuple[Condition, Condition] = ("control", "treatment")


class ConditionSpec(FrozenModel):
    """Community parameters for one condition of a study."""

    pool_size: int = Field(gt=0)
    n_individuals: int = Field(gt=0)


class Study(FrozenModel):
    """A single simulated study.

    Each study samples its control and treatment communities with the same
    grain. The seed is an independent child of the run seed, so studies can
    be evaluated in any order.
    """

    study_id: int = Field(ge=0)
    grain: float = Field(gt=0)
    control: ConditionSpec
    treatment: ConditionSpec
    seed: int = Field(ge=0)

    @field_validator("grain")
    @classmethod
    def _grain_fits_extent(cls, value: float) -> float:
        if value > 1.0:
            msg = f"grain {value} exceeds the unit extent"
            raise ValueError(msg)
        return value

    def condition(self, name: Condition) -> ConditionSpec:
        """Return the parameters for a named condition."""
        if name == "control":
            return self.control
        return self.treatment
