# src/ratesim/sde/schemas.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class EquilibriumType(str, Enum):
    """How the long-term equilibrium level is specified."""

    CONSTANT = "Constant"
    DYNAMIC = "Dynamic"


class VolatilityType(str, Enum):
    """How the diffusion coefficient is specified."""

    CEV = "CEV"
    DYNAMIC = "Dynamic"


class ModelConfig(BaseModel):
    """
    Generalized CEV short-rate model with optional time-dependent terms:

        dr = -alpha (r - theta(t)) dt + sigma r^gamma dW      (CEV)
        dr = -alpha (r - theta(t)) dt + sigma(t) dW           (Dynamic)

    theta(t) is the constant r_bar unless equilibrium_type is Dynamic.
    Only the fields of the active representation are read.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="forbid",
    )

    equilibrium_type: EquilibriumType = Field(
        default=EquilibriumType.CONSTANT,
        validation_alias=AliasChoices("equilibrium_type", "equilibriumType"),
    )
    r_bar: float = Field(
        default=0.05,
        validation_alias=AliasChoices("r_bar", "rBar"),
        description="Constant long-term equilibrium.",
    )
    theta_expr: Optional[str] = Field(
        default="0.1 * sin(t)",
        validation_alias=AliasChoices("theta_expr", "thetaExpr", "thetaFunction"),
        description="Equilibrium as a formula of t.",
    )
    alpha: float = Field(default=0.1, ge=0.0, description="Speed of mean reversion.")

    volatility_type: VolatilityType = Field(
        default=VolatilityType.CEV,
        validation_alias=AliasChoices("volatility_type", "volatilityType"),
    )
    sigma: float = Field(default=0.02, description="CEV volatility scale.")
    gamma: float = Field(default=0.5, description="Elasticity of volatility.")
    sigma_expr: Optional[str] = Field(
        default="0.02 * sin(t)",
        validation_alias=AliasChoices("sigma_expr", "sigmaExpr", "sigmaFunction"),
        description="Volatility as a formula of t.",
    )

    r0: float = Field(default=0.03, description="Initial rate.")
    horizon: float = Field(
        default=1.0,
        gt=0.0,
        validation_alias=AliasChoices("horizon", "T"),
        description="Time horizon in years.",
    )
    steps: int = Field(default=1000, ge=1)
    n_paths: int = Field(
        default=100, ge=1, validation_alias=AliasChoices("n_paths", "nPaths")
    )
    confidence_level: float = Field(
        default=0.95,
        gt=0.0,
        lt=1.0,
        validation_alias=AliasChoices(
            "confidence_level", "confidenceLevel", "confInterval"
        ),
    )

    @property
    def dt(self) -> float:
        return self.horizon / self.steps

    @property
    def lower_quantile(self) -> float:
        return (1.0 - self.confidence_level) / 2.0

    @property
    def upper_quantile(self) -> float:
        return 1.0 - self.lower_quantile


@dataclass(frozen=True)
class TimeGrid:
    """Uniform grid 0 = t_0 < ... < t_steps = T."""

    times: np.ndarray
    dt: float

    @property
    def n_steps(self) -> int:
        return self.times.size - 1


@dataclass(frozen=True)
class ResolvedCoefficients:
    """
    Time-dependent coefficients evaluated once on the grid.

    theta: equilibrium level per grid point (length steps + 1)
    sigma_series: non-negative volatility per grid point, only for
        VolatilityType.DYNAMIC; None when the CEV scalars are used.
    """

    theta: np.ndarray
    sigma_series: Optional[np.ndarray] = None
