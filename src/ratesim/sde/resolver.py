# src/ratesim/sde/resolver.py
from __future__ import annotations

import logging
from typing import Any, Mapping

import numpy as np
from pydantic import ValidationError

from ratesim.sde.errors import ConfigError
from ratesim.sde.schemas import (
    EquilibriumType,
    ModelConfig,
    TimeGrid,
    VolatilityType,
)

LOGGER = logging.getLogger(__name__)

# raw control names used in error messages, keyed by field name
_DISPLAY_NAMES = {
    "equilibrium_type": "equilibriumType",
    "r_bar": "rBar",
    "theta_expr": "thetaExpr",
    "volatility_type": "volatilityType",
    "sigma_expr": "sigmaExpr",
    "horizon": "T",
    "n_paths": "nPaths",
    "confidence_level": "confInterval",
}


def _field_from_loc(loc: tuple) -> str:
    if not loc:
        return "<config>"
    name = str(loc[0])
    return _DISPLAY_NAMES.get(name, name)


def resolve(raw_inputs: Mapping[str, Any] | ModelConfig) -> ModelConfig:
    """
    Validate raw control-panel parameters into an immutable ModelConfig.

    Accepts either the raw control names (equilibriumType, rBar, nPaths,
    confInterval, ...) or the field names. Raises ConfigError naming the
    first offending field; nothing is simulated for a rejected config.
    """
    if isinstance(raw_inputs, ModelConfig):
        cfg = raw_inputs
    else:
        try:
            cfg = ModelConfig.model_validate(dict(raw_inputs))
        except ValidationError as e:
            first = e.errors()[0]
            raise ConfigError(_field_from_loc(first["loc"]), first["msg"]) from e

    if cfg.volatility_type is VolatilityType.CEV:
        if cfg.sigma < 0:
            raise ConfigError("sigma", "Volatility must be non-negative")
    elif not (cfg.sigma_expr or "").strip():
        raise ConfigError("sigmaExpr", "a volatility function of t is required")

    if cfg.equilibrium_type is EquilibriumType.DYNAMIC and not (
        cfg.theta_expr or ""
    ).strip():
        raise ConfigError("thetaExpr", "an equilibrium function of t is required")

    LOGGER.debug(
        "Resolved config: equilibrium=%s volatility=%s steps=%d n_paths=%d",
        cfg.equilibrium_type.value,
        cfg.volatility_type.value,
        cfg.steps,
        cfg.n_paths,
    )
    return cfg


def build_time_grid(cfg: ModelConfig) -> TimeGrid:
    """Uniform grid with steps + 1 points; the last point is exactly T."""
    times = np.linspace(0.0, cfg.horizon, cfg.steps + 1)
    times.setflags(write=False)
    return TimeGrid(times=times, dt=cfg.dt)
