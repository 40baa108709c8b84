# tests/sde/test_resolver.py
import numpy as np
import pytest

from ratesim.sde.errors import ConfigError
from ratesim.sde.resolver import build_time_grid, resolve
from ratesim.sde.schemas import EquilibriumType, ModelConfig, VolatilityType


def _raw(**overrides):
    raw = {
        "equilibriumType": "Constant",
        "rBar": 0.05,
        "alpha": 0.1,
        "volatilityType": "CEV",
        "sigma": 0.02,
        "gamma": 0.5,
        "r0": 0.03,
        "T": 1,
        "steps": 4,
        "nPaths": 10,
        "confInterval": 0.95,
    }
    raw.update(overrides)
    return raw


def test_resolve_accepts_control_names():
    cfg = resolve(_raw())
    assert isinstance(cfg, ModelConfig)
    assert cfg.equilibrium_type is EquilibriumType.CONSTANT
    assert cfg.volatility_type is VolatilityType.CEV
    assert cfg.horizon == 1.0
    assert cfg.n_paths == 10
    assert cfg.confidence_level == 0.95
    assert np.isclose(cfg.dt, 0.25)
    assert np.isclose(cfg.lower_quantile, 0.025)
    assert np.isclose(cfg.upper_quantile, 0.975)


def test_resolve_accepts_function_suffixed_names():
    cfg = resolve(
        _raw(
            equilibriumType="Dynamic",
            thetaFunction="0.05 + 0.01*t",
            volatilityType="Dynamic",
            sigmaFunction="0.02*exp(-t)",
        )
    )
    assert cfg.theta_expr == "0.05 + 0.01*t"
    assert cfg.sigma_expr == "0.02*exp(-t)"


def test_config_is_immutable():
    cfg = resolve(_raw())
    with pytest.raises(Exception):
        cfg.alpha = 1.0


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"steps": 0}, "steps"),
        ({"nPaths": 0}, "nPaths"),
        ({"T": 0.0}, "T"),
        ({"T": -1.0}, "T"),
        ({"confInterval": 1.0}, "confInterval"),
        ({"confInterval": 0.0}, "confInterval"),
        ({"sigma": -0.01}, "sigma"),
        ({"alpha": -0.1}, "alpha"),
        ({"r0": float("nan")}, "r0"),
        ({"equilibriumType": "Sometimes"}, "equilibriumType"),
    ],
)
def test_invalid_inputs_are_rejected(overrides, field):
    with pytest.raises(ConfigError) as exc:
        resolve(_raw(**overrides))
    assert exc.value.field == field
    assert field in str(exc.value)


@pytest.mark.parametrize(
    "extra, field",
    [
        ({"conf_interval": 0.9}, "conf_interval"),
        ({"nPath": 5}, "nPath"),
        ({"sigmaFn": "0.01"}, "sigmaFn"),
    ],
)
def test_unknown_controls_are_rejected(extra, field):
    with pytest.raises(ConfigError) as exc:
        resolve(_raw(**extra))
    assert exc.value.field == field


def test_negative_sigma_ignored_for_dynamic_volatility():
    cfg = resolve(_raw(volatilityType="Dynamic", sigma=-1.0, sigmaExpr="0.01"))
    assert cfg.volatility_type is VolatilityType.DYNAMIC


def test_dynamic_modes_require_an_expression():
    with pytest.raises(ConfigError) as exc:
        resolve(_raw(equilibriumType="Dynamic", thetaExpr="   "))
    assert exc.value.field == "thetaExpr"

    with pytest.raises(ConfigError) as exc:
        resolve(_raw(volatilityType="Dynamic", sigmaExpr=""))
    assert exc.value.field == "sigmaExpr"


def test_time_grid():
    cfg = resolve(_raw(T=2.0, steps=8))
    grid = build_time_grid(cfg)
    assert grid.times.shape == (9,)
    assert grid.times[0] == 0.0
    assert grid.times[-1] == 2.0
    assert grid.n_steps == 8
    assert np.allclose(np.diff(grid.times), 0.25)
    assert not grid.times.flags.writeable
