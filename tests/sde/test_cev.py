# tests/sde/test_cev.py
import math
import threading

import numpy as np
import pytest

from ratesim.sde.errors import NumericError
from ratesim.sde.expressions import resolve_coefficients
from ratesim.sde.integrators import CEV_FLOOR, is_integer_exponent
from ratesim.sde.processes.cev import simulate_path, simulate_paths
from ratesim.sde.resolver import build_time_grid, resolve


class FixedNormals:
    """Stands in for a Generator: returns preset standard draws scaled by `scale`."""

    def __init__(self, draws):
        self.draws = np.asarray(draws, dtype=float)

    def normal(self, loc, scale, size):
        return loc + scale * self.draws[:size]


def _setup(**raw):
    cfg = resolve(raw)
    grid = build_time_grid(cfg)
    return cfg, grid, resolve_coefficients(cfg, grid)


def test_hand_applied_recursion_matches():
    cfg, grid, coeffs = _setup(
        alpha=0.1, rBar=0.05, sigma=0.02, gamma=0.5, r0=0.03, T=1, steps=4, nPaths=1
    )
    draws = [0.1, -0.2, 0.05, 0.0]
    ensemble = simulate_paths(cfg, grid, coeffs, rngs=[FixedNormals(draws)])

    dt = 0.25
    expected = [0.03]
    for z in draws:
        r = expected[-1]
        dW = math.sqrt(dt) * z
        base = max(r, CEV_FLOOR)
        r_next = r + (-0.1 * (r - 0.05) * dt) + 0.02 * base**0.5 * dW
        expected.append(max(r_next, CEV_FLOOR))

    assert ensemble.values.shape == (5, 1)
    assert ensemble.path(0).tolist() == expected
    # first step: 0.03 + 0.0005 + 0.02 * sqrt(0.03) * 0.05
    assert np.isclose(ensemble.values[1, 0], 0.030673205080757, atol=1e-12)
    # last draw is zero: only the drift moves the rate
    assert np.isclose(
        ensemble.values[4, 0] - ensemble.values[3, 0],
        -0.1 * (ensemble.values[3, 0] - 0.05) * dt,
    )


def test_degenerate_config_stays_at_r0():
    cfg, grid, coeffs = _setup(alpha=0.0, sigma=0.0, gamma=0.5, r0=0.03, steps=50, nPaths=5)
    ensemble = simulate_paths(cfg, grid, coeffs, seed=3)
    assert np.all(ensemble.values == 0.03)


def test_first_row_is_r0():
    cfg, grid, coeffs = _setup(r0=0.07, steps=20, nPaths=8)
    ensemble = simulate_paths(cfg, grid, coeffs, seed=11)
    assert np.all(ensemble.values[0] == 0.07)


def test_fractional_gamma_never_below_floor():
    cfg, grid, coeffs = _setup(
        alpha=0.0, sigma=2.0, gamma=0.5, r0=0.001, rBar=0.0, steps=200, nPaths=50
    )
    ensemble = simulate_paths(cfg, grid, coeffs, seed=5)
    assert np.all(ensemble.values >= CEV_FLOOR)
    assert np.all(np.isfinite(ensemble.values))
    # the floor is actually hit with this much noise
    assert np.any(ensemble.values == CEV_FLOOR)


@pytest.mark.parametrize("gamma", [0.0, 1.0])
def test_integer_gamma_is_not_floored(gamma):
    r0 = 0.0 if gamma == 0.0 else -0.01
    cfg, grid, coeffs = _setup(
        alpha=0.0, sigma=0.5, gamma=gamma, r0=r0, rBar=0.0, steps=100, nPaths=50
    )
    ensemble = simulate_paths(cfg, grid, coeffs, seed=9)
    assert np.any(ensemble.values < 0.0)


def test_gamma_close_to_integer_counts_as_integer():
    assert is_integer_exponent(1.0)
    assert is_integer_exponent(1.0000000001)
    assert not is_integer_exponent(0.5)
    assert not is_integer_exponent(1.001)

    cfg, grid, coeffs = _setup(
        alpha=0.0, sigma=0.5, gamma=1.0000000001, r0=-0.01, steps=10, nPaths=5
    )
    ensemble = simulate_paths(cfg, grid, coeffs, seed=2)
    assert np.all(np.isfinite(ensemble.values))
    assert np.any(ensemble.values < 0.0)


def test_dynamic_volatility_can_go_negative():
    cfg, grid, coeffs = _setup(
        alpha=0.0,
        rBar=0.0,
        volatilityType="Dynamic",
        sigmaExpr="0.5",
        r0=0.0,
        steps=100,
        nPaths=50,
    )
    ensemble = simulate_paths(cfg, grid, coeffs, seed=4)
    assert np.any(ensemble.values < 0.0)


def test_dynamic_volatility_uses_series_of_previous_point():
    cfg, grid, coeffs = _setup(
        alpha=0.0,
        volatilityType="Dynamic",
        sigmaExpr="t",
        r0=0.0,
        T=1,
        steps=2,
        nPaths=1,
    )
    path = simulate_path(cfg, grid, coeffs, FixedNormals([1.0, 1.0]))
    # sigma(0) = 0 so the first step does not move; second uses sigma(0.5)
    assert path[1] == 0.0
    assert np.isclose(path[2], 0.5 * math.sqrt(0.5))


def test_mean_reversion_toward_dynamic_equilibrium():
    cfg, grid, coeffs = _setup(
        alpha=5.0,
        sigma=0.0,
        equilibriumType="Dynamic",
        thetaExpr="0.08",
        r0=0.0,
        T=5,
        steps=500,
        nPaths=1,
    )
    ensemble = simulate_paths(cfg, grid, coeffs, seed=0)
    assert np.isclose(ensemble.values[-1, 0], 0.08, atol=1e-6)


def test_seed_reproducibility_and_worker_independence():
    cfg, grid, coeffs = _setup(steps=50, nPaths=12)
    serial = simulate_paths(cfg, grid, coeffs, seed=2024)
    again = simulate_paths(cfg, grid, coeffs, seed=2024)
    threaded = simulate_paths(cfg, grid, coeffs, seed=2024, n_workers=4)
    other = simulate_paths(cfg, grid, coeffs, seed=2025)

    assert np.array_equal(serial.values, again.values)
    assert np.array_equal(serial.values, threaded.values)
    assert not np.array_equal(serial.values, other.values)
    # paths do not share draws
    assert not np.array_equal(serial.values[:, 0], serial.values[:, 1])


def test_cancel_before_start_returns_empty_ensemble():
    cfg, grid, coeffs = _setup(steps=10, nPaths=6)
    cancel = threading.Event()
    cancel.set()
    ensemble = simulate_paths(cfg, grid, coeffs, seed=1, cancel=cancel)
    assert ensemble.cancelled
    assert ensemble.values.shape == (11, 0)


class CancelAfter:
    """Generator wrapper that raises the cancel flag once its path has drawn."""

    def __init__(self, rng, cancel):
        self.rng = rng
        self.cancel = cancel

    def normal(self, loc, scale, size):
        out = self.rng.normal(loc, scale, size=size)
        self.cancel.set()
        return out


def test_cancel_mid_run_keeps_only_whole_paths():
    cfg, grid, coeffs = _setup(steps=10, nPaths=5)
    cancel = threading.Event()
    rngs = [np.random.default_rng(j) for j in range(5)]
    rngs[1] = CancelAfter(rngs[1], cancel)

    ensemble = simulate_paths(cfg, grid, coeffs, rngs=rngs, cancel=cancel)
    assert ensemble.cancelled
    assert ensemble.n_paths == 2
    assert np.all(np.isfinite(ensemble.values))


def test_rng_count_must_match_paths():
    cfg, grid, coeffs = _setup(steps=10, nPaths=3)
    with pytest.raises(ValueError):
        simulate_paths(cfg, grid, coeffs, rngs=[np.random.default_rng(0)])


def test_non_finite_state_raises_numeric_error():
    cfg, grid, coeffs = _setup(
        alpha=0.0, sigma=1e300, gamma=2.0, r0=1e10, steps=5, nPaths=2
    )
    with pytest.raises(NumericError):
        simulate_paths(cfg, grid, coeffs, seed=1)


def test_negative_integer_gamma_at_zero_raises_numeric_error():
    cfg, grid, coeffs = _setup(sigma=0.1, gamma=-1.0, r0=0.0, steps=5, nPaths=1)
    with pytest.raises(NumericError) as exc:
        simulate_paths(cfg, grid, coeffs, seed=1, n_workers=2)
    assert exc.value.step == 1
