# src/ratesim/sde/processes/cev.py
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from ratesim.sde.errors import NumericError
from ratesim.sde.integrators import (
    CEV_FLOOR,
    euler_maruyama_step,
    is_integer_exponent,
    path_generators,
    wiener_increments,
)
from ratesim.sde.schemas import (
    ModelConfig,
    ResolvedCoefficients,
    TimeGrid,
    VolatilityType,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathEnsemble:
    """
    Simulated paths, values[time_index, path_index].

    Only fully integrated paths are stored. cancelled is True when the run
    was stopped before every requested path was produced.
    """

    times: np.ndarray
    values: np.ndarray
    cancelled: bool = False

    @property
    def n_paths(self) -> int:
        return self.values.shape[1]

    @property
    def n_steps(self) -> int:
        return self.values.shape[0] - 1

    def path(self, j: int) -> np.ndarray:
        return self.values[:, j]

    def to_frame(self) -> pd.DataFrame:
        """Columns time, path_1, ..., path_n; one row per grid point."""
        cols = {"time": self.times}
        for j in range(self.n_paths):
            cols[f"path_{j + 1}"] = self.values[:, j]
        return pd.DataFrame(cols)


def simulate_path(
    cfg: ModelConfig,
    grid: TimeGrid,
    coeffs: ResolvedCoefficients,
    rng,
    path_index: int | None = None,
) -> np.ndarray:
    """
    Euler-Maruyama integration of one path:

        r_i = r_{i-1} - alpha (r_{i-1} - theta_{i-1}) dt + b_{i-1} dW_i

    with b = sigma * base^gamma for CEV and b = sigma(t_{i-1}) for dynamic
    volatility. For a fractional gamma, base = max(r_{i-1}, eps) and the
    new state is floored at eps as well; integer exponents are never
    floored.
    """
    n_steps = grid.n_steps
    dt = grid.dt
    alpha = cfg.alpha
    theta = coeffs.theta.tolist()
    dW = wiener_increments(rng, n_steps, dt)

    out = np.empty(n_steps + 1, dtype=float)
    x = float(cfg.r0)
    out[0] = x

    cev = cfg.volatility_type is VolatilityType.CEV
    if cev:
        sigma = float(cfg.sigma)
        fractional = not is_integer_exponent(cfg.gamma)
        # integer exponents are applied as ints so negative bases stay real
        exponent = float(cfg.gamma) if fractional else int(round(cfg.gamma))
    else:
        sigma_series = coeffs.sigma_series.tolist()

    for i in range(1, n_steps + 1):
        a = -alpha * (x - theta[i - 1])
        try:
            if cev:
                base = max(x, CEV_FLOOR) if fractional else x
                b = sigma * base**exponent
            else:
                b = sigma_series[i - 1]
            x = euler_maruyama_step(x, a, b, dt, dW[i - 1])
        except (ZeroDivisionError, OverflowError) as e:
            raise NumericError(
                f"Numeric failure at step {i}"
                + (f" of path {path_index + 1}" if path_index is not None else "")
                + f": {e}",
                path_index=path_index,
                step=i,
            ) from e

        if cev and fractional:
            x = max(x, CEV_FLOOR)
        if not math.isfinite(x):
            raise NumericError(
                f"Simulated rate became non-finite ({x}) at step {i}"
                + (f" of path {path_index + 1}" if path_index is not None else ""),
                path_index=path_index,
                step=i,
            )
        out[i] = x

    return out


def simulate_paths(
    cfg: ModelConfig,
    grid: TimeGrid,
    coeffs: ResolvedCoefficients,
    *,
    seed: int | None = None,
    rngs: Optional[Sequence] = None,
    n_workers: int = 1,
    cancel: threading.Event | None = None,
) -> PathEnsemble:
    """
    Simulate cfg.n_paths independent paths.

    Each path draws from its own generator (rngs[j], or spawned from seed),
    so the ensemble does not depend on n_workers. The cancel event is
    checked before each path starts; a cancelled run keeps the paths
    already completed, in path order.
    """
    n_paths = cfg.n_paths
    if rngs is None:
        rngs = path_generators(n_paths, seed)
    elif len(rngs) != n_paths:
        raise ValueError(f"expected {n_paths} generators, got {len(rngs)}")

    LOGGER.info(
        "Simulating %d paths x %d steps (workers=%d)", n_paths, grid.n_steps, n_workers
    )

    def _cancelled() -> bool:
        return cancel is not None and cancel.is_set()

    completed: Dict[int, np.ndarray] = {}

    if n_workers <= 1:
        for j in range(n_paths):
            if _cancelled():
                break
            completed[j] = simulate_path(cfg, grid, coeffs, rngs[j], path_index=j)
    else:

        def _task(j: int):
            if _cancelled():
                return j, None
            return j, simulate_path(cfg, grid, coeffs, rngs[j], path_index=j)

        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            futures = [pool.submit(_task, j) for j in range(n_paths)]
            try:
                for fut in as_completed(futures):
                    j, path = fut.result()
                    if path is not None:
                        completed[j] = path
            except NumericError:
                for fut in futures:
                    fut.cancel()
                raise

    cancelled = len(completed) < n_paths
    if cancelled:
        LOGGER.warning(
            "Simulation cancelled after %d of %d paths", len(completed), n_paths
        )

    if completed:
        values = np.column_stack([completed[j] for j in sorted(completed)])
    else:
        values = np.empty((grid.n_steps + 1, 0), dtype=float)

    return PathEnsemble(times=grid.times, values=values, cancelled=cancelled)
