from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from ratesim.sde.expressions import resolve_coefficients
from ratesim.sde.processes.cev import PathEnsemble, simulate_paths
from ratesim.sde.resolver import build_time_grid, resolve
from ratesim.sde.schemas import ModelConfig, ResolvedCoefficients, TimeGrid
from ratesim.sde.statistics import SummarySeries, aggregate

LOGGER = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Everything produced by one simulation request."""

    config: ModelConfig
    grid: TimeGrid
    coefficients: ResolvedCoefficients
    ensemble: PathEnsemble
    summary: Optional[SummarySeries]

    @property
    def cancelled(self) -> bool:
        return self.ensemble.cancelled


def simulate(
    config: ModelConfig | Mapping[str, Any],
    *,
    seed: int | None = None,
    rngs: Optional[Sequence] = None,
    n_workers: int = 1,
    cancel: threading.Event | None = None,
) -> SimulationResult:
    """
    Resolve, evaluate, integrate and aggregate one request.

    ConfigError and EvaluationError are raised before any path is
    generated; NumericError aborts the run. A cancelled run returns the
    completed paths and no summary if none completed.
    """
    cfg = resolve(config)
    grid = build_time_grid(cfg)
    coeffs = resolve_coefficients(cfg, grid)

    ensemble = simulate_paths(
        cfg, grid, coeffs, seed=seed, rngs=rngs, n_workers=n_workers, cancel=cancel
    )

    summary = aggregate(ensemble, cfg.confidence_level) if ensemble.n_paths else None

    LOGGER.info(
        "Completed simulation; paths=%d; final median=%s",
        ensemble.n_paths,
        f"{summary.median[-1]:.6f}" if summary is not None else "n/a",
    )

    return SimulationResult(
        config=cfg,
        grid=grid,
        coefficients=coeffs,
        ensemble=ensemble,
        summary=summary,
    )
