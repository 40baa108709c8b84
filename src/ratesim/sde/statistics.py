# src/ratesim/sde/statistics.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from ratesim.sde.processes.cev import PathEnsemble


@dataclass(frozen=True)
class SummarySeries:
    """Cross-sectional median and quantile band per grid point."""

    times: np.ndarray
    median: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    confidence_level: float

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {
                "time": self.times,
                "median": self.median,
                "p_lower": self.lower,
                "p_upper": self.upper,
            }
        )


def aggregate(ensemble: PathEnsemble, confidence_level: float) -> SummarySeries:
    """
    Median and the (1-c)/2, 1-(1-c)/2 quantiles of each time slice.

    Quantiles use linear interpolation between order statistics (the
    usual "type 7" estimator). The ensemble is not modified.
    """
    if not 0.0 < confidence_level < 1.0:
        raise ValueError("confidence_level must lie strictly between 0 and 1")
    if ensemble.n_paths == 0:
        raise ValueError("cannot aggregate an empty ensemble")

    lower_q = (1.0 - confidence_level) / 2.0
    upper_q = 1.0 - lower_q
    values = ensemble.values

    median = np.median(values, axis=1)
    lower, upper = np.quantile(values, [lower_q, upper_q], axis=1, method="linear")

    return SummarySeries(
        times=ensemble.times,
        median=median,
        lower=lower,
        upper=upper,
        confidence_level=confidence_level,
    )
