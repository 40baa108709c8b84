# src/ratesim/reporting/export.py
from __future__ import annotations

from pathlib import Path

import pandas as pd

from ratesim.sde.processes.cev import PathEnsemble
from ratesim.sde.statistics import SummarySeries

PATHS_FILENAME = "simulated_paths.csv"
SUMMARY_FILENAME = "summary.csv"

SUMMARY_COLUMNS = ["time", "median", "p_lower", "p_upper"]


def paths_table(ensemble: PathEnsemble) -> pd.DataFrame:
    """One row per grid point: time, path_1, ..., path_n."""
    return ensemble.to_frame()


def summary_table(summary: SummarySeries) -> pd.DataFrame:
    """Rows {time, median, p_lower, p_upper} for the chart renderer."""
    return summary.to_frame()[SUMMARY_COLUMNS]


def write_paths_csv(ensemble: PathEnsemble, path: str | Path) -> Path:
    """
    Comma-delimited, '.' decimal separator, header row, no index column.

    Floats are written with full round-trip precision.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    paths_table(ensemble).to_csv(path, index=False)
    return path


def write_summary_csv(summary: SummarySeries, path: str | Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    summary_table(summary).to_csv(path, index=False)
    return path


def read_paths_csv(path: str | Path) -> PathEnsemble:
    """Parse a simulated-paths table back into an ensemble."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Paths file does not exist: {path}")

    df = pd.read_csv(path, float_precision="round_trip")
    if "time" not in df.columns:
        raise ValueError(
            f"Paths CSV missing 'time' column. Present: {df.columns.tolist()}"
        )
    path_cols = [c for c in df.columns if c != "time"]
    bad = [c for c in path_cols if not c.startswith("path_")]
    if bad:
        raise ValueError(f"Unexpected columns in paths CSV: {bad}")

    return PathEnsemble(
        times=df["time"].to_numpy(dtype=float),
        values=df[path_cols].to_numpy(dtype=float),
    )
