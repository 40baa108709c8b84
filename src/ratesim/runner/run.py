from __future__ import annotations

import logging
from pathlib import Path

from ratesim.reporting.export import (
    PATHS_FILENAME,
    SUMMARY_FILENAME,
    write_paths_csv,
    write_summary_csv,
)
from ratesim.reporting.html_report import generate_html_report
from ratesim.runner.config.loader import load_config
from ratesim.runner.config.models import RunConfig
from ratesim.runner.core import SimulationResult, simulate
from ratesim.sde.errors import CancelledRunError

LOGGER = logging.getLogger(__name__)

REPORT_FILENAME = "report.html"


# ======================================================================
# Main entrypoint
# ======================================================================


def run_from_config(
    path: str | Path,
    save_dir: str | Path | None = None,
) -> SimulationResult:
    LOGGER.info("Loading config: %s", path)
    cfg = load_config(path)

    if save_dir is not None:
        cfg.save.directory = str(save_dir)

    return run(cfg)


def run(cfg: RunConfig) -> SimulationResult:
    LOGGER.info("Running simulation '%s'…", cfg.name)

    result = simulate(
        cfg.model,
        seed=cfg.seeds.global_seed,
        n_workers=cfg.execution.n_workers,
    )

    if cfg.save.directory:
        persist_results(cfg, result)

    return result


# ======================================================================
# Save outputs
# ======================================================================


def persist_results(cfg: RunConfig, result: SimulationResult) -> None:
    """Write the requested tables; a cancelled run is never written."""
    if result.cancelled:
        raise CancelledRunError("Refusing to persist a cancelled simulation")

    out_dir = Path(cfg.save.directory)
    out_dir.mkdir(parents=True, exist_ok=True)

    LOGGER.info("Saving results to: %s", out_dir)

    if cfg.save.save_paths:
        write_paths_csv(result.ensemble, out_dir / PATHS_FILENAME)

    if cfg.save.save_summary:
        write_summary_csv(result.summary, out_dir / SUMMARY_FILENAME)

    if cfg.save.save_report:
        generate_html_report(result, out_dir / REPORT_FILENAME)
