from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ratesim import __version__
from ratesim.runner.config.models import RunConfig
from ratesim.runner.run import run, run_from_config
from ratesim.runner.core import SimulationResult
from ratesim.sde.errors import SimulationError, format_error


def _print_summary(result: SimulationResult) -> None:
    cfg = result.config
    summary = result.summary
    print("\n========== Simulation Complete ==========")
    print(f"Paths: {result.ensemble.n_paths}  Steps: {cfg.steps}  T: {cfg.horizon}")
    print(f"Final median: {summary.median[-1]:.6f}")
    print(
        f"Final {100 * cfg.confidence_level:g}% band: "
        f"[{summary.lower[-1]:.6f}, {summary.upper[-1]:.6f}]"
    )
    print("=========================================\n")


# ============================================================
# Command: run
# ============================================================


def cmd_run(args):
    print(f"[ratesim] Running simulation: {args.config}")
    result = run_from_config(args.config, save_dir=args.save_dir)
    _print_summary(result)


# ============================================================
# Command: simulate
# ============================================================


def cmd_simulate(args):
    model = {
        "equilibriumType": args.equilibrium_type,
        "volatilityType": args.volatility_type,
        "alpha": args.alpha,
        "r0": args.r0,
        "T": args.horizon,
        "steps": args.steps,
        "nPaths": args.n_paths,
        "confInterval": args.conf_interval,
    }
    if args.equilibrium_type == "Dynamic":
        model["thetaExpr"] = args.theta
    else:
        model["rBar"] = args.r_bar
    if args.volatility_type == "Dynamic":
        model["sigmaExpr"] = args.sigma_fn
    else:
        model["sigma"] = args.sigma
        model["gamma"] = args.gamma

    cfg = RunConfig(
        name="cli",
        model=model,
        seeds={"global_seed": args.seed},
        execution={"n_workers": args.workers},
        save={"directory": args.save_dir, "save_report": args.report},
    )
    result = run(cfg)
    _print_summary(result)
    if args.save_dir:
        print(f"[ratesim] Results written to {Path(args.save_dir)}")


# ============================================================
# Command: version
# ============================================================


def cmd_version(args):
    print(__version__)


# ============================================================
# Main CLI
# ============================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ratesim")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------
    p_run = sub.add_parser("run", help="Run a simulation from a config file")
    p_run.add_argument("--config", required=True, help="Path to config JSON/YAML")
    p_run.add_argument(
        "--save-dir", required=False, default=None, help="Directory to save results"
    )
    p_run.set_defaults(func=cmd_run)

    # ------------------------------------------------------------------
    # simulate
    # ------------------------------------------------------------------
    p_sim = sub.add_parser("simulate", help="Run a simulation from flags")
    p_sim.add_argument(
        "--equilibrium-type", choices=["Constant", "Dynamic"], default="Constant"
    )
    p_sim.add_argument("--r-bar", type=float, default=0.05)
    p_sim.add_argument(
        "--theta", default="0.1 * sin(t)", help="Equilibrium formula of t"
    )
    p_sim.add_argument("--alpha", type=float, default=0.1)
    p_sim.add_argument("--volatility-type", choices=["CEV", "Dynamic"], default="CEV")
    p_sim.add_argument("--sigma", type=float, default=0.02)
    p_sim.add_argument("--gamma", type=float, default=0.5)
    p_sim.add_argument(
        "--sigma-fn", default="0.02 * sin(t)", help="Volatility formula of t"
    )
    p_sim.add_argument("--r0", type=float, default=0.03)
    p_sim.add_argument("--T", dest="horizon", type=float, default=1.0)
    p_sim.add_argument("--steps", type=int, default=1000)
    p_sim.add_argument("--n-paths", type=int, default=100)
    p_sim.add_argument("--conf-interval", type=float, default=0.95)
    p_sim.add_argument("--seed", type=int, default=None)
    p_sim.add_argument("--workers", type=int, default=1)
    p_sim.add_argument("--save-dir", default=None, help="Directory to save results")
    p_sim.add_argument(
        "--report", action="store_true", help="Also write an HTML report"
    )
    p_sim.set_defaults(func=cmd_simulate)

    # ------------------------------------------------------------------
    # version
    # ------------------------------------------------------------------
    p_ver = sub.add_parser("version", help="Show version")
    p_ver.set_defaults(func=cmd_version)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        args.func(args)
    except (SimulationError, ValueError, FileNotFoundError) as e:
        print(format_error(e), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
