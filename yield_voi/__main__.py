"""
Entry point for the Yield Strength VoI Analyzer.

Usage:
    python -m yield_voi MEASUREMENTS.csv [--config cfg.json] [--output DIR]
    python -m yield_voi --example DIR
"""

import argparse
import importlib
import os
import sys
from typing import List, Optional

from . import APP_NAME, APP_VERSION
from .constants import PARALLEL_BACKENDS

REQUIRED_PACKAGES = {
    'numpy': 'numpy',
    'scipy': 'scipy',
    'matplotlib': 'matplotlib',
}


def _check_dependencies():
    """Verify required packages are installed."""
    missing = []
    for import_name, pip_name in REQUIRED_PACKAGES.items():
        try:
            importlib.import_module(import_name)
        except ImportError:
            missing.append(pip_name)
    if missing:
        print(
            f"Missing required packages: {', '.join(missing)}\n"
            f"Install with: pip install {' '.join(missing)}",
            file=sys.stderr,
        )
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="yield_voi",
        description=f"{APP_NAME} v{APP_VERSION}",
    )
    p.add_argument("measurements", nargs="?",
                   help="CSV file with id and yield_MPa columns")
    p.add_argument("--config", help="JSON settings file")
    p.add_argument("--output", default="yield_voi_output",
                   help="Directory for tables, figures and the audit log")
    p.add_argument("--seed", type=int, help="Override the master seed")
    p.add_argument("--workers", type=int, help="Pool size for chains and EVI batches")
    p.add_argument("--backend", choices=PARALLEL_BACKENDS,
                   help="Run chains and EVI batches in processes or threads")
    p.add_argument("--cache", help="Directory for cached sampling results")
    p.add_argument("--quick", action="store_true",
                   help="Reduced sampling effort for a fast smoke run")
    p.add_argument("--no-figures", action="store_true",
                   help="Skip rendering PNG figures")
    p.add_argument("--example", metavar="DIR",
                   help="Write an example measurement CSV into DIR and exit")
    return p


def _progress(stage: str, done: int, total: int) -> None:
    print(f"\r  {stage}: {done}/{total}", end="" if done < total else "\n",
          file=sys.stderr, flush=True)


def _print_summary(results) -> None:
    s = results.summary
    print(f"{APP_NAME} v{APP_VERSION}")
    print(f"  Measurements: N={s.n}, mean={s.mean:.1f} MPa, sd={s.std:.1f} MPa")
    print(f"  Normal MLE:   mean={results.mle.mean:.1f}, std={results.mle.std:.1f}")
    for name, (lo, hi) in results.bootstrap_ci.items():
        print(f"    {100 * results.config.confidence_level:.0f}% CI {name}: "
              f"[{lo:.1f}, {hi:.1f}]")
    print("  Expected cost by action:")
    for o in results.baseline.sorted():
        print(f"    {o.action:<22} p_fail={o.failure_probability:.4f}  "
              f"E[cost]={o.expected_cost:>12,.0f}")
    print(f"  Optimal action now: {results.baseline.optimal.action}")
    print(f"  EVPI: {results.evpi.evpi:,.0f}")
    for p in results.sweep:
        print(f"  EVI (test sd {p.measurement_precision:>5g} MPa): "
              f"{p.value_of_information:>12,.0f} ± {p.monte_carlo_standard_error:,.0f}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the analysis from the command line."""
    _check_dependencies()

    from .analysis import run_analysis
    from .config import AnalysisConfig, load_config, save_config
    from .csv_parser import load_measurements
    from .errors import YieldVoIError
    from .example_data import generate_example_csv

    args = build_parser().parse_args(argv)

    if args.example:
        path = generate_example_csv(args.example)
        print(f"OK: wrote {path}")
        return 0
    if not args.measurements:
        build_parser().print_usage(sys.stderr)
        print("error: a measurements CSV is required", file=sys.stderr)
        return 2

    try:
        config = load_config(args.config) if args.config else (
            AnalysisConfig.quick() if args.quick else AnalysisConfig()
        )
        if args.seed is not None:
            config.seed = args.seed
        if args.workers is not None:
            config.max_workers = args.workers
        if args.backend:
            config.parallel_backend = args.backend
        if args.cache:
            config.cache_dir = args.cache

        measurements = load_measurements(args.measurements)
        results = run_analysis(measurements, config, progress=_progress)
    except (YieldVoIError, ValueError, FileNotFoundError) as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 2

    from .export import build_figures, export_all_charts, export_audit_log, export_tables

    os.makedirs(args.output, exist_ok=True)
    written = export_tables(results, os.path.join(args.output, "tables"))
    if not args.no_figures:
        written += export_all_charts(build_figures(results),
                                     os.path.join(args.output, "figures"))
    written.append(export_audit_log(results, args.output))
    settings_path = os.path.join(args.output, "settings.json")
    save_config(config, settings_path)
    written.append(settings_path)

    _print_summary(results)
    for path in written:
        print(f"OK: wrote {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
