"""
Run the pay gap analysis from the command line.

Usage:
    paygap-report [--config FILE] [--seed N] [--n N] [--output-dir DIR]
                  [--family {gaussian,skew_normal}] [--adjust-confounder]
                  [--skip-fit] [--no-plots] [--verbose]
"""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from .config import AnalysisSettings, ResponseFamily
from .exceptions import PaygapError
from .pipeline import run_analysis
from .utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Simulate an organisation and estimate its gender pay gap")
    parser.add_argument("--config", type=str, help="YAML settings file")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--n", type=int, help="Number of employees to simulate")
    parser.add_argument("--output-dir", type=str, help="Directory for fits, tables and figures")
    parser.add_argument(
        "--family",
        type=str,
        choices=[f.value for f in ResponseFamily],
        help="Response distribution",
    )
    parser.add_argument(
        "--adjust-confounder",
        action="store_true",
        help="Include the unmeasured confounder as a regressor",
    )
    parser.add_argument("--skip-fit", action="store_true", help="Stop after assembling the model")
    parser.add_argument("--no-plots", action="store_true", help="Do not render figures")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def resolve_settings(args: argparse.Namespace) -> AnalysisSettings:
    """Defaults, then the YAML file, then PAYGAP_* variables, then flags."""
    settings = AnalysisSettings.from_yaml(args.config) if args.config else AnalysisSettings()
    settings = settings.with_env_overrides()

    updates = {}
    if args.seed is not None:
        updates["seed"] = args.seed
    if args.n is not None:
        updates["n"] = args.n
    if args.output_dir is not None:
        updates["output_dir"] = args.output_dir
    if args.family is not None:
        updates["family"] = args.family
    if args.adjust_confounder:
        updates["adjust_for_confounder"] = True
    if args.skip_fit:
        updates["skip_fit"] = True
    if args.no_plots:
        updates["make_plots"] = False

    if "seed" in updates and settings.sampler.seed == settings.seed:
        updates["sampler"] = replace(settings.sampler, seed=updates["seed"])
    return replace(settings, **updates)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level="DEBUG" if args.verbose else None)

    start_time = datetime.now()
    try:
        settings = resolve_settings(args)
        result = run_analysis(settings)
    except (PaygapError, ValueError, OSError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    duration = (datetime.now() - start_time).total_seconds()
    logger.info("=" * 60)
    logger.info(f"Formula: {result.spec.formula}")
    for expression, hypothesis in result.hypotheses.items():
        logger.info(
            f"{expression}: {hypothesis.estimate:,.0f} "
            f"[{hypothesis.lower:,.0f}, {hypothesis.upper:,.0f}]"
        )
    if result.diagnostics is not None and not result.diagnostics.converged:
        logger.warning(f"Fit needs review: {result.diagnostics.issues}")
    logger.info(f"Finished in {duration:.1f}s")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
