"""
Quick-run script for the split-delivery solver.

Usage:
    python run_solver.py                                   # config/default_instance.yaml
    python run_solver.py --config my_instance.yaml
    python run_solver.py --time-limit 5 --workers 4        # overrides config
    python run_solver.py --json                            # machine-readable output

Exit codes: 0 solution found, 1 no solution, 2 configuration error.
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from src.analysis.report import format_result, result_to_dict
from src.network.config import ConfigurationError, load_config
from src.routing.solver import SplitDeliverySolver


def main() -> int:
    """Main function that runs if the file is run directly."""

    parser = argparse.ArgumentParser(description="Solve a two-truck split-delivery instance")
    parser.add_argument(
        "--config",
        type=str,
        default="config/default_instance.yaml",
        help="Path to instance config YAML",
    )
    parser.add_argument(
        "--time-limit",
        type=float,
        default=None,
        help="Wall-clock limit in seconds (overrides config)",
    )
    parser.add_argument(
        "--node-limit", type=int, default=None, help="Search node budget (overrides config)"
    )
    parser.add_argument(
        "--workers", type=int, default=None, help="Parallel search threads (overrides config)"
    )
    parser.add_argument(
        "--no-length-identity",
        action="store_true",
        help="Disable the redundant path-length propagator",
    )
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s"
        )

    # Load config
    config_path = Path(args.config)
    try:
        config = load_config(config_path)
    except FileNotFoundError:
        print(f"Config {config_path} not found", file=sys.stderr)
        return 2
    except ConfigurationError as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return 2
    if not args.json:
        print(f"Loaded config from {config_path}")

    # Apply CLI overrides
    overrides = {}
    if args.time_limit is not None:
        overrides["time_limit_s"] = args.time_limit
    if args.node_limit is not None:
        overrides["node_limit"] = args.node_limit
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.no_length_identity:
        overrides["use_length_identity"] = False
    solver_config = replace(config.solver, **overrides)

    # Run
    try:
        solver = SplitDeliverySolver(config.problem, solver_config)
    except ConfigurationError as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return 2
    result = solver.solve()

    if args.json:
        print(json.dumps(result_to_dict(result), indent=2))
    else:
        print(f"\n{'=' * 60}")
        print(
            f"Split delivery: {solver.registry.customers_per_warehouse} customers per warehouse, "
            f"{solver.registry.n_places} places"
        )
        print(f"{'=' * 60}")
        print(format_result(result, solver.registry))

    return 0 if result.is_feasible else 1


if __name__ == "__main__":
    sys.exit(main())
