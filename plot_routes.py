"""
Generate route diagrams for a split-delivery instance.

Solves the configured instance and draws both truck tours on a
force-directed embedding of the distance matrix. Outputs PNG files to the
current directory.

Usage:
    python plot_routes.py                          # Default config
    python plot_routes.py --config path/to/instance.yaml
    python plot_routes.py --output my_routes.png
    python plot_routes.py --matrix                 # Also plot the distance heatmap
    python plot_routes.py --naive                  # Draw the naive routes instead
"""

import argparse
from pathlib import Path

from src.analysis.report import format_result
from src.analysis.visualizations import plot_distance_matrix, plot_routes
from src.network.config import ProblemConfig, RouterConfig, SolverConfig, load_config
from src.routing.solver import SplitDeliverySolver


def default_config() -> RouterConfig:
    """Fallback config when no YAML is provided."""
    return RouterConfig(
        problem=ProblemConfig(
            customers_per_warehouse=1,
            distance_matrix=[
                [0, 5, 9, 3],
                [5, 0, 2, 6],
                [9, 2, 0, 5],
                [3, 6, 5, 0],
            ],
        ),
        solver=SolverConfig(time_limit_s=30.0),
    )


def main():
    """Main function"""

    parser = argparse.ArgumentParser(
        description="Generate split-delivery route diagrams",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to instance YAML config (default: config/default_instance.yaml)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default="routes.png",
        help="Output PNG filename (default: routes.png)",
    )
    parser.add_argument(
        "--title",
        "-t",
        type=str,
        default=None,
        help="Custom plot title",
    )
    parser.add_argument(
        "--matrix",
        action="store_true",
        help="Also generate a distance matrix heatmap (routes_matrix.png)",
    )
    parser.add_argument(
        "--naive",
        action="store_true",
        help="Draw the naive routes (each truck serves only its own customers)",
    )
    parser.add_argument(
        "--hide-distances",
        action="store_true",
        help="Do not annotate legs with their lengths",
    )
    parser.add_argument(
        "--dpi",
        type=int,
        default=150,
        help="Output image resolution (default: 150)",
    )
    args = parser.parse_args()

    # ── Load config ──────────────────────────────────────────────
    config_path = args.config
    if config_path is None:
        default_path = Path(__file__).parent / "config" / "default_instance.yaml"
        if default_path.exists():
            config_path = str(default_path)

    if config_path:
        print(f"Loading config from: {config_path}")
        config = load_config(config_path)
    else:
        print("Using default config (no YAML found)")
        config = default_config()

    # ── Solve ────────────────────────────────────────────────────
    solver = SplitDeliverySolver(config.problem, config.solver)
    if args.naive:
        solution = solver.evaluator.naive_solution()
        title = args.title or f"Naive routes: cost {solution.cost}"
    else:
        result = solver.solve()
        print(format_result(result, solver.registry))
        if result.solution is None:
            print("\nNo solution to plot.")
            return
        solution = result.solution
        title = args.title

    # ── Generate route plot ──────────────────────────────────────
    fig = plot_routes(
        solver.registry,
        solver.distances,
        solution,
        title=title,
        show_distances=not args.hide_distances,
    )
    output_path = Path(args.output)
    fig.savefig(output_path, dpi=args.dpi, bbox_inches="tight")
    print(f"\n📊 Routes saved: {output_path}")

    # ── Optional distance heatmap ────────────────────────────────
    if args.matrix:
        matrix_path = output_path.with_name(output_path.stem + "_matrix" + output_path.suffix)
        fig_matrix = plot_distance_matrix(solver.registry, solver.distances)
        fig_matrix.savefig(matrix_path, dpi=args.dpi, bbox_inches="tight")
        print(f"📊 Matrix saved: {matrix_path}")

    print("\nDone.")


if __name__ == "__main__":
    main()
