"""
src/routing/benchmark.py
──────────────────────────────────────────────────────────────────────────────
Benchmark: solver variants head-to-head on random instances.

Instances are random planar point sets (two warehouses, n customers each)
with rounded Euclidean distances. Every variant must reach the same optimal
cost; the benchmark reports how much search each one needs.

Variants:
  • serial       default configuration
  • no-identity  redundant length-identity propagator switched off
  • parallel     root depot branches on a thread pool

Usage:
    python -m src.routing.benchmark                      # 10 scenarios, n=2
    python -m src.routing.benchmark --customers 3 --scenarios 5
    python -m src.routing.benchmark --variants serial no-identity
"""

from __future__ import annotations

import argparse

import numpy as np

from src.network.config import ProblemConfig, SolverConfig
from src.routing.solver import SolveResult, SplitDeliverySolver


VARIANTS: dict[str, SolverConfig] = {
    "serial": SolverConfig(),
    "no-identity": SolverConfig(use_length_identity=False),
    "parallel": SolverConfig(workers=4),
}


# ── Instance generation ───────────────────────────────────────────────────────


def random_problem(
    customers_per_warehouse: int,
    rng: np.random.Generator,
    extent: float = 100.0,
    cluster_spread: float = 0.35,
) -> ProblemConfig:
    """Random instance: each warehouse's customers scatter around it.

    Warehouses sit at opposite ends of the square; `cluster_spread` is the
    customer scatter as a fraction of `extent`, so larger values produce
    more cross-warehouse opportunities.
    """
    n = customers_per_warehouse
    centres = np.array([[0.25 * extent, 0.5 * extent], [0.75 * extent, 0.5 * extent]])
    points = []
    for c in centres:
        points.append(c)
        points.extend(c + rng.normal(0.0, cluster_spread * extent / 2, size=(n, 2)))
    xy = np.vstack(points)
    diff = xy[:, None, :] - xy[None, :, :]
    matrix = np.rint(np.sqrt((diff**2).sum(axis=-1))).astype(np.int64)
    return ProblemConfig(customers_per_warehouse=n, distance_matrix=matrix)


# ── Main benchmark loop ───────────────────────────────────────────────────────


def run_benchmark(
    n_scenarios: int = 10,
    customers_per_warehouse: int = 2,
    seed: int = 42,
    variant_names: list[str] | None = None,
    verbose: bool = True,
) -> dict[str, list[SolveResult]]:
    """Solve random scenarios with every variant and print a comparison table.

    Returns:
        Variant name → one SolveResult per scenario.

    Raises:
        RuntimeError: if two variants disagree on an optimal cost.
    """
    active = variant_names or list(VARIANTS)
    rng = np.random.default_rng(seed)
    results: dict[str, list[SolveResult]] = {name: [] for name in active}

    if verbose:
        print("=" * 80)
        print("  Split-Delivery Solver Benchmark")
        print("=" * 80)
        print(
            f"  Scenarios: {n_scenarios}  |  Customers/warehouse: {customers_per_warehouse}"
            f"  |  Seed: {seed}"
        )
        print(f"  Variants:  {', '.join(active)}")
        print()

    for i in range(n_scenarios):
        problem = random_problem(customers_per_warehouse, rng)
        costs = {}
        for name in active:
            r = SplitDeliverySolver(problem, VARIANTS[name]).solve()
            results[name].append(r)
            costs[name] = None if r.solution is None else r.solution.cost
        if len(set(costs.values())) > 1:
            raise RuntimeError(f"Scenario {i}: variants disagree on optimal cost: {costs}")

    if verbose:
        _print_table(results, active)
    return results


def _print_table(results: dict[str, list[SolveResult]], active: list[str]) -> None:
    col_w = 16

    def hdr(label: str) -> str:
        return f"{label:>{col_w}}"

    def val(v: float, fmt: str = ".1f") -> str:
        return f"{v:{col_w}{fmt}}"

    print(f"  {'Metric':<30}" + "".join(hdr(n) for n in active))
    print("  " + "─" * (30 + col_w * len(active)))

    fn_map = {
        "Avg cost": (lambda rs: np.mean([r.solution.cost for r in rs if r.solution]), ".1f"),
        "Avg naive bound": (lambda rs: np.mean([r.naive_bound for r in rs]), ".1f"),
        "Avg nodes": (lambda rs: np.mean([r.nodes_explored for r in rs]), ".0f"),
        "Avg incumbents": (lambda rs: np.mean([r.solutions_found for r in rs]), ".2f"),
        "Avg solve time (ms)": (lambda rs: np.mean([r.solve_time_ms for r in rs]), ".1f"),
        "Max solve time (ms)": (lambda rs: np.max([r.solve_time_ms for r in rs]), ".1f"),
    }
    for label, (fn, fmt) in fn_map.items():
        row = f"  {label:<30}"
        for name in active:
            row += val(fn(results[name]), fmt)
        print(row)

    depots = sum(1 for r in results[active[0]] if r.solution and r.solution.depot is not None)
    print(f"\n  Scenarios using a depot: {depots}/{len(results[active[0]])}")
    print("\n" + "=" * 80)


# ── CLI entry point ───────────────────────────────────────────────────────────

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Benchmark split-delivery solver variants")
    parser.add_argument("--scenarios", type=int, default=10)
    parser.add_argument("--customers", type=int, default=2)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument(
        "--variants",
        nargs="+",
        choices=list(VARIANTS),
        default=None,
        help="Subset of variants to benchmark (default: all)",
    )
    args = parser.parse_args()
    run_benchmark(args.scenarios, args.customers, args.seed, args.variants)
