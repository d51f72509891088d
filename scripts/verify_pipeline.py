"""
Solver diagnostic tool.

Runs the default instance through every stage of the solver with heavy
instrumentation: configuration → place registry → propagation → search →
solution invariants → cancellation and parallel agreement.

This is the script you run FIRST when something looks wrong. It checks
every stage independently so you can pinpoint exactly where the break is.

Usage:
    python scripts/verify_pipeline.py
    python scripts/verify_pipeline.py --config my_instance.yaml

Each check is independent. If check N fails, the bug is in that stage.
"""

import argparse
import sys
from pathlib import Path

from src.analysis.report import format_result
from src.network.config import ConfigurationError, RouterConfig, SolverConfig, load_config
from src.network.places import PlaceRegistry, Truck
from src.routing.constraints import CheckResult, DomainStore, Var
from src.routing.solver import SolveResult, SolverStatus, SplitDeliverySolver

FAILURES: list[str] = []


def section(title: str) -> None:
    """Creates a section in the CLI display"""

    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}")


def check(label: str, condition: bool, detail: str = "") -> bool:
    """Checks if a condition is passed."""

    status = "✅ PASS" if condition else "❌ FAIL"
    msg = f"  {status}: {label}"
    if detail:
        msg += f" — {detail}"
    print(msg)
    if not condition:
        FAILURES.append(label)
    return condition


# ─────────────────────────────────────────────────────────────
# STAGE 1: Configuration
# ─────────────────────────────────────────────────────────────
def verify_config(path: Path) -> tuple[RouterConfig, SplitDeliverySolver]:
    """Load the instance and make sure validation accepts it."""

    section("STAGE 1: Configuration")

    config = load_config(path)
    check("Config loaded", True, str(path))
    try:
        solver = SplitDeliverySolver(config.problem, config.solver)
    except ConfigurationError as exc:
        check("Problem validates", False, str(exc))
        sys.exit(1)

    n = config.problem.customers_per_warehouse
    check("Problem validates", True, f"{n} customers per warehouse")
    check("Matrix is square", solver.distances.shape == (2 * (n + 1),) * 2)
    check("Diagonal is zero", all(solver.distances[i, i] == 0 for i in range(2 * (n + 1))))
    symmetric = bool((solver.distances == solver.distances.T).all())
    print(f"    symmetric: {symmetric}")
    return config, solver


# ─────────────────────────────────────────────────────────────
# STAGE 2: Place registry
# ─────────────────────────────────────────────────────────────
def verify_registry(registry: PlaceRegistry) -> None:
    """Layout of warehouses and customers."""

    section("STAGE 2: Place Registry")

    n = registry.customers_per_warehouse
    check("Warehouse A is place 1", registry.warehouse(Truck.A) == 1)
    check("Warehouse B is place n+2", registry.warehouse(Truck.B) == n + 2)
    check(
        "Customer sets are disjoint",
        not set(registry.customers_of(Truck.A)) & set(registry.customers_of(Truck.B)),
    )
    check(
        "Universe covers every place once",
        len(registry.customers) + 2 == registry.n_places,
        f"{registry.n_places} places",
    )
    for p in registry.places:
        print(f"    {p:>3}  {registry.label(p)}")


# ─────────────────────────────────────────────────────────────
# STAGE 3: Propagation
# ─────────────────────────────────────────────────────────────
def verify_propagation(solver: SplitDeliverySolver) -> None:
    """Root propagation narrows without contradiction."""

    section("STAGE 3: Root Propagation")

    registry = solver.registry
    root = DomainStore(registry)
    outcome = solver.store.propagate(root)
    check("Root is consistent", outcome is not CheckResult.VIOLATED, outcome.name)
    for t in Truck:
        check(
            f"Truck {t.name} departs from its warehouse",
            root.domain(Var(t, 0)) == frozenset([registry.warehouse(t)]),
        )
        print(f"    lengths {t.name}: {sorted(root.lengths[t])}")
    print(f"    depot candidates: {len(root.depot)}")
    root.undo()
    check("Undo clears the path state", root.path.route(Truck.A) == ())

    naive = solver.evaluator.naive_solution()
    check(
        "Naive routes are feasible",
        solver.verify(naive) == [],
        f"cost {naive.cost}",
    )


# ─────────────────────────────────────────────────────────────
# STAGE 4: Search
# ─────────────────────────────────────────────────────────────
def verify_search(solver: SplitDeliverySolver) -> SolveResult:
    """Full solve under the configured budget."""

    section("STAGE 4: Branch-and-Bound Search")

    result = solver.solve()
    print(format_result(result, solver.registry))
    print()
    check("Solution found", result.solution is not None, result.status.name)
    check("Search proved optimality", result.status is SolverStatus.OPTIMAL)
    if result.solution is not None:
        check(
            "Cost within naive bound",
            result.solution.cost <= result.naive_bound,
            f"{result.solution.cost} <= {result.naive_bound}",
        )
    return result


# ─────────────────────────────────────────────────────────────
# STAGE 5: Solution invariants
# ─────────────────────────────────────────────────────────────
def verify_invariants(solver: SplitDeliverySolver, result: SolveResult) -> None:
    """Check invariants"""

    section("STAGE 5: Invariant Checks")

    solution = result.solution
    if solution is None:
        check("Solution available for invariant checks", False)
        return

    registry = solver.registry
    n = registry.customers_per_warehouse
    violated = solver.verify(solution)
    check("No predicate violated", not violated, ", ".join(violated))

    uses_depot = solution.depot is not None
    total = solution.path_length(Truck.A) + solution.path_length(Truck.B)
    check("Path lengths sum", total == 4 + 2 * n + int(uses_depot), f"{total}")

    for p in registry.customers:
        if p == solution.depot:
            continue
        visits = solution.route_a.count(p) + solution.route_b.count(p)
        if visits != 1:
            check(f"Customer {p} served exactly once", False, f"{visits} visits")
            break
    else:
        check("Every non-depot customer served exactly once", True)

    cross = sum(
        1 for t in Truck for p in solution.route(t) if registry.is_foreign_customer(t, p)
    )
    check("Depot used iff cross-warehouse service", uses_depot == (cross > 0), f"{cross} cross")


# ─────────────────────────────────────────────────────────────
# STAGE 6: Variants agree
# ─────────────────────────────────────────────────────────────
def verify_variants(config: RouterConfig, result: SolveResult) -> None:
    """Pruning aids, parallelism and cancellation."""

    section("STAGE 6: Variants")

    if result.solution is None:
        check("Reference solution available", False)
        return
    cost = result.solution.cost

    relaxed = SplitDeliverySolver(config.problem, SolverConfig(use_length_identity=False)).solve()
    check(
        "Same cost without length identity",
        relaxed.solution is not None and relaxed.solution.cost == cost,
        f"{relaxed.nodes_explored} vs {result.nodes_explored} nodes",
    )

    parallel = SplitDeliverySolver(config.problem, SolverConfig(workers=4)).solve()
    check(
        "Same cost in parallel",
        parallel.solution is not None and parallel.solution.cost == cost,
        f"{parallel.solve_time_ms:.1f} ms",
    )

    budget = SplitDeliverySolver(config.problem, SolverConfig(node_limit=1)).solve()
    check(
        "Node budget interrupts search",
        budget.possibly_suboptimal,
        budget.status.name,
    )


# ─────────────────────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────────────────────
if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Verify the split-delivery solver end to end")
    parser.add_argument("--config", type=str, default="config/default_instance.yaml")
    args = parser.parse_args()

    print("Split-Delivery Router — Pipeline Verification")
    print("=" * 60)

    config, solver = verify_config(Path(args.config))
    verify_registry(solver.registry)
    verify_propagation(solver)
    result = verify_search(solver)
    verify_invariants(solver, result)
    verify_variants(config, result)

    section("VERIFICATION COMPLETE")
    if FAILURES:
        print(f"  {len(FAILURES)} check(s) failed. The stage label tells you where to look.")
        sys.exit(1)
    print("  All checks passed, the solver is working end-to-end.")
