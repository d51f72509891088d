"""
Human-readable and JSON-ready rendering of a SolveResult.

Usage:
    from src.analysis.report import format_result
    print(format_result(result, registry))
"""

from __future__ import annotations

from src.network.places import PlaceRegistry, Truck
from src.routing.objective import Solution
from src.routing.solver import SolveResult

NO_DEPOT = "no depot"


def format_route(route: tuple[int, ...], registry: PlaceRegistry | None = None) -> str:
    """`1 → 2 → 1`, or with labels when a registry is given."""
    if registry is None:
        return " → ".join(str(p) for p in route)
    return " → ".join(f"{p}:{registry.label(p)}" for p in route)


def format_depot(depot: int | None, registry: PlaceRegistry | None = None) -> str:
    if depot is None:
        return NO_DEPOT
    if registry is None:
        return str(depot)
    return f"{depot} ({registry.label(depot)})"


def format_result(result: SolveResult, registry: PlaceRegistry | None = None) -> str:
    """Multi-line report: status, both routes with distances, depot."""
    lines = [f"Status:      {result.status.name}"]
    if result.possibly_suboptimal:
        lines.append("             (search interrupted: solution possibly suboptimal)")

    solution = result.solution
    if solution is None:
        lines.append("No feasible solution found.")
    else:
        for truck in Truck:
            lines.append(
                f"Truck {truck.name}:     {format_route(solution.route(truck), registry)}"
                f"   (distance {solution.distance(truck)})"
            )
        lines.append(f"Depot:       {format_depot(solution.depot, registry)}")
        lines.append(f"Cost:        {solution.cost}   (naive bound {result.naive_bound})")

    lines.append(
        f"Search:      {result.nodes_explored} nodes, {result.solutions_found} incumbents, "
        f"{result.solve_time_ms:.1f} ms"
    )
    return "\n".join(lines)


def solution_to_dict(solution: Solution) -> dict:
    return {
        "route_a": list(solution.route_a),
        "route_b": list(solution.route_b),
        "distance_a": solution.distance_a,
        "distance_b": solution.distance_b,
        "depot": solution.depot,
        "cost": solution.cost,
    }


def result_to_dict(result: SolveResult) -> dict:
    """Flat JSON-serialisable summary of a solve."""
    return {
        "status": result.status.name,
        "possibly_suboptimal": result.possibly_suboptimal,
        "solution": None if result.solution is None else solution_to_dict(result.solution),
        "naive_bound": result.naive_bound,
        "nodes_explored": result.nodes_explored,
        "solutions_found": result.solutions_found,
        "solve_time_ms": result.solve_time_ms,
    }
