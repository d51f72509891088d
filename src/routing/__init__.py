"""
Exact two-truck split-delivery routing via propagation + branch-and-bound.

Quick start:
    from src.routing import SplitDeliverySolver
    result = SplitDeliverySolver(problem).solve()
    print(result.solution.route_a, result.solution.route_b, result.solution.depot)
"""

from src.routing.constraints import CheckResult, ConstraintStore, DomainStore
from src.routing.objective import ObjectiveEvaluator, Solution
from src.routing.paths import PathState
from src.routing.solver import SolveResult, SolverStatus, SplitDeliverySolver, solve

__all__ = [
    "CheckResult",
    "ConstraintStore",
    "DomainStore",
    "ObjectiveEvaluator",
    "Solution",
    "PathState",
    "SolveResult",
    "SolverStatus",
    "SplitDeliverySolver",
    "solve",
]
