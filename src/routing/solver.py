"""
Split-delivery solver: the public entry point of the routing core.

Wires the place registry, constraint store, objective evaluator and
branch-and-bound engine together for one validated problem.

Quick start:
    from src.network.config import ProblemConfig
    from src.routing.solver import SplitDeliverySolver

    problem = ProblemConfig(customers_per_warehouse=1, distance_matrix=matrix)
    result = SplitDeliverySolver(problem).solve()
    print(result.status, result.solution.cost)

Outcomes
────────
  OPTIMAL      search tree exhausted, incumbent proven optimal
  INTERRUPTED  budget hit or stop requested, incumbent possibly suboptimal
  UNKNOWN      cancelled before any solution was recorded
  INFEASIBLE   tree exhausted with no solution

The naive independent-service routes seed the incumbent whenever the
constraint store accepts them, which it does for every valid config. A
cancelled solve therefore still returns a feasible solution, and the last
two outcomes only arise if the naive routes are rejected.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable

import numpy as np

from src.network.config import ProblemConfig, SolverConfig, validate_problem, validate_solver
from src.network.places import PlaceRegistry
from src.routing.constraints import DEPOT, CheckResult, ConstraintStore, DomainStore
from src.routing.objective import ObjectiveEvaluator, Solution
from src.routing.search import (
    BranchAndBound,
    SearchBudget,
    SearchStats,
    SharedIncumbent,
    root_branches,
)

logger = logging.getLogger(__name__)


class SolverStatus(Enum):
    """Valid solver outcomes"""

    OPTIMAL = auto()  # tree exhausted, incumbent is optimal
    INTERRUPTED = auto()  # cancelled with an incumbent, possibly suboptimal
    UNKNOWN = auto()  # cancelled before any incumbent
    INFEASIBLE = auto()  # tree exhausted, nothing found


@dataclass
class SolveResult:
    """Everything a reporter needs from one solve."""

    status: SolverStatus
    solution: Solution | None
    naive_bound: int
    solve_time_ms: float = 0.0
    nodes_explored: int = 0
    solutions_found: int = 0
    pruned_infeasible: int = 0
    pruned_bound: int = 0

    @property
    def possibly_suboptimal(self) -> bool:
        return self.status in (SolverStatus.INTERRUPTED, SolverStatus.UNKNOWN)

    @property
    def is_feasible(self) -> bool:
        return self.solution is not None


class SplitDeliverySolver:
    """Exact two-truck split-delivery solver.

    Args:
        problem: Customer count and distance matrix. Validated on construction.
        solver_config: Budget, worker count and pruning switches.

    Raises:
        ConfigurationError: if the problem or solver config is invalid.
    """

    def __init__(
        self,
        problem: ProblemConfig,
        solver_config: SolverConfig | None = None,
    ) -> None:
        self.config = solver_config or SolverConfig()
        validate_solver(self.config)
        self.distances: np.ndarray = validate_problem(problem)
        self.registry = PlaceRegistry(problem.customers_per_warehouse)
        self.evaluator = ObjectiveEvaluator(self.registry, self.distances)
        self.store = ConstraintStore(self.registry, self.config.use_length_identity)

        naive = self.evaluator.naive_solution()
        rejected = self.verify(naive)
        self.seed: Solution | None = None if rejected else naive
        if rejected:
            logger.warning("Naive routes break %s; searching without a seed", ", ".join(rejected))

        self.total_solves: int = 0
        self.total_solve_time_ms: float = 0.0

    @property
    def naive_bound(self) -> int:
        return self.evaluator.naive_bound

    def solve(
        self,
        stop_requested: Callable[[], bool] | None = None,
        on_incumbent: Callable[[Solution], None] | None = None,
    ) -> SolveResult:
        """Run the search to completion or until the budget runs out.

        Args:
            stop_requested: Polled between branch decisions; True cancels.
            on_incumbent: Called with every improving solution, possibly
                from a worker thread.
        """
        t0 = time.perf_counter()
        incumbent = SharedIncumbent(self.naive_bound + 1, self.seed)
        budget = SearchBudget(self.config.time_limit_s, self.config.node_limit, stop_requested)

        if self.config.workers > 1:
            exhausted, stats = self._solve_parallel(incumbent, budget, on_incumbent)
        else:
            engine = BranchAndBound(self.store, self.evaluator, incumbent, budget, on_incumbent)
            exhausted = engine.run(DomainStore(self.registry))
            stats = [engine.stats]

        if exhausted:
            status = SolverStatus.OPTIMAL if incumbent.solution else SolverStatus.INFEASIBLE
        else:
            status = SolverStatus.INTERRUPTED if incumbent.solution else SolverStatus.UNKNOWN

        ms = (time.perf_counter() - t0) * 1e3
        self.total_solves += 1
        self.total_solve_time_ms += ms
        result = SolveResult(
            status=status,
            solution=incumbent.solution,
            naive_bound=self.naive_bound,
            solve_time_ms=ms,
            nodes_explored=sum(s.nodes for s in stats),
            solutions_found=incumbent.solutions_found,
            pruned_infeasible=sum(s.pruned_infeasible for s in stats),
            pruned_bound=sum(s.pruned_bound for s in stats),
        )
        logger.info(
            "Solve finished: status=%s cost=%s nodes=%d time=%.1fms",
            status.name,
            None if result.solution is None else result.solution.cost,
            result.nodes_explored,
            ms,
        )
        return result

    def _solve_parallel(
        self,
        incumbent: SharedIncumbent,
        budget: SearchBudget,
        on_incumbent: Callable[[Solution], None] | None,
    ) -> tuple[bool, list[SearchStats]]:
        """Split the root on the depot variable and search each branch on a thread."""
        root = DomainStore(self.registry)
        if self.store.propagate(root) is CheckResult.VIOLATED:
            return True, []

        def work(depot: int | None) -> tuple[bool, SearchStats]:
            state = root.clone()
            state.assign(DEPOT, depot)
            engine = BranchAndBound(self.store, self.evaluator, incumbent, budget, on_incumbent)
            return engine.run(state), engine.stats

        branches = root_branches(root)
        logger.debug(
            "Parallel search: %d depot branches on %d workers", len(branches), self.config.workers
        )
        try:
            with ThreadPoolExecutor(max_workers=self.config.workers) as pool:
                outcomes = list(pool.map(work, branches))
        finally:
            root.undo()
        return all(done for done, _ in outcomes), [s for _, s in outcomes]

    def verify(self, solution: Solution) -> list[str]:
        """Names of the predicates `solution` breaks; empty when feasible."""
        return self.store.violations(solution.route_a, solution.route_b, solution.depot)


def solve(problem: ProblemConfig, solver_config: SolverConfig | None = None) -> SolveResult:
    """One-shot convenience wrapper around SplitDeliverySolver."""
    return SplitDeliverySolver(problem, solver_config).solve()
