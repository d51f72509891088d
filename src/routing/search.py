"""
Depth-first branch-and-bound over slot and depot variables.

Node life cycle
───────────────
  Branching    pick the unfixed variable with the smallest domain
               (positional order breaks ties: A slots, B slots, depot)
  Propagating  fix it to the next value (absent first, then ascending id),
               run the constraint store to a fixpoint
  Pruned       VIOLATED, or the lower bound is >= the incumbent bound
  Solution     every variable fixed: offer to the incumbent
  Expanding    otherwise recurse

The incumbent holds the naive independent-service solution before the
search starts, with the bound at its cost. Only strictly cheaper leaves
replace it, which keeps the first-found optimum among ties. A slot value
that extends a truck's fixed prefix is skipped without propagating when
the extended prefix plus the shortest way home already reaches the bound.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from src.routing.constraints import (
    DEPOT,
    CheckResult,
    ConstraintStore,
    DomainStore,
    Var,
    value_order,
)
from src.routing.objective import ObjectiveEvaluator, Solution
from src.network.places import Truck

logger = logging.getLogger(__name__)


class SearchCancelled(Exception):
    """Raised inside the search when the budget runs out or a stop is requested."""


class SharedIncumbent:
    """Best solution found so far and the strict pruning bound.

    Guarded by a lock so parallel workers can share it. Workers read
    `bound` afresh at every node and leaf. A seed solution is held from
    the start but is not counted in `solutions_found`.
    """

    def __init__(self, initial_bound: int, seed: Solution | None = None) -> None:
        self._lock = threading.Lock()
        self._bound = initial_bound if seed is None else min(initial_bound, seed.cost)
        self.solution: Solution | None = seed
        self.solutions_found = 0

    @property
    def bound(self) -> int:
        with self._lock:
            return self._bound

    def offer(self, solution: Solution) -> bool:
        """Record `solution` if it beats the bound. Returns True if accepted."""
        with self._lock:
            if solution.cost >= self._bound:
                return False
            self._bound = solution.cost
            self.solution = solution
            self.solutions_found += 1
            return True


class SearchBudget:
    """Cooperative cancellation: deadline, node budget and an external stop flag."""

    def __init__(
        self,
        time_limit_s: float | None = None,
        node_limit: int | None = None,
        stop_requested: Callable[[], bool] | None = None,
    ) -> None:
        self._deadline = None if time_limit_s is None else time.perf_counter() + time_limit_s
        self._node_limit = node_limit
        self._stop_requested = stop_requested
        self._lock = threading.Lock()
        self.nodes = 0
        self.cancelled = False

    def tick(self) -> None:
        """Count one node; raise SearchCancelled if any limit is hit."""
        with self._lock:
            self.nodes += 1
            if self.cancelled:
                raise SearchCancelled
            if self._node_limit is not None and self.nodes > self._node_limit:
                self.cancelled = True
            elif self._deadline is not None and time.perf_counter() > self._deadline:
                self.cancelled = True
            elif self._stop_requested is not None and self._stop_requested():
                self.cancelled = True
            if self.cancelled:
                raise SearchCancelled


@dataclass
class SearchStats:
    """Per-engine counters."""

    nodes: int = 0
    pruned_infeasible: int = 0
    pruned_bound: int = 0
    leaves: int = 0


class BranchAndBound:
    """One depth-first search worker.

    Args:
        store: Constraint store (propagators).
        evaluator: Objective evaluator for the instance.
        incumbent: Shared best-solution holder.
        budget: Shared cancellation budget.
        on_incumbent: Optional callback invoked with each improving solution.
    """

    def __init__(
        self,
        store: ConstraintStore,
        evaluator: ObjectiveEvaluator,
        incumbent: SharedIncumbent,
        budget: SearchBudget,
        on_incumbent: Callable[[Solution], None] | None = None,
    ) -> None:
        self.store = store
        self.evaluator = evaluator
        self.incumbent = incumbent
        self.budget = budget
        self.on_incumbent = on_incumbent
        self.stats = SearchStats()

    def run(self, root: DomainStore) -> bool:
        """Search below `root`. Returns True if the subtree was exhausted."""
        try:
            if self.store.propagate(root) is not CheckResult.VIOLATED:
                self._search(root)
        except SearchCancelled:
            logger.debug("Search cancelled after %d nodes", self.stats.nodes)
            return False
        finally:
            root.undo()
        return True

    # ── Internals ────────────────────────────────────────────────────

    def _search(self, state: DomainStore) -> None:
        self.budget.tick()
        self.stats.nodes += 1

        if self.evaluator.lower_bound(state) >= self.incumbent.bound:
            self.stats.pruned_bound += 1
            return

        if state.is_complete():
            self._leaf(state)
            return

        var = self._select_variable(state)
        prefix = None
        if var.truck is not None:
            last_index, last_place, cost = self.evaluator.prefix(state, var.truck)
            if last_index >= 0 and last_index == var.index - 1:
                prefix = (last_place, cost)

        for value in sorted(state.domain(var), key=value_order):
            if prefix is not None and value is not None:
                reach = self.evaluator.extension_bound(var.truck, *prefix, value)
                if reach >= self.incumbent.bound:
                    self.stats.pruned_bound += 1
                    continue
            child = state.branch()
            try:
                child.assign(var, value)
                if self.store.propagate(child) is CheckResult.VIOLATED:
                    self.stats.pruned_infeasible += 1
                    continue
                self._search(child)
            finally:
                child.undo()

    def _select_variable(self, state: DomainStore) -> Var:
        """Most-constrained unfixed variable; first in positional order on ties."""
        best: Var | None = None
        best_size = 0
        for var in state.variables():
            size = len(state.domain(var))
            if size > 1 and (best is None or size < best_size):
                best, best_size = var, size
        if best is None:
            raise RuntimeError("No unfixed variable on an incomplete store")
        return best

    def _leaf(self, state: DomainStore) -> None:
        # Leaves are only reached through a full propagation, which raises on
        # any broken predicate once every variable is fixed
        self.stats.leaves += 1
        solution = self.evaluator.make_solution(
            state.path.route(Truck.A), state.path.route(Truck.B), state.fixed_depot
        )
        if self.incumbent.offer(solution):
            logger.debug(
                "New incumbent cost=%d (A=%d, B=%d, depot=%s) at node %d",
                solution.cost,
                solution.distance_a,
                solution.distance_b,
                solution.depot,
                self.stats.nodes,
            )
            if self.on_incumbent is not None:
                self.on_incumbent(solution)


def root_branches(root: DomainStore) -> list[int | None]:
    """Depot values at the root, in the order the serial search tries them."""
    return sorted(root.domain(DEPOT), key=value_order)
