"""
Objective evaluation: route distances, the max-distance cost, the partial
lower bound used for pruning, and the naive independent-service bound.

Distances are read from a validated integer matrix indexed by place id - 1.
No triangle inequality is assumed. The lower bound on a partial assignment
is the largest of three relaxations:

  prefix      the fixed leading run of a truck's route plus the shortest
              path from its last place back to the home warehouse
  per truck   fixed legs, plus half the cheapest possible incoming and
              outgoing leg of every place the truck has fixed or must
              still visit
  pooled      the same half-leg sum over both trucks, halved again
              because the longer route carries at least half the total

Every leg has one source and one target occurrence, so charging half of
the cheapest leg to each side never counts a leg twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from src.network.places import PlaceRegistry, Truck

if TYPE_CHECKING:
    from src.routing.constraints import DomainStore

# Marks a slot whose domain still holds more than one value
OPEN = 0


@dataclass(frozen=True)
class Solution:
    """A complete, feasible depot + route assignment.

    Attributes:
        route_a: Places visited by truck A, warehouse to warehouse.
        route_b: Places visited by truck B, warehouse to warehouse.
        depot: Exchange place, or None when the trucks never meet.
        distance_a: Round-trip distance of truck A.
        distance_b: Round-trip distance of truck B.
    """

    route_a: tuple[int, ...]
    route_b: tuple[int, ...]
    depot: int | None
    distance_a: int
    distance_b: int

    @property
    def cost(self) -> int:
        """The objective: the longer of the two round trips."""
        return max(self.distance_a, self.distance_b)

    def route(self, truck: Truck) -> tuple[int, ...]:
        return self.route_a if truck is Truck.A else self.route_b

    def distance(self, truck: Truck) -> int:
        return self.distance_a if truck is Truck.A else self.distance_b

    def path_length(self, truck: Truck) -> int:
        return len(self.route(truck))


class ObjectiveEvaluator:
    """Computes route costs and pruning bounds against one distance matrix."""

    def __init__(self, registry: PlaceRegistry, distances: np.ndarray) -> None:
        self.registry = registry
        self.distances = distances
        self.shortest = registry.shortest_distances(distances)
        self.naive_routes = {
            t: (registry.warehouse(t), *registry.customers_of(t), registry.warehouse(t))
            for t in Truck
        }
        self.naive_distances = {t: self.distance(r) for t, r in self.naive_routes.items()}
        self.naive_bound = max(self.naive_distances.values())

        # Self-loops never occur inside a route, so the diagonal is masked out
        self._unreachable = int(distances.max()) + 1
        self._off_diagonal = distances.astype(np.int64)
        np.fill_diagonal(self._off_diagonal, self._unreachable)
        self._cheapest_cache: dict[frozenset, tuple[list[int], list[int]]] = {}

    def leg(self, src: int, dst: int) -> int:
        return int(self.distances[src - 1, dst - 1])

    def distance(self, route: tuple[int, ...] | list[int]) -> int:
        """Sum of consecutive legs along a route."""
        return sum(self.leg(a, b) for a, b in zip(route, route[1:]))

    def cost(self, route_a, route_b) -> int:
        return max(self.distance(route_a), self.distance(route_b))

    def make_solution(self, route_a, route_b, depot: int | None) -> Solution:
        return Solution(
            route_a=tuple(route_a),
            route_b=tuple(route_b),
            depot=depot,
            distance_a=self.distance(route_a),
            distance_b=self.distance(route_b),
        )

    def naive_solution(self) -> Solution:
        """Each truck serves only its own customers in ascending order, no depot."""
        return self.make_solution(self.naive_routes[Truck.A], self.naive_routes[Truck.B], None)

    # ── Bounds ───────────────────────────────────────────────────────

    def prefix(self, store: DomainStore, truck: Truck) -> tuple[int, int, int]:
        """Fixed leading run of a truck's slots: (last index, last place, cost).

        The last index is -1 while the departure slot is still open.
        """
        last_index, last_place, total = -1, OPEN, 0
        for k, dom in enumerate(store.slots[truck]):
            if len(dom) != 1:
                break
            (value,) = dom
            if value is None:
                break
            if k > 0:
                total += self.leg(last_place, value)
            last_index, last_place = k, value
        return last_index, last_place, total

    def extension_bound(self, truck: Truck, last_place: int, cost: int, value: int) -> int:
        """Least distance of a route whose fixed prefix ends at `last_place`
        and continues with `value`."""
        home = self.registry.warehouse(truck)
        total = cost + self.leg(last_place, value)
        if value != home:
            total += int(self.shortest[value - 1, home - 1])
        return total

    def lower_bound(self, store: DomainStore) -> int:
        """Cost no completion of `store` can beat. Exact on complete stores."""
        reg = self.registry
        fixed = {t: [_fixed_value(d) for d in store.slots[t]] for t in Truck}
        allowed = {t: frozenset().union(*store.slots[t]) - {None} for t in Truck}

        bound = 0
        pooled = 0
        placed: dict[Truck, set[int]] = {}
        cheapest: dict[Truck, tuple[list[int], list[int]]] = {}
        for t in Truck:
            values = fixed[t]
            home = reg.warehouse(t)
            min_in, min_out = cheapest[t] = self._cheapest_legs(allowed[t])
            # A truck that may stay home can close its route with a zero leg
            home_in = 0 if 2 in store.lengths[t] else min_in[home]
            home_out = 0 if 2 in store.lengths[t] else min_out[home]

            legs = 0
            halves = 0
            returned = False
            placed[t] = set()
            for k, v in enumerate(values):
                if not v:
                    continue
                placed[t].add(v)
                if k > 0:
                    if values[k - 1]:
                        legs += self.leg(values[k - 1], v)
                    else:
                        halves += home_in if v == home else min_in[v]
                    if v == home:
                        returned = True
                        continue
                if k + 1 < len(values) and values[k + 1] == OPEN:
                    halves += home_out if k == 0 else min_out[v]
            if not returned:
                halves += home_in

            for p in reg.customers:
                if p in placed[t]:
                    continue
                if store.depot == frozenset([p]) or p not in allowed[t.other]:
                    halves += min_in[p] + min_out[p]
                    placed[t].add(p)

            doubled = 2 * legs + halves
            pooled += doubled
            bound = max(bound, (doubled + 1) // 2)

            last_index, last_place, cost = self.prefix(store, t)
            if last_index > 0 and last_place == home:
                bound = max(bound, cost)
            elif last_index >= 0:
                bound = max(bound, cost + int(self.shortest[last_place - 1, home - 1]))

        for p in reg.customers:
            if p in placed[Truck.A] or p in placed[Truck.B]:
                continue
            options = [
                cheapest[t][0][p] + cheapest[t][1][p] for t in Truck if p in allowed[t]
            ]
            pooled += min(options, default=0)
        return max(bound, (pooled + 3) // 4)

    def _cheapest_legs(self, allowed: frozenset) -> tuple[list[int], list[int]]:
        """Cheapest incoming and outgoing leg of each place within `allowed`.

        Lists are indexed by place id; places outside `allowed` read 0.
        """
        cached = self._cheapest_cache.get(allowed)
        if cached is not None:
            return cached
        size = self.registry.n_places + 1
        min_in = [0] * size
        min_out = [0] * size
        idx = np.array(sorted(p - 1 for p in allowed), dtype=np.intp)
        if len(idx) > 1:
            sub = self._off_diagonal[np.ix_(idx, idx)]
            col_min = sub.min(axis=0).tolist()
            row_min = sub.min(axis=1).tolist()
            for i, place in enumerate(idx.tolist()):
                min_in[place + 1] = col_min[i] if col_min[i] < self._unreachable else 0
                min_out[place + 1] = row_min[i] if row_min[i] < self._unreachable else 0
        self._cheapest_cache[allowed] = (min_in, min_out)
        return min_in, min_out


def _fixed_value(domain: frozenset) -> int | None:
    """The single value of a fixed slot (None for absent), OPEN otherwise."""
    if len(domain) != 1:
        return OPEN
    (value,) = domain
    return value
