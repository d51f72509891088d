"""
Constraint store: variable domains and the feasibility propagators.

Variables
─────────
  slot (truck, k)   place id or None, k = 0 .. max_path_length-1
  length (truck)    2 .. max_path_length   (auxiliary, never branched on)
  depot             place id or None

Domains are frozensets. A DomainStore is copied on every branch (the lists
are shallow-copied, the frozensets shared), while the PathState underneath
is shared and kept in sync through a per-node trail: whenever a slot domain
narrows to a single place it is assigned in the PathState, and `undo()`
retracts exactly those slots when the search leaves the node.

Propagators
───────────
  SentinelConsistency          slot k is None  ⇔  k ≥ length
  Endpoint                     first and last slot are the own warehouse
  OwnWarehouseCardinality      own warehouse appears exactly twice
  ForeignWarehouseCardinality  other warehouse appears once iff it is the depot
  CustomerCoverage             each customer served once; the depot customer by both
  DepotPrecedence              only own customers before the depot visit
  DepotNecessity               depot present  ⇔  some cross-warehouse service
  LengthIdentity               len_A + len_B = 4 + 2n + [depot present]   (redundant)

Every propagator raises `Inconsistency` when a domain is wiped out or a
count bound is broken. On a complete assignment a propagator raises iff
its predicate is false, which is what makes `check()` exact at leaves.
"""

from __future__ import annotations

import copy
from enum import Enum, auto
from typing import Iterable, NamedTuple

from src.network.places import PlaceRegistry, Truck
from src.routing.paths import PathState


class CheckResult(Enum):
    """Outcome of checking a predicate against a (partial) assignment."""

    SATISFIED = auto()
    VIOLATED = auto()
    UNDETERMINED = auto()


class Inconsistency(Exception):
    """A domain became empty or a count bound can no longer be met."""


class Var(NamedTuple):
    """Search variable handle. The depot has no truck."""

    truck: Truck | None
    index: int


DEPOT = Var(None, -1)


def value_order(value: int | None) -> int:
    """Sort key for domain values: absent first, then ascending place id."""
    return -1 if value is None else value


# ─────────────────────────────────────────────────────────────────────────────
# Domain store
# ─────────────────────────────────────────────────────────────────────────────


class DomainStore:
    """Current domains of every variable, bound to a shared PathState."""

    def __init__(self, registry: PlaceRegistry, path: PathState | None = None) -> None:
        self.registry = registry
        self.path = path if path is not None else PathState(registry)
        m = registry.max_path_length
        full = frozenset([None, *registry.places])
        self.slots: dict[Truck, list[frozenset]] = {t: [full] * m for t in Truck}
        self.lengths: dict[Truck, frozenset[int]] = {t: frozenset(range(2, m + 1)) for t in Truck}
        self.depot: frozenset = full
        self._trail: list[tuple[Truck, int]] = []
        # Bumped on every narrowing; lets the fixpoint loop skip stable propagators
        self.changes = 0

    @classmethod
    def from_assignment(
        cls,
        registry: PlaceRegistry,
        route_a: Iterable[int],
        route_b: Iterable[int],
        depot: int | None,
    ) -> DomainStore:
        """Build a fully fixed store from concrete routes, e.g. to check them."""
        store = cls(registry)
        m = registry.max_path_length
        for truck, route in ((Truck.A, tuple(route_a)), (Truck.B, tuple(route_b))):
            if len(route) > m:
                raise ValueError(f"Route for truck {truck.name} longer than {m} slots: {route}")
            padded = list(route) + [None] * (m - len(route))
            store.slots[truck] = [frozenset([v]) for v in padded]
            for k, v in enumerate(padded):
                if v is not None:
                    store.path.assign(truck, k, v)
            store.lengths[truck] = frozenset([len(route)])
        store.depot = frozenset([depot])
        return store

    # ── Copying ──────────────────────────────────────────────────────

    def branch(self) -> DomainStore:
        """Child store for one search node. Shares the PathState."""
        child = copy.copy(self)
        child.slots = {t: list(s) for t, s in self.slots.items()}
        child.lengths = dict(self.lengths)
        child._trail = []
        return child

    def clone(self) -> DomainStore:
        """Independent copy with its own PathState (for worker threads)."""
        child = self.branch()
        child.path = self.path.copy()
        return child

    def undo(self) -> None:
        """Retract every slot this node assigned in the PathState."""
        while self._trail:
            truck, k = self._trail.pop()
            self.path.retract(truck, k)

    # ── Variable access ──────────────────────────────────────────────

    def variables(self) -> list[Var]:
        """Search variables in positional order: A slots, B slots, depot."""
        m = self.registry.max_path_length
        return [Var(t, k) for t in Truck for k in range(m)] + [DEPOT]

    def domain(self, var: Var) -> frozenset:
        if var.truck is None:
            return self.depot
        return self.slots[var.truck][var.index]

    def assign(self, var: Var, value: int | None) -> None:
        """Fix a variable to one value of its domain."""
        if var.truck is None:
            self.narrow_depot((value,))
        else:
            self.narrow_slot(var.truck, var.index, (value,))

    def is_complete(self) -> bool:
        return (
            len(self.depot) == 1
            and all(len(d) == 1 for t in Truck for d in self.slots[t])
            and all(len(self.lengths[t]) == 1 for t in Truck)
        )

    @property
    def fixed_depot(self) -> int | None:
        if len(self.depot) != 1:
            raise ValueError("Depot is not fixed yet")
        return next(iter(self.depot))

    def candidates(self, truck: Truck, place: int) -> list[int]:
        """Unfixed slots of `truck` whose domain still contains `place`."""
        return [k for k, d in enumerate(self.slots[truck]) if len(d) > 1 and place in d]

    # ── Narrowing ────────────────────────────────────────────────────

    def narrow_slot(self, truck: Truck, k: int, allowed: Iterable) -> bool:
        dom = self.slots[truck][k]
        new = dom & frozenset(allowed)
        if new == dom:
            return False
        if not new:
            raise Inconsistency(f"slot {truck.name}[{k}] wiped out")
        self.slots[truck][k] = new
        self.changes += 1
        if len(new) == 1:
            (value,) = new
            if value is not None:
                self.path.assign(truck, k, value)
                self._trail.append((truck, k))
        return True

    def remove_slot_value(self, truck: Truck, k: int, value: int | None) -> bool:
        dom = self.slots[truck][k]
        if value not in dom:
            return False
        return self.narrow_slot(truck, k, dom - {value})

    def narrow_length(self, truck: Truck, allowed: Iterable[int]) -> bool:
        dom = self.lengths[truck]
        new = dom & frozenset(allowed)
        if new == dom:
            return False
        if not new:
            raise Inconsistency(f"length {truck.name} wiped out")
        self.lengths[truck] = new
        self.changes += 1
        return True

    def narrow_depot(self, allowed: Iterable) -> bool:
        new = self.depot & frozenset(allowed)
        if new == self.depot:
            return False
        if not new:
            raise Inconsistency("depot wiped out")
        self.depot = new
        self.changes += 1
        return True

    def require_count(self, truck: Truck, place: int, lo: int, hi: int) -> bool:
        """Enforce lo <= count(truck, place) <= hi on the truck's slots."""
        fixed = self.path.count(truck, place)
        open_slots = self.candidates(truck, place)
        if fixed > hi or fixed + len(open_slots) < lo:
            raise Inconsistency(f"count of {place} on {truck.name} outside [{lo}, {hi}]")
        changed = False
        if fixed == hi:
            for k in open_slots:
                changed |= self.remove_slot_value(truck, k, place)
        elif fixed + len(open_slots) == lo:
            for k in open_slots:
                changed |= self.narrow_slot(truck, k, (place,))
        return changed


# ─────────────────────────────────────────────────────────────────────────────
# Propagators
# ─────────────────────────────────────────────────────────────────────────────


class Constraint:
    """Base predicate: `propagate` narrows, `check` classifies."""

    name = "constraint"

    def __init__(self, registry: PlaceRegistry) -> None:
        self.registry = registry

    def propagate(self, store: DomainStore) -> bool:
        """Narrow domains; return True if anything changed."""
        raise NotImplementedError

    def check(self, store: DomainStore) -> CheckResult:
        probe = store.branch()
        try:
            self.propagate(probe)
        except Inconsistency:
            return CheckResult.VIOLATED
        finally:
            probe.undo()
        return CheckResult.SATISFIED if store.is_complete() else CheckResult.UNDETERMINED


class SentinelConsistency(Constraint):
    """Slot k (0-based) is absent exactly when k >= length."""

    name = "sentinel"

    def propagate(self, store: DomainStore) -> bool:
        changed = False
        for t in Truck:
            for k, dom in enumerate(store.slots[t]):
                if None not in dom:
                    changed |= store.narrow_length(t, [l for l in store.lengths[t] if l > k])
                elif len(dom) == 1:
                    changed |= store.narrow_length(t, [l for l in store.lengths[t] if l <= k])
            lo, hi = min(store.lengths[t]), max(store.lengths[t])
            for k in range(store.registry.max_path_length):
                if k < lo:
                    changed |= store.remove_slot_value(t, k, None)
                elif k >= hi:
                    changed |= store.narrow_slot(t, k, (None,))
        return changed


class Endpoint(Constraint):
    """First slot and slot length-1 hold the truck's own warehouse."""

    name = "endpoint"

    def propagate(self, store: DomainStore) -> bool:
        changed = False
        for t in Truck:
            wh = self.registry.warehouse(t)
            changed |= store.narrow_slot(t, 0, (wh,))
            changed |= store.narrow_length(
                t, [l for l in store.lengths[t] if wh in store.slots[t][l - 1]]
            )
            if len(store.lengths[t]) == 1:
                (length,) = store.lengths[t]
                changed |= store.narrow_slot(t, length - 1, (wh,))
        return changed


class OwnWarehouseCardinality(Constraint):
    """The own warehouse appears exactly twice: departure and return."""

    name = "own-warehouse-cardinality"

    def propagate(self, store: DomainStore) -> bool:
        changed = False
        for t in Truck:
            wh = self.registry.warehouse(t)
            changed |= store.require_count(t, wh, 2, 2)
            # Any later occurrence is the return leg, so it fixes the length
            for k in range(1, store.registry.max_path_length):
                if store.slots[t][k] == frozenset([wh]):
                    changed |= store.narrow_length(t, (k + 1,))
        return changed


class ForeignWarehouseCardinality(Constraint):
    """The other warehouse appears once if it is the depot, otherwise never."""

    name = "foreign-warehouse-cardinality"

    def propagate(self, store: DomainStore) -> bool:
        changed = False
        for t in Truck:
            other = self.registry.warehouse(t.other)
            if other not in store.depot:
                changed |= store.require_count(t, other, 0, 0)
            elif len(store.depot) == 1:
                changed |= store.require_count(t, other, 1, 1)
            else:
                changed |= store.require_count(t, other, 0, 1)
                if store.path.count(t, other) >= 1:
                    changed |= store.narrow_depot((other,))
                elif not store.candidates(t, other):
                    changed |= store.narrow_depot(store.depot - {other})
        return changed


class CustomerCoverage(Constraint):
    """Each customer is served exactly once overall; the depot customer once per truck."""

    name = "customer-coverage"

    def propagate(self, store: DomainStore) -> bool:
        changed = False
        for p in self.registry.customers:
            if store.depot == frozenset([p]):
                changed |= store.require_count(Truck.A, p, 1, 1)
                changed |= store.require_count(Truck.B, p, 1, 1)
                continue

            if p in store.depot:
                changed |= store.require_count(Truck.A, p, 0, 1)
                changed |= store.require_count(Truck.B, p, 0, 1)

            fixed = {t: store.path.count(t, p) for t in Truck}
            open_slots = {t: store.candidates(t, p) for t in Truck}
            total_fixed = fixed[Truck.A] + fixed[Truck.B]
            total_possible = total_fixed + len(open_slots[Truck.A]) + len(open_slots[Truck.B])
            if total_possible < 1:
                raise Inconsistency(f"customer {p} cannot be served")

            if p in store.depot:
                if fixed[Truck.A] >= 1 and fixed[Truck.B] >= 1:
                    changed |= store.narrow_depot((p,))
                elif any(fixed[t] + len(open_slots[t]) == 0 for t in Truck):
                    changed |= store.narrow_depot(store.depot - {p})
                continue

            # Not the depot: exactly one visit across both trucks
            if total_fixed > 1:
                raise Inconsistency(f"customer {p} served {total_fixed} times")
            if total_fixed == 1:
                for t in Truck:
                    for k in open_slots[t]:
                        changed |= store.remove_slot_value(t, k, p)
            elif total_possible == 1:
                (t,) = [t for t in Truck if open_slots[t]]
                changed |= store.narrow_slot(t, open_slots[t][0], (p,))
        return changed


class DepotPrecedence(Constraint):
    """Before any visit to the depot a truck serves only its own customers."""

    name = "depot-precedence"

    def propagate(self, store: DomainStore) -> bool:
        changed = False
        m = store.registry.max_path_length
        for t in Truck:
            own = frozenset(self.registry.customers_of(t))
            for d in sorted(p for p in store.depot if p is not None):
                slots = store.slots[t]
                depot_fixed = store.depot == frozenset([d])
                for i in range(1, m):
                    if slots[i] != frozenset([d]):
                        continue
                    if depot_fixed:
                        for j in range(1, i):
                            changed |= store.narrow_slot(t, j, own)
                    elif any(len(slots[j]) == 1 and not slots[j] <= own for j in range(1, i)):
                        changed |= store.narrow_depot(store.depot - {d})
                        break
                if not depot_fixed:
                    continue
                # Past the first non-own stop the depot can no longer be visited
                first_foreign = next(
                    (j for j in range(1, m) if len(slots[j]) == 1 and not slots[j] <= own),
                    None,
                )
                if first_foreign is not None:
                    for k in range(first_foreign + 1, m):
                        changed |= store.remove_slot_value(t, k, d)
        return changed


class DepotNecessity(Constraint):
    """A depot is used exactly when some truck serves the other warehouse's customers."""

    name = "depot-necessity"

    def propagate(self, store: DomainStore) -> bool:
        changed = False
        foreign = {t: frozenset(self.registry.customers_of(t.other)) for t in Truck}

        if store.depot == frozenset([None]):
            for t in Truck:
                for k in range(store.registry.max_path_length):
                    if store.slots[t][k] & foreign[t]:
                        changed |= store.narrow_slot(t, k, store.slots[t][k] - foreign[t])
            return changed

        fixed_cross = 0
        open_cross: list[tuple[Truck, int]] = []
        for t in Truck:
            for k, dom in enumerate(store.slots[t]):
                if len(dom) == 1:
                    fixed_cross += 1 if dom <= foreign[t] else 0
                elif dom & foreign[t]:
                    open_cross.append((t, k))

        if None not in store.depot:
            if fixed_cross == 0 and not open_cross:
                raise Inconsistency("depot chosen but no cross-warehouse service possible")
            if fixed_cross == 0 and len(open_cross) == 1:
                t, k = open_cross[0]
                changed |= store.narrow_slot(t, k, foreign[t])
        elif fixed_cross >= 1:
            changed |= store.narrow_depot(store.depot - {None})
        elif not open_cross:
            changed |= store.narrow_depot((None,))
        return changed


class LengthIdentity(Constraint):
    """len_A + len_B = 4 + 2n + [depot present]. Implied by the rest; prunes early."""

    name = "length-identity"

    def propagate(self, store: DomainStore) -> bool:
        base = 4 + 2 * self.registry.customers_per_warehouse
        extras = set()
        if None in store.depot:
            extras.add(0)
        if store.depot - {None}:
            extras.add(1)

        la, lb = store.lengths[Truck.A], store.lengths[Truck.B]
        new_la = [a for a in la if any(base + e - a in lb for e in extras)]
        new_lb = [b for b in lb if any(base + e - b in la for e in extras)]
        supported = {e for e in extras if any(base + e - a in lb for a in la)}

        changed = store.narrow_length(Truck.A, new_la)
        changed |= store.narrow_length(Truck.B, new_lb)
        if 0 not in supported:
            changed |= store.narrow_depot(store.depot - {None})
        if 1 not in supported:
            changed |= store.narrow_depot((None,))
        return changed


# ─────────────────────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────────────────────


class ConstraintStore:
    """The full predicate set, run to a fixpoint on every search node."""

    def __init__(self, registry: PlaceRegistry, use_length_identity: bool = True) -> None:
        self.registry = registry
        self.constraints: list[Constraint] = [
            SentinelConsistency(registry),
            Endpoint(registry),
            OwnWarehouseCardinality(registry),
            ForeignWarehouseCardinality(registry),
            CustomerCoverage(registry),
            DepotPrecedence(registry),
            DepotNecessity(registry),
        ]
        if use_length_identity:
            self.constraints.append(LengthIdentity(registry))

    def propagate(self, store: DomainStore) -> CheckResult:
        """Run every propagator until nothing changes.

        A propagator that made no change is not run again until some other
        propagator narrows the store.
        """
        stable_at = [-1] * len(self.constraints)
        try:
            pending = True
            while pending:
                pending = False
                for i, constraint in enumerate(self.constraints):
                    if stable_at[i] == store.changes:
                        continue
                    if constraint.propagate(store):
                        pending = True
                    else:
                        stable_at[i] = store.changes
        except Inconsistency:
            return CheckResult.VIOLATED
        return CheckResult.SATISFIED if store.is_complete() else CheckResult.UNDETERMINED

    def check(self, store: DomainStore) -> CheckResult:
        """Classify a store without narrowing it."""
        results = [c.check(store) for c in self.constraints]
        if CheckResult.VIOLATED in results:
            return CheckResult.VIOLATED
        if all(r is CheckResult.SATISFIED for r in results):
            return CheckResult.SATISFIED
        return CheckResult.UNDETERMINED

    def violations(
        self,
        route_a: Iterable[int],
        route_b: Iterable[int],
        depot: int | None,
    ) -> list[str]:
        """Names of the predicates a concrete solution breaks (empty if feasible)."""
        store = DomainStore.from_assignment(self.registry, route_a, route_b, depot)
        return [c.name for c in self.constraints if c.check(store) is CheckResult.VIOLATED]
