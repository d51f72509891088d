"""Tests for the constraint store: predicate checks on concrete routes and
domain propagation on partial assignments.

Run with: pytest tests/test_constraints.py -v
"""

import pytest

from src.network.places import PlaceRegistry, Truck
from src.routing.constraints import (
    DEPOT,
    CheckResult,
    ConstraintStore,
    CustomerCoverage,
    DepotPrecedence,
    DomainStore,
    Endpoint,
    LengthIdentity,
    Var,
    value_order,
)


# Places for n=1: 1 = WH-A, 2 = C(A), 3 = WH-B, 4 = C(B)


@pytest.fixture
def registry() -> PlaceRegistry:
    return PlaceRegistry(1)


@pytest.fixture
def store(registry) -> ConstraintStore:
    return ConstraintStore(registry)


# ── Test: Concrete routes ─────────────────────────────────────────


class TestViolations:
    """Predicate checks on fully assigned routes."""

    def test_naive_routes_feasible(self, store):
        assert store.violations((1, 2, 1), (3, 4, 3), None) == []

    def test_customer_depot_feasible(self, store):
        assert store.violations((1, 2, 1), (3, 2, 4, 3), 2) == []

    def test_warehouse_depot_feasible(self, store):
        # Truck A fetches B's goods at WH-B; truck B stays home
        assert store.violations((1, 2, 3, 4, 1), (3, 3), 3) == []

    def test_missing_return(self, store):
        assert "endpoint" in store.violations((1, 2), (3, 4, 3), None)

    def test_wrong_start(self, store):
        assert "endpoint" in store.violations((2, 1), (3, 4, 3), None)

    def test_extra_own_warehouse_visit(self, store):
        violated = store.violations((1, 1, 2, 1), (3, 4, 3), None)
        assert "own-warehouse-cardinality" in violated

    def test_foreign_warehouse_without_depot(self, store):
        violated = store.violations((1, 2, 3, 1), (3, 4, 3), None)
        assert "foreign-warehouse-cardinality" in violated

    def test_customer_served_twice(self, store):
        assert "customer-coverage" in store.violations((1, 2, 1), (3, 4, 2, 3), None)

    def test_customer_not_served(self, store):
        assert "customer-coverage" in store.violations((1, 1), (3, 4, 3), None)

    def test_depot_customer_must_be_in_both_paths(self, store):
        assert "customer-coverage" in store.violations((1, 2, 4, 1), (3, 3), 4)

    def test_cross_service_without_depot(self, store):
        # Lengths 4 + 2 still add up, so only the depot rule is broken
        assert store.violations((1, 2, 4, 1), (3, 3), None) == ["depot-necessity"]

    def test_length_identity_broken(self, store):
        # A depot needs one extra stop; these routes have the no-depot total
        violated = store.violations((1, 2, 1), (3, 4, 3), 2)
        assert "length-identity" in violated
        assert "depot-necessity" in violated

    def test_depot_without_cross_service(self, store):
        assert "depot-necessity" in store.violations((1, 2, 1), (3, 4, 3), 2)

    def test_foreign_stop_before_depot(self, store):
        # A serves B's customer before reaching the depot
        assert store.violations((1, 4, 2, 1), (3, 2, 3), 2) == ["depot-precedence"]

    def test_own_warehouse_depot_blocks_cross_service(self, store):
        # With WH-B as depot, truck B may only serve its own customers
        violated = store.violations((1, 3, 4, 1), (3, 2, 3), 3)
        assert "depot-precedence" in violated

    def test_length_identity_can_be_disabled(self, registry):
        relaxed = ConstraintStore(registry, use_length_identity=False)
        violated = relaxed.violations((1, 2, 4, 1), (3, 3), None)
        assert "length-identity" not in violated
        assert "depot-necessity" in violated

    def test_route_too_long(self, store):
        with pytest.raises(ValueError):
            store.violations((1, 2, 2, 2, 2, 1), (3, 4, 3), None)


class TestConstraintCheck:
    """Three-valued check() on single predicates."""

    def test_satisfied_on_complete(self, registry):
        full = DomainStore.from_assignment(registry, (1, 2, 1), (3, 4, 3), None)
        assert Endpoint(registry).check(full) is CheckResult.SATISFIED
        assert LengthIdentity(registry).check(full) is CheckResult.SATISFIED

    def test_undetermined_on_partial(self, registry):
        assert CustomerCoverage(registry).check(DomainStore(registry)) is CheckResult.UNDETERMINED

    def test_violated_on_partial(self, registry):
        partial = DomainStore(registry)
        partial.assign(Var(Truck.A, 0), 2)
        assert Endpoint(registry).check(partial) is CheckResult.VIOLATED

    def test_check_leaves_domains_untouched(self, registry):
        partial = DomainStore(registry)
        before = list(partial.slots[Truck.A])
        Endpoint(registry).check(partial)
        assert partial.slots[Truck.A] == before
        assert partial.path.route(Truck.A) == ()

    def test_store_check_aggregates(self, registry, store):
        good = DomainStore.from_assignment(registry, (1, 2, 1), (3, 4, 3), None)
        bad = DomainStore.from_assignment(registry, (1, 2, 1), (3, 4, 3), 2)
        assert store.check(good) is CheckResult.SATISFIED
        assert store.check(bad) is CheckResult.VIOLATED
        assert store.check(DomainStore(registry)) is CheckResult.UNDETERMINED


# ── Test: Propagation ─────────────────────────────────────────────


class TestPropagation:
    """Domain narrowing on partial assignments."""

    def test_root_fixes_departures(self, registry, store):
        root = DomainStore(registry)
        assert store.propagate(root) is CheckResult.UNDETERMINED
        assert root.domain(Var(Truck.A, 0)) == frozenset([1])
        assert root.domain(Var(Truck.B, 0)) == frozenset([3])
        assert root.path.value(Truck.A, 0) == 1
        assert root.path.value(Truck.B, 0) == 3
        assert None not in root.domain(Var(Truck.A, 1))

    def test_undo_restores_path(self, registry, store):
        root = DomainStore(registry)
        store.propagate(root)
        root.undo()
        assert root.path.route(Truck.A) == ()
        assert root.path.count(Truck.B, 3) == 0

    def test_no_depot_forbids_cross_service(self, registry, store):
        root = DomainStore(registry)
        root.assign(DEPOT, None)
        assert store.propagate(root) is not CheckResult.VIOLATED
        for k in range(registry.max_path_length):
            assert 4 not in root.domain(Var(Truck.A, k))
            assert 3 not in root.domain(Var(Truck.A, k))
            assert 2 not in root.domain(Var(Truck.B, k))
            assert 1 not in root.domain(Var(Truck.B, k))

    def test_conflicting_assignment_violated(self, registry, store):
        root = DomainStore(registry)
        root.assign(DEPOT, None)
        root.assign(Var(Truck.A, 1), 4)
        assert store.propagate(root) is CheckResult.VIOLATED

    def test_fixed_depot_customer_required_in_both(self, registry, store):
        root = DomainStore(registry)
        root.assign(DEPOT, 2)
        root.assign(Var(Truck.A, 2), 1)  # A returns after one stop
        assert store.propagate(root) is not CheckResult.VIOLATED
        # The only stop left for A must be the depot customer
        assert root.domain(Var(Truck.A, 1)) == frozenset([2])
        assert root.lengths[Truck.A] == frozenset([3])

    def test_length_identity_narrows_other_truck(self, registry, store):
        root = DomainStore(registry)
        root.assign(DEPOT, None)
        root.assign(Var(Truck.A, 2), 1)
        assert store.propagate(root) is not CheckResult.VIOLATED
        # 3 + len_B = 4 + 2n
        assert root.lengths[Truck.B] == frozenset([3])

    def test_precedence_prunes_depot(self, registry):
        root = DomainStore(registry)
        root.assign(Var(Truck.A, 1), 4)
        root.assign(Var(Truck.A, 2), 2)
        DepotPrecedence(registry).propagate(root)
        # A visits B's customer before 2, so 2 cannot be the depot
        assert 2 not in root.depot

    def test_complete_store_propagates_to_satisfied(self, registry, store):
        full = DomainStore.from_assignment(registry, (1, 2, 1), (3, 2, 4, 3), 2)
        assert store.propagate(full) is CheckResult.SATISFIED

    def test_branch_shares_path_and_clone_does_not(self, registry):
        root = DomainStore(registry)
        child = root.branch()
        child.assign(Var(Truck.A, 0), 1)
        assert root.path.value(Truck.A, 0) == 1
        assert root.domain(Var(Truck.A, 0)) != frozenset([1])
        child.undo()
        clone = root.clone()
        clone.assign(Var(Truck.A, 0), 1)
        assert root.path.value(Truck.A, 0) is None


def test_value_order_puts_absent_first():
    assert sorted([3, None, 1, 2], key=value_order) == [None, 1, 2, 3]


def test_variable_order(registry):
    variables = DomainStore(registry).variables()
    assert variables[0] == Var(Truck.A, 0)
    assert variables[registry.max_path_length] == Var(Truck.B, 0)
    assert variables[-1] == DEPOT
    assert len(variables) == 2 * registry.max_path_length + 1
