"""Tests for the place registry, path state and configuration layer.

Run with: pytest tests/test_network.py -v
"""

import numpy as np
import pytest

from src.network.config import (
    ConfigurationError,
    ProblemConfig,
    SolverConfig,
    load_config,
    validate_problem,
    validate_solver,
)
from src.network.places import PlaceKind, PlaceRegistry, Truck
from src.routing.paths import PathState


@pytest.fixture
def registry() -> PlaceRegistry:
    """Two customers per warehouse: places 1..6."""
    return PlaceRegistry(2)


@pytest.fixture
def matrix_n1() -> list[list[int]]:
    return [
        [0, 5, 9, 3],
        [5, 0, 2, 6],
        [9, 2, 0, 5],
        [3, 6, 5, 0],
    ]


class TestPlaceRegistry:
    """Unit tests for the place layout."""

    def test_layout(self, registry):
        assert registry.n_places == 6
        assert registry.max_path_length == 7
        assert registry.places == (1, 2, 3, 4, 5, 6)
        assert registry.warehouse(Truck.A) == 1
        assert registry.warehouse(Truck.B) == 4
        assert registry.customers_of(Truck.A) == (2, 3)
        assert registry.customers_of(Truck.B) == (5, 6)
        assert registry.customers == (2, 3, 5, 6)

    def test_kinds(self, registry):
        assert registry.kind(1) is PlaceKind.WAREHOUSE_A
        assert registry.kind(3) is PlaceKind.CUSTOMER_OF_A
        assert registry.kind(4) is PlaceKind.WAREHOUSE_B
        assert registry.kind(6) is PlaceKind.CUSTOMER_OF_B

    def test_ownership(self, registry):
        assert registry.owner(1) is Truck.A
        assert registry.owner(5) is Truck.B
        assert registry.is_own_customer(Truck.A, 2)
        assert not registry.is_own_customer(Truck.A, 1)
        assert registry.is_foreign_customer(Truck.A, 5)
        assert not registry.is_foreign_customer(Truck.B, 5)
        assert registry.is_warehouse(4)
        assert registry.is_customer(3)

    def test_labels(self, registry):
        assert registry.label(1) == "WH-A"
        assert registry.label(4) == "WH-B"
        assert registry.label(2) == "C2(A)"
        assert registry.label(6) == "C6(B)"

    def test_unknown_place_rejected(self, registry):
        with pytest.raises(ValueError):
            registry.kind(0)
        with pytest.raises(ValueError):
            registry.kind(7)

    def test_zero_customers_rejected(self):
        with pytest.raises(ValueError):
            PlaceRegistry(0)

    def test_truck_other(self):
        assert Truck.A.other is Truck.B
        assert Truck.B.other is Truck.A

    def test_to_graph(self, matrix_n1):
        reg = PlaceRegistry(1)
        g = reg.to_graph(np.array(matrix_n1))
        assert g.number_of_nodes() == 4
        assert g.number_of_edges() == 12
        assert g[1][3]["distance"] == 9
        assert g.nodes[4]["kind"] is PlaceKind.CUSTOMER_OF_B
        assert g.nodes[3]["label"] == "WH-B"

    def test_shortest_distances_take_detours(self, matrix_n1):
        sp = PlaceRegistry(1).shortest_distances(np.array(matrix_n1))
        assert sp.shape == (4, 4)
        assert sp[0, 2] == 7  # 1 → 2 → 3 beats the direct 9
        assert sp[2, 0] == 7
        assert sp[0, 1] == 5
        assert (np.diag(sp) == 0).all()


class TestPathState:
    """Slot assignment and the derived cardinality counts."""

    def test_assign_updates_counts(self, registry):
        path = PathState(registry)
        path.assign(Truck.A, 0, 1)
        path.assign(Truck.A, 1, 2)
        path.assign(Truck.A, 2, 1)
        assert path.count(Truck.A, 1) == 2
        assert path.count(Truck.A, 2) == 1
        assert path.count(Truck.B, 1) == 0
        assert path.route(Truck.A) == (1, 2, 1)
        assert path.length(Truck.A) == 3

    def test_reassign_moves_count(self, registry):
        path = PathState(registry)
        path.assign(Truck.B, 1, 5)
        path.assign(Truck.B, 1, 6)
        assert path.count(Truck.B, 5) == 0
        assert path.count(Truck.B, 6) == 1

    def test_retract(self, registry):
        path = PathState(registry)
        path.assign(Truck.A, 1, 3)
        path.retract(Truck.A, 1)
        assert path.value(Truck.A, 1) is None
        assert path.count(Truck.A, 3) == 0
        # Retracting an absent slot is a no-op
        path.retract(Truck.A, 1)
        assert path.count(Truck.A, 3) == 0

    def test_assign_none_retracts(self, registry):
        path = PathState(registry)
        path.assign(Truck.A, 0, 1)
        path.assign(Truck.A, 0, None)
        assert path.count(Truck.A, 1) == 0
        assert path.length(Truck.A) == 0

    def test_absent_slots_not_counted(self, registry):
        path = PathState(registry)
        path.assign(Truck.A, 0, 1)
        path.assign(Truck.A, 3, 1)
        assert path.slots(Truck.A)[:4] == (1, None, None, 1)
        assert path.length(Truck.A) == 4
        assert path.route(Truck.A) == (1, 1)
        assert sum(path.cardinality(Truck.A).values()) == 2

    def test_unknown_place_rejected(self, registry):
        path = PathState(registry)
        with pytest.raises(ValueError):
            path.assign(Truck.A, 0, 99)

    def test_copy_is_independent(self, registry):
        path = PathState(registry)
        path.assign(Truck.A, 0, 1)
        clone = path.copy()
        clone.assign(Truck.A, 1, 2)
        assert path.count(Truck.A, 2) == 0
        assert clone.count(Truck.A, 2) == 1
        assert clone.count(Truck.A, 1) == 1


class TestProblemValidation:
    """Configuration errors are raised before any search."""

    def test_valid_matrix_normalised(self, matrix_n1):
        m = [row[:] for row in matrix_n1]
        m[2][2] = 42
        out = validate_problem(ProblemConfig(1, m))
        assert out.dtype == np.int64
        assert out.shape == (4, 4)
        assert out[2, 2] == 0
        assert out[0, 2] == 9

    def test_integral_floats_accepted(self, matrix_n1):
        m = np.array(matrix_n1, dtype=float)
        out = validate_problem(ProblemConfig(1, m))
        assert out[1, 2] == 2

    @pytest.mark.parametrize("n", [0, 7, -1])
    def test_customer_count_out_of_range(self, n):
        size = 2 * (max(n, 0) + 1)
        with pytest.raises(ConfigurationError):
            validate_problem(ProblemConfig(n, np.zeros((size, size), dtype=int)))

    def test_customer_count_not_int(self, matrix_n1):
        with pytest.raises(ConfigurationError):
            validate_problem(ProblemConfig(1.0, matrix_n1))
        with pytest.raises(ConfigurationError):
            validate_problem(ProblemConfig(True, matrix_n1))

    def test_non_square(self):
        with pytest.raises(ConfigurationError, match="square"):
            validate_problem(ProblemConfig(1, np.zeros((4, 3), dtype=int)))

    def test_ragged(self):
        with pytest.raises(ConfigurationError):
            validate_problem(ProblemConfig(1, [[0, 1, 2, 3], [1, 0], [2, 1, 0, 1], [3, 2, 1, 0]]))

    def test_wrong_size(self, matrix_n1):
        with pytest.raises(ConfigurationError, match="6x6"):
            validate_problem(ProblemConfig(2, matrix_n1))

    def test_non_integer_entries(self, matrix_n1):
        m = np.array(matrix_n1, dtype=float)
        m[0, 1] = 2.5
        with pytest.raises(ConfigurationError, match="integers"):
            validate_problem(ProblemConfig(1, m))

    def test_negative_entries(self, matrix_n1):
        m = [row[:] for row in matrix_n1]
        m[3][0] = -1
        with pytest.raises(ConfigurationError, match="nonnegative"):
            validate_problem(ProblemConfig(1, m))

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)


class TestSolverValidation:
    def test_defaults_valid(self):
        validate_solver(SolverConfig())

    @pytest.mark.parametrize(
        "kwargs",
        [{"workers": 0}, {"time_limit_s": 0.0}, {"time_limit_s": -1.0}, {"node_limit": 0}],
    )
    def test_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            validate_solver(SolverConfig(**kwargs))


class TestLoadConfig:
    """YAML loading."""

    def test_load(self, tmp_path):
        path = tmp_path / "instance.yaml"
        path.write_text(
            "problem:\n"
            "  customers_per_warehouse: 1\n"
            "  distance_matrix:\n"
            "    - [0, 5, 9, 3]\n"
            "    - [5, 0, 2, 6]\n"
            "    - [9, 2, 0, 5]\n"
            "    - [3, 6, 5, 0]\n"
            "solver:\n"
            "  node_limit: 1000\n"
            "  workers: 2\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.problem.customers_per_warehouse == 1
        assert config.problem.distance_matrix[0] == [0, 5, 9, 3]
        assert config.solver.node_limit == 1000
        assert config.solver.workers == 2
        assert config.solver.use_length_identity is True

    def test_solver_section_optional(self, tmp_path):
        path = tmp_path / "instance.yaml"
        path.write_text(
            "problem:\n  customers_per_warehouse: 1\n  distance_matrix: [[0]]\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.solver == SolverConfig()

    def test_missing_problem_section(self, tmp_path):
        path = tmp_path / "instance.yaml"
        path.write_text("solver:\n  workers: 2\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="problem"):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "instance.yaml"
        path.write_text(
            "problem:\n  customers_per_warehouse: 1\n  distance_matrix: [[0]]\n  colour: red\n",
            encoding="utf-8",
        )
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_default_instance_loads(self):
        from pathlib import Path

        path = Path(__file__).resolve().parents[1] / "config" / "default_instance.yaml"
        config = load_config(path)
        matrix = validate_problem(config.problem)
        assert matrix.shape == (6, 6)
        assert np.array_equal(matrix, matrix.T)
