"""Smoke tests for the route plots.

Run with: pytest tests/test_visualizations.py -v
"""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402

from src.analysis.visualizations import (  # noqa: E402
    place_positions,
    plot_distance_matrix,
    plot_routes,
)
from src.network.config import ProblemConfig  # noqa: E402
from src.routing.solver import SplitDeliverySolver  # noqa: E402


@pytest.fixture
def solver() -> SplitDeliverySolver:
    return SplitDeliverySolver(
        ProblemConfig(
            customers_per_warehouse=1,
            distance_matrix=[
                [0, 1, 20, 20],
                [1, 0, 2, 1],
                [20, 2, 0, 5],
                [20, 1, 5, 0],
            ],
        )
    )


def test_positions_cover_every_place(solver):
    pos = place_positions(solver.registry, solver.distances)
    assert set(pos) == set(solver.registry.places)
    assert pos == place_positions(solver.registry, solver.distances)


def test_plot_routes(solver, tmp_path):
    result = solver.solve()
    fig = plot_routes(solver.registry, solver.distances, result.solution)
    out = tmp_path / "routes.png"
    fig.savefig(out)
    plt.close(fig)
    assert out.stat().st_size > 0


def test_plot_naive_routes_and_matrix(solver):
    naive = solver.evaluator.naive_solution()
    fig = plot_routes(solver.registry, solver.distances, naive, title="naive", show_distances=False)
    assert fig.axes[0].get_title() == "naive"
    plt.close(fig)
    fig = plot_distance_matrix(solver.registry, solver.distances)
    plt.close(fig)
