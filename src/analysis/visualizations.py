"""
Route visualization.

Places carry no coordinates, only pairwise distances, so they are laid out
with a force-directed embedding in which short legs pull places together.
The plot then shows:
- Warehouses as large squares, customers as circles, coloured by owner
- Truck A and truck B tours as directed, colour-coded arrows
- The depot (if any) ringed in black

Usage:
    from src.analysis.visualizations import plot_routes

    fig = plot_routes(solver.registry, solver.distances, result.solution)
    fig.savefig("routes.png", dpi=150, bbox_inches="tight")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import matplotlib.pyplot as plt
import networkx as nx
import numpy as np

from src.network.places import PlaceKind, PlaceRegistry, Truck

if TYPE_CHECKING:
    from matplotlib.axes import Axes
    from matplotlib.figure import Figure

    from src.routing.objective import Solution


# ── Styling constants ────────────────────────────────────────────

TRUCK_COLORS: dict[Truck, str] = {Truck.A: "#3182bd", Truck.B: "#e6550d"}
WAREHOUSE_SIZE = 420
CUSTOMER_SIZE = 180
DEPOT_RING_SIZE = 720

NODE_STYLES: dict[PlaceKind, dict] = {
    PlaceKind.WAREHOUSE_A: {"color": "#3182bd", "marker": "s", "size": WAREHOUSE_SIZE},
    PlaceKind.WAREHOUSE_B: {"color": "#e6550d", "marker": "s", "size": WAREHOUSE_SIZE},
    PlaceKind.CUSTOMER_OF_A: {"color": "#9ecae1", "marker": "o", "size": CUSTOMER_SIZE},
    PlaceKind.CUSTOMER_OF_B: {"color": "#fdae6b", "marker": "o", "size": CUSTOMER_SIZE},
}


def place_positions(
    registry: PlaceRegistry,
    distances: np.ndarray,
    seed: int = 7,
) -> dict[int, tuple[float, float]]:
    """2-D positions for every place from the distance matrix alone."""
    directed = registry.to_graph(distances)
    g = nx.Graph()
    g.add_nodes_from(directed.nodes(data=True))
    for u, v, data in directed.edges(data=True):
        # Symmetrise; spring weights are attractions, so invert distance
        d = min(data["distance"], directed[v][u]["distance"])
        g.add_edge(u, v, weight=1.0 / (1.0 + d))
    pos = nx.spring_layout(g, weight="weight", seed=seed)
    return {p: (float(x), float(y)) for p, (x, y) in pos.items()}


def plot_routes(
    registry: PlaceRegistry,
    distances: np.ndarray,
    solution: Solution,
    title: str | None = None,
    figsize: tuple[float, float] = (9.0, 7.0),
    show_distances: bool = True,
) -> Figure:
    """Render both tours over the embedded place graph.

    Args:
        registry: Place registry of the instance.
        distances: Validated distance matrix.
        solution: Solution whose routes are drawn.
        title: Plot title. Defaults to the cost summary.
        figsize: Figure size in inches.
        show_distances: Annotate each leg with its length.

    Returns:
        matplotlib Figure object.
    """
    positions = place_positions(registry, distances)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.set_facecolor("#fdfdfd")
    fig.patch.set_facecolor("white")

    for truck in Truck:
        _draw_route(
            ax, positions, distances, solution.route(truck), TRUCK_COLORS[truck], show_distances
        )
    _draw_places(ax, registry, positions)

    if solution.depot is not None:
        x, y = positions[solution.depot]
        ax.scatter(
            [x],
            [y],
            s=DEPOT_RING_SIZE,
            facecolors="none",
            edgecolors="black",
            linewidths=2.0,
            zorder=6,
            label="Depot",
        )

    for truck in Truck:
        ax.plot(
            [],
            [],
            color=TRUCK_COLORS[truck],
            linewidth=2,
            label=f"Truck {truck.name} ({solution.distance(truck)})",
        )

    ax.set_title(
        title or f"Split delivery: cost {solution.cost}",
        fontsize=14,
        fontweight="bold",
        pad=12,
    )
    ax.legend(loc="upper left", bbox_to_anchor=(1.01, 1), fontsize=9, framealpha=0.95)
    ax.set_aspect("equal")
    ax.axis("off")
    fig.tight_layout()
    return fig


def _draw_route(
    ax: Axes,
    positions: dict,
    distances: np.ndarray,
    route: tuple[int, ...],
    color: str,
    show_distances: bool,
) -> None:
    for a, b in zip(route, route[1:]):
        if a == b:
            continue
        (x0, y0), (x1, y1) = positions[a], positions[b]
        ax.annotate(
            "",
            xy=(x1, y1),
            xytext=(x0, y0),
            arrowprops={
                "arrowstyle": "-|>",
                "color": color,
                "lw": 2.0,
                "shrinkA": 12,
                "shrinkB": 12,
                "alpha": 0.85,
            },
            zorder=3,
        )
        if show_distances:
            ax.text(
                (x0 + x1) / 2,
                (y0 + y1) / 2,
                str(int(distances[a - 1, b - 1])),
                fontsize=8,
                color=color,
                ha="center",
                va="center",
                zorder=4,
                bbox={"boxstyle": "round,pad=0.15", "fc": "white", "ec": "none", "alpha": 0.8},
            )


def _draw_places(ax: Axes, registry: PlaceRegistry, positions: dict) -> None:
    for p in registry.places:
        style = NODE_STYLES[registry.kind(p)]
        x, y = positions[p]
        ax.scatter(
            [x],
            [y],
            c=style["color"],
            s=style["size"],
            marker=style["marker"],
            edgecolors="white",
            linewidths=1.0,
            zorder=5,
        )
        ax.annotate(
            registry.label(p),
            (x, y),
            textcoords="offset points",
            xytext=(8, 8),
            fontsize=8,
            zorder=7,
        )


def plot_distance_matrix(registry: PlaceRegistry, distances: np.ndarray) -> Figure:
    """Heatmap of the distance matrix with place labels."""
    fig, ax = plt.subplots(1, 1, figsize=(7, 6))
    im = ax.imshow(distances, cmap="viridis")
    labels = [registry.label(p) for p in registry.places]
    ax.set_xticks(range(len(labels)), labels=labels, rotation=45, ha="right", fontsize=8)
    ax.set_yticks(range(len(labels)), labels=labels, fontsize=8)
    for i in range(distances.shape[0]):
        for j in range(distances.shape[1]):
            ax.text(
                j, i, str(int(distances[i, j])), ha="center", va="center", color="white", fontsize=7
            )
    fig.colorbar(im, ax=ax, label="distance")
    ax.set_title("Distance matrix", fontsize=12, fontweight="bold")
    fig.tight_layout()
    return fig
