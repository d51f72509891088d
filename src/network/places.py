"""Place registry for the two-warehouse network.

Places are numbered 1..2(n+1):
- 1                 warehouse A
- 2 .. n+1          customers of A
- n+2               warehouse B
- n+3 .. 2n+2       customers of B

The registry is the single source of truth for which warehouse owns which
customer. Routing modules only ever ask it questions; they never do id
arithmetic themselves.
"""

from __future__ import annotations

from enum import Enum, auto

import networkx as nx
import numpy as np


class Truck(Enum):
    """The two trucks, one per warehouse."""

    A = 0
    B = 1

    @property
    def other(self) -> Truck:
        return Truck.B if self is Truck.A else Truck.A


class PlaceKind(Enum):
    """Types of places in the network."""

    WAREHOUSE_A = auto()
    WAREHOUSE_B = auto()
    CUSTOMER_OF_A = auto()
    CUSTOMER_OF_B = auto()


class PlaceRegistry:
    """Enumerates warehouses and customers for a given customer count.

    Attributes:
        customers_per_warehouse: Customers owned by each warehouse.
        n_places: Size of the place universe.
        max_path_length: Slots per truck path (n_places + 1).
    """

    def __init__(self, customers_per_warehouse: int) -> None:
        if customers_per_warehouse < 1:
            raise ValueError(f"customers_per_warehouse must be >= 1, got {customers_per_warehouse}")
        self.customers_per_warehouse = customers_per_warehouse
        self.n_places = 2 * (customers_per_warehouse + 1)
        self.max_path_length = self.n_places + 1

        n = customers_per_warehouse
        self._warehouse = {Truck.A: 1, Truck.B: n + 2}
        self._customers = {
            Truck.A: tuple(range(2, n + 2)),
            Truck.B: tuple(range(n + 3, 2 * n + 3)),
        }
        self._kind: dict[int, PlaceKind] = {1: PlaceKind.WAREHOUSE_A, n + 2: PlaceKind.WAREHOUSE_B}
        for p in self._customers[Truck.A]:
            self._kind[p] = PlaceKind.CUSTOMER_OF_A
        for p in self._customers[Truck.B]:
            self._kind[p] = PlaceKind.CUSTOMER_OF_B

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def places(self) -> tuple[int, ...]:
        """All place ids in ascending order."""
        return tuple(range(1, self.n_places + 1))

    @property
    def customers(self) -> tuple[int, ...]:
        """All customer ids in ascending order."""
        return self._customers[Truck.A] + self._customers[Truck.B]

    def warehouse(self, truck: Truck) -> int:
        """Home warehouse of a truck."""
        return self._warehouse[truck]

    def customers_of(self, truck: Truck) -> tuple[int, ...]:
        """Customers owned by a truck's warehouse."""
        return self._customers[truck]

    def kind(self, place: int) -> PlaceKind:
        """Classification of a place id."""
        try:
            return self._kind[place]
        except KeyError:
            raise ValueError(f"Unknown place id {place} (valid: 1..{self.n_places})") from None

    def is_warehouse(self, place: int) -> bool:
        return self.kind(place) in (PlaceKind.WAREHOUSE_A, PlaceKind.WAREHOUSE_B)

    def is_customer(self, place: int) -> bool:
        return not self.is_warehouse(place)

    def owner(self, place: int) -> Truck:
        """Truck whose warehouse is or owns this place."""
        kind = self.kind(place)
        if kind in (PlaceKind.WAREHOUSE_A, PlaceKind.CUSTOMER_OF_A):
            return Truck.A
        return Truck.B

    def is_own_customer(self, truck: Truck, place: int) -> bool:
        return self.is_customer(place) and self.owner(place) is truck

    def is_foreign_customer(self, truck: Truck, place: int) -> bool:
        return self.is_customer(place) and self.owner(place) is not truck

    def label(self, place: int) -> str:
        """Short human-readable label, e.g. "WH-A" or "C3(B)"."""
        kind = self.kind(place)
        if kind is PlaceKind.WAREHOUSE_A:
            return "WH-A"
        if kind is PlaceKind.WAREHOUSE_B:
            return "WH-B"
        return f"C{place}({self.owner(place).name})"

    # ── Graph view ───────────────────────────────────────────────────

    def to_graph(self, distances: np.ndarray) -> nx.DiGraph:
        """Complete directed graph of places weighted by distance.

        Nodes carry `kind` and `label` attributes; edges carry `distance`.
        Used for plotting and for the shortest-path table below.
        """
        g = nx.DiGraph()
        for p in self.places:
            g.add_node(p, kind=self.kind(p), label=self.label(p))
        for p in self.places:
            for q in self.places:
                if p != q:
                    g.add_edge(p, q, distance=int(distances[p - 1, q - 1]))
        return g

    def shortest_distances(self, distances: np.ndarray) -> np.ndarray:
        """All-pairs shortest-path distances, indexed by place id - 1.

        The matrix need not satisfy the triangle inequality, so a direct leg
        can be longer than a detour. Any walk between two places costs at
        least the entry here.
        """
        graph = self.to_graph(distances)
        lengths = dict(nx.all_pairs_dijkstra_path_length(graph, weight="distance"))
        size = self.n_places
        table = np.zeros((size, size), dtype=np.int64)
        for p, row in lengths.items():
            for q, d in row.items():
                table[p - 1, q - 1] = int(d)
        return table
