"""
Path representation and cardinality tracking for the two trucks.

Each truck owns `max_path_length` slots. A slot holds a place id or None
(absent). Slots are 0-based here: slot 0 is the departure, slot L-1 the
return, and every slot from L onwards is None.

The cardinality tracker is kept in lock-step with the slots: every
`assign` / `retract` adjusts the per-truck count of the affected place, so
`count()` is O(1) and always equals the number of non-None slots holding
that place. Counts are never set directly.
"""

from __future__ import annotations

import numpy as np

from src.network.places import PlaceRegistry, Truck


class PathState:
    """Mutable slot assignment for both trucks plus derived place counts.

    Attributes:
        registry: Place registry the slots refer to.
        max_path_length: Number of slots per truck.
    """

    def __init__(self, registry: PlaceRegistry) -> None:
        self.registry = registry
        self.max_path_length = registry.max_path_length
        self._slots: dict[Truck, list[int | None]] = {
            t: [None] * self.max_path_length for t in Truck
        }
        # Row per truck, column per place id (column 0 unused)
        self._counts = np.zeros((len(Truck), registry.n_places + 1), dtype=np.int64)

    # ── Mutation ─────────────────────────────────────────────────────

    def assign(self, truck: Truck, slot: int, place: int | None) -> None:
        """Set a slot, keeping counts consistent. Assigning None retracts."""
        if place is None:
            self.retract(truck, slot)
            return
        self.registry.kind(place)  # validates the id
        current = self._slots[truck][slot]
        if current is not None:
            self._counts[truck.value, current] -= 1
        self._slots[truck][slot] = place
        self._counts[truck.value, place] += 1

    def retract(self, truck: Truck, slot: int) -> None:
        """Clear a slot back to absent."""
        current = self._slots[truck][slot]
        if current is not None:
            self._counts[truck.value, current] -= 1
            self._slots[truck][slot] = None

    # ── Queries ──────────────────────────────────────────────────────

    def value(self, truck: Truck, slot: int) -> int | None:
        return self._slots[truck][slot]

    def slots(self, truck: Truck) -> tuple[int | None, ...]:
        return tuple(self._slots[truck])

    def count(self, truck: Truck, place: int) -> int:
        """Occurrences of `place` among the truck's non-absent slots."""
        return int(self._counts[truck.value, place])

    def cardinality(self, truck: Truck) -> dict[int, int]:
        """Place → count mapping for every place (zeros included)."""
        row = self._counts[truck.value]
        return {p: int(row[p]) for p in self.registry.places}

    def length(self, truck: Truck) -> int:
        """Index one past the last non-absent slot."""
        slots = self._slots[truck]
        for k in range(len(slots) - 1, -1, -1):
            if slots[k] is not None:
                return k + 1
        return 0

    def route(self, truck: Truck) -> tuple[int, ...]:
        """The truck's visited places in order, absent slots dropped."""
        return tuple(p for p in self._slots[truck] if p is not None)

    def copy(self) -> PathState:
        clone = PathState.__new__(PathState)
        clone.registry = self.registry
        clone.max_path_length = self.max_path_length
        clone._slots = {t: list(s) for t, s in self._slots.items()}
        clone._counts = self._counts.copy()
        return clone
