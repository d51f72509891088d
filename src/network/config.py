"""
Router configuration dataclasses and YAML loader.

All problem and solver parameters live here as typed, validated dataclasses.
Load from YAML with `load_config()` or construct directly for tests.

YAML layout:

    problem:
      customers_per_warehouse: 2
      distance_matrix:
        - [0, 4, 5, 9, 9, 9]
        - ...
    solver:
      time_limit_s: 30
      workers: 1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import yaml


MIN_CUSTOMERS_PER_WAREHOUSE = 1
MAX_CUSTOMERS_PER_WAREHOUSE = 6


class ConfigurationError(ValueError):
    """Raised when a problem or solver configuration is rejected before search."""


@dataclass(frozen=True)
class ProblemConfig:
    """One routing instance: customer count and the full distance matrix.

    The matrix is indexed by place id - 1, so row 0 is warehouse A.
    Diagonal entries are never read by the solver.
    """

    customers_per_warehouse: int
    distance_matrix: list[list[int]] | np.ndarray

    @property
    def n_places(self) -> int:
        """Total number of places (two warehouses plus all customers)."""
        return 2 * (self.customers_per_warehouse + 1)


@dataclass(frozen=True)
class SolverConfig:
    """Search budget and pruning switches."""

    time_limit_s: float | None = None  # wall-clock budget, None = unlimited
    node_limit: int | None = None  # max search nodes, None = unlimited
    workers: int = 1  # >1 splits root depot branches across threads
    use_length_identity: bool = True  # redundant path-length sum pruning


@dataclass(frozen=True)
class RouterConfig:
    """Top-level configuration aggregating problem and solver settings."""

    problem: ProblemConfig
    solver: SolverConfig = field(default_factory=SolverConfig)


def validate_problem(problem: ProblemConfig) -> np.ndarray:
    """Check a problem config and return the normalised distance matrix.

    Returns:
        A fresh int64 array with the diagonal zeroed.

    Raises:
        ConfigurationError: on a bad customer count, a non-square or wrongly
            sized matrix, non-integer entries or negative distances.
    """
    n = problem.customers_per_warehouse
    if isinstance(n, bool) or not isinstance(n, (int, np.integer)):
        raise ConfigurationError(f"customers_per_warehouse must be an integer, got {n!r}")
    if not MIN_CUSTOMERS_PER_WAREHOUSE <= n <= MAX_CUSTOMERS_PER_WAREHOUSE:
        raise ConfigurationError(
            f"customers_per_warehouse must be in "
            f"[{MIN_CUSTOMERS_PER_WAREHOUSE}, {MAX_CUSTOMERS_PER_WAREHOUSE}], got {n}"
        )

    try:
        raw = np.asarray(problem.distance_matrix)
    except ValueError as exc:  # ragged nested lists
        raise ConfigurationError(f"distance_matrix is not a rectangular table: {exc}") from exc

    if raw.ndim != 2 or raw.shape[0] != raw.shape[1]:
        raise ConfigurationError(f"distance_matrix must be square, got shape {raw.shape}")
    if raw.shape[0] != problem.n_places:
        raise ConfigurationError(
            f"distance_matrix must be {problem.n_places}x{problem.n_places} "
            f"for {n} customers per warehouse, got {raw.shape[0]}x{raw.shape[1]}"
        )

    if raw.dtype.kind in "iu":
        matrix = raw.astype(np.int64)
    elif raw.dtype.kind == "f":
        if not np.all(np.isfinite(raw)) or not np.all(raw == np.round(raw)):
            raise ConfigurationError("distance_matrix entries must be integers")
        matrix = raw.astype(np.int64)
    else:
        raise ConfigurationError(f"distance_matrix entries must be integers, got dtype {raw.dtype}")

    off_diagonal = ~np.eye(matrix.shape[0], dtype=bool)
    if np.any(matrix[off_diagonal] < 0):
        raise ConfigurationError("distance_matrix entries must be nonnegative")

    matrix = matrix.copy()
    np.fill_diagonal(matrix, 0)
    return matrix


def validate_solver(solver: SolverConfig) -> None:
    """Reject solver settings the search engine cannot honour."""
    if solver.time_limit_s is not None and solver.time_limit_s <= 0:
        raise ConfigurationError(f"time_limit_s must be positive, got {solver.time_limit_s}")
    if solver.node_limit is not None and solver.node_limit <= 0:
        raise ConfigurationError(f"node_limit must be positive, got {solver.node_limit}")
    if solver.workers < 1:
        raise ConfigurationError(f"workers must be at least 1, got {solver.workers}")


def load_config(path: str | Path) -> RouterConfig:
    """Load a RouterConfig from a YAML file.

    Args:
        path: Path to a YAML config file.

    Returns:
        RouterConfig with problem and solver sub-configs.

    Raises:
        ConfigurationError: if the `problem` section is missing or malformed.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict) or "problem" not in raw:
        raise ConfigurationError(f"{path}: missing 'problem' section")

    try:
        problem = ProblemConfig(**raw["problem"])
        solver = SolverConfig(**(raw.get("solver") or {}))
    except TypeError as exc:
        raise ConfigurationError(f"{path}: {exc}") from exc

    return RouterConfig(problem=problem, solver=solver)
