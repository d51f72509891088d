from src.network.config import (
    ConfigurationError,
    ProblemConfig,
    RouterConfig,
    SolverConfig,
    load_config,
)
from src.network.places import PlaceKind, PlaceRegistry, Truck

__all__ = [
    "ConfigurationError",
    "ProblemConfig",
    "RouterConfig",
    "SolverConfig",
    "load_config",
    "PlaceKind",
    "PlaceRegistry",
    "Truck",
]
