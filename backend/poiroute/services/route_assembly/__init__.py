"""Multi-stop route assembly."""

from .service import (
    RouteAssemblyEngine,
    RouteRequest,
    nearest_neighbor_order,
    split_into_chunks,
)

__all__ = [
    "RouteAssemblyEngine",
    "RouteRequest",
    "nearest_neighbor_order",
    "split_into_chunks",
]
