"""HTTP API."""

from .routes import router
from .state import PlannerState

__all__ = ["router", "PlannerState"]
