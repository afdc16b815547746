"""Route provider backends.

- OSRM: keyless, small per-request waypoint cap
- GraphHopper: needs a stored API key, larger cap
"""

from poiroute.core.config import Settings, settings as default_settings

from .base import CredentialStore, RouteProvider
from .graphhopper import GraphHopperRouteProvider
from .osrm import OSRMRouteProvider


def create_route_provider(
    name: str | None = None,
    credentials: CredentialStore | None = None,
    config: Settings | None = None,
) -> RouteProvider:
    """Build the configured route provider. Chosen once, at construction."""
    config = config or default_settings
    name = (name or config.ROUTE_PROVIDER).lower()

    if name == "osrm":
        return OSRMRouteProvider(
            base_url=config.OSRM_URL,
            max_waypoints=config.OSRM_MAX_WAYPOINTS,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
    if name == "graphhopper":
        if credentials is None:
            credentials = CredentialStore({"graphhopper": config.GRAPHHOPPER_API_KEY or ""})
        return GraphHopperRouteProvider(
            credentials,
            base_url=config.GRAPHHOPPER_URL,
            max_waypoints=config.GRAPHHOPPER_MAX_WAYPOINTS,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )

    raise ValueError(f"Unknown route provider: {name}. Use 'osrm' or 'graphhopper'")


__all__ = [
    "CredentialStore",
    "GraphHopperRouteProvider",
    "OSRMRouteProvider",
    "RouteProvider",
    "create_route_provider",
]
