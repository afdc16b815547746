"""POI route planner services.

Service layer components:
- Cache: session-scoped spatial POI cache (linear bbox scans)
- OSM: OpenStreetMap Overpass API for POI acquisition, with retry/backoff
- Images: Commons/Wikidata image resolution behind a rate-limited queue
- Route providers: OSRM (keyless) and GraphHopper (API key)
- Route assembly: nearest-neighbour ordering + chunked provider requests
"""

from .cache import POICache
from .images import ImageResolutionQueue
from .osm import OSMOverpassService
from .route_assembly import RouteAssemblyEngine, RouteRequest
from .route_providers import (
    CredentialStore,
    GraphHopperRouteProvider,
    OSRMRouteProvider,
    RouteProvider,
    create_route_provider,
)

__all__ = [
    # Cache
    "POICache",
    # Acquisition
    "OSMOverpassService",
    # Images
    "ImageResolutionQueue",
    # Routing
    "CredentialStore",
    "GraphHopperRouteProvider",
    "OSRMRouteProvider",
    "RouteProvider",
    "create_route_provider",
    "RouteAssemblyEngine",
    "RouteRequest",
]
