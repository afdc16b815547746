"""Per-application planner state.

Owns the session cache, the services and the current/pending route. It is
created in the FastAPI lifespan and handed to endpoints through
``app.state``; there are no module-level singletons.
"""

import logging
from typing import Iterable, Optional

from poiroute.core.config import Settings, settings as default_settings
from poiroute.models import (
    POI,
    BoundingBox,
    CredentialError,
    InterestCategory,
    Route,
    ServiceError,
)
from poiroute.services import (
    CredentialStore,
    ImageResolutionQueue,
    OSMOverpassService,
    POICache,
    RouteAssemblyEngine,
    RouteProvider,
    RouteRequest,
    create_route_provider,
)

logger = logging.getLogger(__name__)


class PlannerState:
    """Session state shared by all API endpoints."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        acquisition: OSMOverpassService | None = None,
        images: ImageResolutionQueue | None = None,
        provider: RouteProvider | None = None,
        credentials: CredentialStore | None = None,
    ) -> None:
        self.config = config or default_settings
        self.cache = POICache()
        self.credentials = credentials or CredentialStore(
            {"graphhopper": self.config.GRAPHHOPPER_API_KEY or ""}
        )
        self.acquisition = acquisition or OSMOverpassService(
            overpass_url=self.config.OVERPASS_URL,
            timeout=self.config.OVERPASS_TIMEOUT_SECONDS,
            max_attempts=self.config.ACQUISITION_MAX_ATTEMPTS,
            backoff_base=self.config.ACQUISITION_BACKOFF_BASE_SECONDS,
        )
        self.images = images or ImageResolutionQueue(
            placeholder_url=self.config.IMAGE_PLACEHOLDER_URL,
            delay_seconds=self.config.IMAGE_LOOKUP_DELAY_SECONDS,
            wikidata_url=self.config.WIKIDATA_API_URL,
        )
        provider = provider or create_route_provider(
            self.config.ROUTE_PROVIDER, self.credentials, self.config
        )
        self.engine = RouteAssemblyEngine(
            provider, max_intermediates=self.config.MAX_INTERMEDIATE_WAYPOINTS
        )
        self.current_route: Optional[Route] = None
        self.pending_route: Optional[RouteRequest] = None

    async def start(self) -> None:
        await self.images.start()

    async def close(self) -> None:
        await self.images.close()
        await self.acquisition.close()
        await self.engine.provider.close()

    async def acquire(
        self,
        bbox: BoundingBox,
        limit: int,
        categories: Iterable[InterestCategory],
    ) -> list[POI]:
        """Fetch POIs and merge them into the cache. Returns the new ones.

        On failure the cache is left exactly as it was.
        """
        pois = await self.acquisition.acquire_pois(bbox, limit, categories)
        return self.cache.merge_incoming(pois)

    async def resolve_image(self, poi: POI) -> str:
        url = await self.images.resolve_image(poi)
        if url != self.images.placeholder_url:
            self.cache.set_resolved_image(poi.id, url)
        return url

    async def _build(self, request: RouteRequest) -> Route:
        try:
            route = await self.engine.build_route(request)
        except ServiceError:
            self.current_route = None
            raise
        self.current_route = route
        return route

    async def build_route(self, request: RouteRequest) -> Route:
        """Build and store the current route.

        A CredentialError parks the request so it can be retried once a key
        has been saved.
        """
        try:
            route = await self._build(request)
        except CredentialError:
            self.pending_route = request
            raise
        self.pending_route = None
        return route

    async def save_credentials(self, provider: str, api_key: str) -> Optional[Route]:
        """Store a key and retry the pending route build exactly once."""
        self.credentials.set(provider, api_key)
        pending, self.pending_route = self.pending_route, None
        if pending is None:
            return None
        logger.info("[ROUTE] Retrying pending route build with the new API key")
        return await self._build(pending)
