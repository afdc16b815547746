"""OSRM route provider (keyless, public demo server by default)."""

import logging

import httpx

from poiroute.core.config import settings
from poiroute.models import (
    Coordinates,
    FatalProviderError,
    MobilityType,
    ProviderRoute,
    RateLimitedError,
    RouteOptions,
    TransientProviderError,
    TransportMode,
)
from poiroute.utils.polyline import decode_polyline

from .base import RouteProvider

logger = logging.getLogger(__name__)

# OSRM profile mapping
OSRM_PROFILES = {
    TransportMode.WALK: "foot",
    TransportMode.BIKE: "bike",
    TransportMode.CAR_TAXI: "car",
    TransportMode.PUBLIC_TRANSIT: "foot",  # OSRM doesn't have transit, fallback to walking
}


class OSRMRouteProvider(RouteProvider):
    """Open Source Routing Machine, no API key required."""

    OSRM_URL = settings.OSRM_URL

    HEADERS = {"User-Agent": settings.USER_AGENT}

    def __init__(
        self,
        base_url: str | None = None,
        max_waypoints: int = settings.OSRM_MAX_WAYPOINTS,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_waypoints < 2:
            raise ValueError("max_waypoints must be at least 2")
        self._base_url = (base_url or self.OSRM_URL).rstrip("/")
        self._max_waypoints = max_waypoints
        self._timeout = timeout
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "OSRM"

    @property
    def max_waypoints_per_request(self) -> int:
        return self._max_waypoints

    def get_profile_for_mobility(
        self, mobility: MobilityType, transport_mode: TransportMode
    ) -> str:
        # Wheelchair, stroller and low-endurance travellers always walk
        if mobility != MobilityType.STANDARD:
            return "foot"
        return OSRM_PROFILES.get(transport_mode, "foot")

    async def _request_route(
        self, waypoints: list[Coordinates], options: RouteOptions
    ) -> ProviderRoute:
        coords = ";".join(f"{point.lng},{point.lat}" for point in waypoints)
        url = f"{self._base_url}/route/v1/{options.profile}/{coords}"
        if options.avoid_stairs:
            logger.debug("[ROUTE] OSRM cannot avoid stairs, ignoring avoid_stairs")
        logger.info(f"[ROUTE] OSRM request: {len(waypoints)} waypoints, profile={options.profile}")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers=self.HEADERS, transport=self._transport
            ) as client:
                response = await client.get(url, params={
                    "overview": "full",
                    "geometries": "polyline",
                    "steps": "false",
                })
        except httpx.TimeoutException as e:
            raise TransientProviderError(f"OSRM request timed out: {e}") from e
        except httpx.TransportError as e:
            raise FatalProviderError(f"OSRM unreachable: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError("OSRM rate limit reached, try again shortly")
        if response.status_code >= 500:
            raise TransientProviderError(f"OSRM HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise FatalProviderError(f"OSRM HTTP {response.status_code}: malformed response") from e

        # OSRM reports routing failures (NoRoute, InvalidQuery, ...) with code != Ok
        if data.get("code") != "Ok" or not data.get("routes"):
            message = data.get("message") or data.get("code") or f"HTTP {response.status_code}"
            logger.info(f"[ROUTE] OSRM returned no route: {message}")
            raise FatalProviderError(f"OSRM routing error: {message}")

        route_data = data["routes"][0]
        legs = [
            {
                "distance": float(leg.get("distance", 0)),
                "duration": float(leg.get("duration", 0)),
                "summary": leg.get("summary", ""),
            }
            for leg in route_data.get("legs", [])
        ]
        result = ProviderRoute(
            distance=float(route_data.get("distance", 0)),
            duration=float(route_data.get("duration", 0)),
            geometry=decode_polyline(route_data.get("geometry", "")),
            legs=legs,
        )
        logger.info(f"[ROUTE] OSRM success: distance={result.distance:.0f}m, points={len(result.geometry)}")
        return result
