"""GraphHopper route provider (requires an API key).

Docs: https://docs.graphhopper.com/
"""

import logging

import httpx

from poiroute.core.config import settings
from poiroute.models import (
    Coordinates,
    CredentialError,
    FatalProviderError,
    MobilityType,
    ProviderRoute,
    RateLimitedError,
    RouteOptions,
    TransientProviderError,
    TransportMode,
)

from .base import CredentialStore, RouteProvider

logger = logging.getLogger(__name__)

GRAPHHOPPER_PROFILES = {
    TransportMode.WALK: "foot",
    TransportMode.BIKE: "bike",
    TransportMode.CAR_TAXI: "car",
    TransportMode.PUBLIC_TRANSIT: "foot",  # transit needs a dedicated API
}


class GraphHopperRouteProvider(RouteProvider):
    """GraphHopper Directions API.

    The key is read from the credential store on every request, so a key
    saved after a CredentialError is picked up by the next attempt.
    """

    GRAPHHOPPER_URL = settings.GRAPHHOPPER_URL
    NAME = "graphhopper"

    HEADERS = {"User-Agent": settings.USER_AGENT}

    def __init__(
        self,
        credentials: CredentialStore,
        base_url: str | None = None,
        max_waypoints: int = settings.GRAPHHOPPER_MAX_WAYPOINTS,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_waypoints < 2:
            raise ValueError("max_waypoints must be at least 2")
        self._credentials = credentials
        self._base_url = (base_url or self.GRAPHHOPPER_URL).rstrip("/")
        self._max_waypoints = max_waypoints
        self._timeout = timeout
        self._transport = transport

    @property
    def provider_name(self) -> str:
        return "GraphHopper"

    @property
    def max_waypoints_per_request(self) -> int:
        return self._max_waypoints

    @property
    def requires_api_key(self) -> bool:
        return True

    def get_profile_for_mobility(
        self, mobility: MobilityType, transport_mode: TransportMode
    ) -> str:
        # No wheelchair profile on the free tier: foot + avoid_stairs instead
        if mobility in (
            MobilityType.WHEELCHAIR,
            MobilityType.STROLLER,
            MobilityType.LOW_ENDURANCE,
        ):
            return "foot"
        return GRAPHHOPPER_PROFILES.get(transport_mode, "foot")

    def _error_message(self, response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return f"HTTP {response.status_code}"

    async def _request_route(
        self, waypoints: list[Coordinates], options: RouteOptions
    ) -> ProviderRoute:
        api_key = self._credentials.get(self.NAME)
        if not api_key:
            raise CredentialError("GraphHopper API key is required", provider=self.NAME)

        params: list[tuple[str, str]] = [
            ("key", api_key),
            ("profile", options.profile),
            ("points_encoded", "false"),
            ("instructions", "true"),
            ("locale", "en"),
        ]
        params.extend(("point", f"{point.lat},{point.lng}") for point in waypoints)
        if options.avoid_stairs:
            # Steps avoidance needs flexible mode
            params.append(("ch.disable", "true"))
            params.append(("avoid", "steps"))

        logger.info(f"[ROUTE] GraphHopper request: {len(waypoints)} waypoints, profile={options.profile}")
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers=self.HEADERS, transport=self._transport
            ) as client:
                response = await client.get(f"{self._base_url}/route", params=params)
        except httpx.TimeoutException as e:
            raise TransientProviderError(f"GraphHopper request timed out: {e}") from e
        except httpx.TransportError as e:
            raise FatalProviderError(f"GraphHopper unreachable: {e}") from e

        if response.status_code in (401, 403):
            raise CredentialError(
                f"GraphHopper rejected the API key: {self._error_message(response)}",
                provider=self.NAME,
            )
        if response.status_code == 429:
            raise RateLimitedError(
                "GraphHopper API limit reached. Please wait or upgrade your plan"
            )
        if response.status_code >= 500:
            raise TransientProviderError(f"GraphHopper HTTP {response.status_code}")
        if response.status_code >= 400:
            raise FatalProviderError(f"GraphHopper routing error: {self._error_message(response)}")

        try:
            data = response.json()
        except ValueError as e:
            raise FatalProviderError("GraphHopper returned malformed JSON") from e

        if data.get("message"):
            raise FatalProviderError(f"GraphHopper routing error: {data['message']}")
        paths = data.get("paths") or []
        if not paths:
            raise FatalProviderError("No route found between the selected points")

        path = paths[0]
        # GeoJSON order is [lng, lat]
        coordinates = (path.get("points") or {}).get("coordinates", [])
        geometry = [(float(c[1]), float(c[0])) for c in coordinates]
        return ProviderRoute(
            distance=float(path.get("distance", 0)),
            duration=float(path.get("time", 0)) / 1000.0,  # milliseconds -> seconds
            geometry=geometry,
            legs=[
                {"text": i.get("text", ""), "distance": float(i.get("distance", 0))}
                for i in path.get("instructions", [])
            ],
        )
