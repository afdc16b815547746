"""Route assembly: order must-visit stops, then build one merged route.

Pipeline: validate -> order -> chunk -> merge.

1. Validate: more intermediates than the cap is rejected before any
   network call.
2. Order: greedy nearest neighbour from the start by great-circle
   distance, finish appended last. Approximate, O(N^2), fine for the
   capped N.
3. Chunk: split start..finish into consecutive requests that fit the
   provider's per-request waypoint limit, each chunk starting on the
   previous chunk's last waypoint.
4. Merge: one provider call per chunk, strictly in order; geometries are
   concatenated, distances and durations summed.

Provider errors (credentials, no path found, rate limits) propagate
unchanged; nothing here retries.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from poiroute.core.config import settings
from poiroute.models import (
    POI,
    InputValidationError,
    MobilityType,
    ProviderRoute,
    Route,
    RouteOptions,
    TransportMode,
)
from poiroute.services.route_providers import RouteProvider
from poiroute.utils.geo import haversine_matrix

logger = logging.getLogger(__name__)


@dataclass
class RouteRequest:
    """Everything needed to (re)build a route."""
    start: POI
    finish: POI
    intermediates: list[POI] = field(default_factory=list)
    mobility: MobilityType = MobilityType.STANDARD
    transport_mode: TransportMode = TransportMode.WALK
    avoid_stairs: Optional[bool] = None

    def resolved_avoid_stairs(self) -> bool:
        """Explicit flag if given, otherwise True for any non-standard mobility."""
        if self.avoid_stairs is not None:
            return self.avoid_stairs
        return self.mobility != MobilityType.STANDARD


def nearest_neighbor_order(start: POI, intermediates: list[POI]) -> list[POI]:
    """Visit order for ``intermediates`` starting from ``start``.

    Repeatedly picks the closest unvisited stop to the current position.
    Ties go to the stop that appeared first in the input.
    """
    if not intermediates:
        return []

    points = [(start.coordinates.lat, start.coordinates.lng)]
    points.extend((p.coordinates.lat, p.coordinates.lng) for p in intermediates)
    distances = haversine_matrix(points)

    visited = np.zeros(len(points), dtype=bool)
    visited[0] = True
    current = 0
    order: list[POI] = []

    while len(order) < len(intermediates):
        candidates = np.where(visited, np.inf, distances[current])
        nearest = int(np.argmin(candidates))
        visited[nearest] = True
        order.append(intermediates[nearest - 1])
        current = nearest

    return order


def split_into_chunks(points: list, max_points: int) -> list[list]:
    """Split a waypoint sequence into consecutive, overlapping chunks.

    Every chunk holds at most ``max_points`` items and starts with the last
    item of the previous chunk, so n points need ceil((n-1)/(max_points-1))
    chunks.
    """
    if max_points < 2:
        raise ValueError("max_points must be at least 2")
    if len(points) <= max_points:
        return [list(points)]

    chunks = []
    start = 0
    while start < len(points) - 1:
        end = min(start + max_points, len(points))
        chunks.append(list(points[start:end]))
        # Next chunk starts on this chunk's last point
        start = end - 1
    return chunks


class RouteAssemblyEngine:
    """Builds one logical route over a provider with a per-request limit.

    The provider is fixed at construction.
    """

    def __init__(
        self,
        provider: RouteProvider,
        max_intermediates: int = settings.MAX_INTERMEDIATE_WAYPOINTS,
    ) -> None:
        if max_intermediates < 0:
            raise ValueError("max_intermediates cannot be negative")
        self._provider = provider
        self._max_intermediates = max_intermediates

    @property
    def provider(self) -> RouteProvider:
        return self._provider

    @property
    def max_intermediates(self) -> int:
        return self._max_intermediates

    def validate(self, request: RouteRequest) -> None:
        count = len(request.intermediates)
        if count > self._max_intermediates:
            raise InputValidationError(
                f"Too many must-visit stops: {count} (maximum {self._max_intermediates})"
            )
        ids = [poi.id for poi in request.intermediates]
        if len(set(ids)) != len(ids):
            raise InputValidationError("Must-visit stops contain duplicates")

    def order(self, request: RouteRequest) -> list[POI]:
        """Full waypoint sequence: start, ordered stops, finish."""
        stops = nearest_neighbor_order(request.start, request.intermediates)
        return [request.start, *stops, request.finish]

    async def build_route(self, request: RouteRequest) -> Route:
        """Validate, order, chunk and merge into one Route.

        Raises:
            InputValidationError: too many intermediates (no network call).
            CredentialError, FatalProviderError, RateLimitedError,
            TransientProviderError: passed through from the provider.
        """
        self.validate(request)
        ordered = self.order(request)

        profile = self._provider.get_profile_for_mobility(
            request.mobility, request.transport_mode
        )
        options = RouteOptions(profile=profile, avoid_stairs=request.resolved_avoid_stairs())

        chunks = split_into_chunks(ordered, self._provider.max_waypoints_per_request)
        logger.info(
            f"[ROUTE] {len(ordered)} waypoints -> {len(chunks)} request(s) "
            f"via {self._provider.provider_name}, profile={profile}"
        )

        results: list[ProviderRoute] = []
        for index, chunk in enumerate(chunks, start=1):
            result = await self._provider.build_route(
                [poi.coordinates for poi in chunk], options
            )
            logger.info(f"[ROUTE] Chunk {index}/{len(chunks)}: {result.distance:.0f}m")
            results.append(result)

        return self._merge(ordered, results, profile)

    def _merge(
        self, ordered: list[POI], results: list[ProviderRoute], profile: str
    ) -> Route:
        geometry: list[tuple[float, float]] = []
        legs = []
        for index, result in enumerate(results):
            coordinates = result.geometry
            # Skip the junction point already added by the previous chunk
            if index > 0 and geometry and coordinates:
                coordinates = coordinates[1:]
            geometry.extend(coordinates)
            legs.extend(result.legs)

        return Route(
            ordered_pois=ordered,
            geometry=geometry,
            total_distance=sum(r.distance for r in results),
            total_duration=sum(r.duration for r in results),
            profile=profile,
            provider=self._provider.provider_name,
            legs=legs,
            request_count=len(results),
        )
