"""Unit tests for ordering, chunking and merging routes."""

import math

import pytest

from poiroute.models import (
    Coordinates,
    CredentialError,
    FatalProviderError,
    InputValidationError,
    MobilityType,
    ProviderRoute,
    RouteOptions,
    TransportMode,
)
from poiroute.services.route_assembly import (
    RouteAssemblyEngine,
    RouteRequest,
    nearest_neighbor_order,
    split_into_chunks,
)
from poiroute.services.route_providers import RouteProvider
from tests.helpers import make_poi


class FakeRouteProvider(RouteProvider):
    """Records every request; geometry is the straight line through the waypoints."""

    def __init__(self, max_waypoints: int = 5, error: Exception | None = None) -> None:
        self._max_waypoints = max_waypoints
        self._error = error
        self.calls: list[tuple[list[Coordinates], RouteOptions]] = []

    @property
    def provider_name(self) -> str:
        return "Fake"

    @property
    def max_waypoints_per_request(self) -> int:
        return self._max_waypoints

    def get_profile_for_mobility(
        self, mobility: MobilityType, transport_mode: TransportMode
    ) -> str:
        return "foot" if mobility != MobilityType.STANDARD else transport_mode.value

    async def _request_route(
        self, waypoints: list[Coordinates], options: RouteOptions
    ) -> ProviderRoute:
        self.calls.append((waypoints, options))
        if self._error is not None:
            raise self._error
        return ProviderRoute(
            distance=100.0 * (len(waypoints) - 1),
            duration=60.0 * (len(waypoints) - 1),
            geometry=[(p.lat, p.lng) for p in waypoints],
            legs=[{"waypoints": len(waypoints)}],
        )


def line_of_pois(count: int, prefix: str = "stop") -> list:
    return [make_poi(f"{prefix}_{i}", 52.50 + i * 0.001, 13.40) for i in range(count)]


class TestNearestNeighborOrder:
    def test_visits_closest_first(self) -> None:
        start = make_poi("start", 52.500, 13.40)
        far = make_poi("far", 52.530, 13.40)
        near = make_poi("near", 52.505, 13.40)
        middle = make_poi("middle", 52.515, 13.40)

        order = nearest_neighbor_order(start, [far, near, middle])
        assert [p.id for p in order] == ["near", "middle", "far"]

    def test_each_stop_exactly_once(self) -> None:
        start = make_poi("start", 52.50, 13.40)
        stops = [
            make_poi(f"s{i}", 52.50 + ((i * 7) % 11) * 0.002, 13.40 + ((i * 5) % 13) * 0.002)
            for i in range(12)
        ]
        order = nearest_neighbor_order(start, stops)
        assert sorted(p.id for p in order) == sorted(p.id for p in stops)

    def test_ties_keep_input_order(self) -> None:
        start = make_poi("start", 52.50, 13.40)
        first = make_poi("first", 52.51, 13.40)
        second = make_poi("second", 52.51, 13.40)
        order = nearest_neighbor_order(start, [first, second])
        assert [p.id for p in order] == ["first", "second"]

    def test_no_stops(self) -> None:
        assert nearest_neighbor_order(make_poi("start", 52.5, 13.4), []) == []


class TestSplitIntoChunks:
    def test_fits_in_one(self) -> None:
        assert split_into_chunks([1, 2, 3], 5) == [[1, 2, 3]]

    def test_chunks_share_boundaries(self) -> None:
        chunks = split_into_chunks(list(range(8)), 3)
        assert chunks == [[0, 1, 2], [2, 3, 4], [4, 5, 6], [6, 7]]

    @pytest.mark.parametrize("count,cap", [(17, 5), (16, 5), (6, 2), (26, 25), (10, 10)])
    def test_chunk_count(self, count: int, cap: int) -> None:
        chunks = split_into_chunks(list(range(count)), cap)
        assert len(chunks) == math.ceil((count - 1) / (cap - 1))
        assert all(len(c) <= cap for c in chunks)
        assert chunks[0][0] == 0 and chunks[-1][-1] == count - 1

    def test_cap_below_two(self) -> None:
        with pytest.raises(ValueError):
            split_into_chunks([1, 2, 3], 1)


class TestRouteRequest:
    def test_avoid_stairs_defaults_from_mobility(self) -> None:
        start, finish = make_poi("a", 52.5, 13.4), make_poi("b", 52.6, 13.5)
        assert RouteRequest(start, finish).resolved_avoid_stairs() is False
        assert RouteRequest(start, finish, mobility=MobilityType.STROLLER).resolved_avoid_stairs() is True

    def test_explicit_avoid_stairs_wins(self) -> None:
        start, finish = make_poi("a", 52.5, 13.4), make_poi("b", 52.6, 13.5)
        request = RouteRequest(start, finish, mobility=MobilityType.WHEELCHAIR, avoid_stairs=False)
        assert request.resolved_avoid_stairs() is False


class TestRouteAssemblyEngine:
    """Tests for the full validate -> order -> chunk -> merge pipeline."""

    def setup_method(self) -> None:
        self.provider = FakeRouteProvider(max_waypoints=5)
        self.engine = RouteAssemblyEngine(self.provider, max_intermediates=15)
        self.start = make_poi("start", 52.499, 13.40)
        self.finish = make_poi("finish", 52.60, 13.40)

    @pytest.mark.asyncio
    async def test_direct_route(self) -> None:
        route = await self.engine.build_route(RouteRequest(self.start, self.finish))

        assert [p.id for p in route.ordered_pois] == ["start", "finish"]
        assert route.request_count == 1
        assert len(self.provider.calls) == 1
        assert route.provider == "Fake"

    @pytest.mark.asyncio
    async def test_too_many_intermediates_makes_no_call(self) -> None:
        request = RouteRequest(self.start, self.finish, intermediates=line_of_pois(16))

        with pytest.raises(InputValidationError, match="maximum 15"):
            await self.engine.build_route(request)
        assert self.provider.calls == []

    @pytest.mark.asyncio
    async def test_duplicate_intermediates_rejected(self) -> None:
        stop = make_poi("dup", 52.51, 13.40)
        request = RouteRequest(self.start, self.finish, intermediates=[stop, stop])

        with pytest.raises(InputValidationError):
            await self.engine.build_route(request)
        assert self.provider.calls == []

    @pytest.mark.asyncio
    async def test_seventeen_waypoints_in_four_requests(self) -> None:
        stops = line_of_pois(15)
        request = RouteRequest(self.start, self.finish, intermediates=list(reversed(stops)))

        route = await self.engine.build_route(request)

        assert len(self.provider.calls) == 4
        assert route.request_count == 4
        assert [p.id for p in route.ordered_pois] == (
            ["start"] + [p.id for p in stops] + ["finish"]
        )

        # Consecutive requests share their boundary waypoint
        calls = [waypoints for waypoints, _ in self.provider.calls]
        for previous, current in zip(calls, calls[1:]):
            assert previous[-1] == current[0]
        assert all(len(c) <= 5 for c in calls)

        # 16 legs in total, summed across requests
        assert route.total_distance == pytest.approx(1600.0)
        assert route.total_duration == pytest.approx(960.0)

        # Junction points are not repeated in the merged geometry
        assert len(route.geometry) == 17
        assert route.geometry[0] == (52.499, 13.40)
        assert route.geometry[-1] == (52.60, 13.40)

    @pytest.mark.asyncio
    async def test_options_follow_mobility(self) -> None:
        request = RouteRequest(
            self.start,
            self.finish,
            mobility=MobilityType.WHEELCHAIR,
            transport_mode=TransportMode.BIKE,
        )
        route = await self.engine.build_route(request)

        _, options = self.provider.calls[0]
        assert options.profile == "foot"
        assert options.avoid_stairs is True
        assert route.profile == "foot"

    @pytest.mark.asyncio
    async def test_credential_error_passes_through(self) -> None:
        provider = FakeRouteProvider(error=CredentialError("key required", provider="fake"))
        engine = RouteAssemblyEngine(provider)

        with pytest.raises(CredentialError):
            await engine.build_route(RouteRequest(self.start, self.finish))

    @pytest.mark.asyncio
    async def test_provider_failure_stops_assembly(self) -> None:
        provider = FakeRouteProvider(max_waypoints=2, error=FatalProviderError("No route found"))
        engine = RouteAssemblyEngine(provider)
        request = RouteRequest(self.start, self.finish, intermediates=line_of_pois(3))

        with pytest.raises(FatalProviderError):
            await engine.build_route(request)
        assert len(provider.calls) == 1
