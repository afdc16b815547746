"""Unit tests for the Overpass acquisition service."""

from urllib.parse import parse_qs

import httpx
import pytest

from poiroute.models import (
    BoundingBox,
    FatalProviderError,
    InputValidationError,
    InterestCategory,
    ProviderTimeoutError,
    RateLimitedError,
)
from poiroute.services.cache import POICache
from poiroute.services.osm import (
    OSMOverpassService,
    backoff_delay,
    calculate_significance,
    categories_for_tags,
)
from tests.helpers import RecordingTransport, json_response, overpass_element

BERLIN_BBOX = BoundingBox(min_lat=52.50, min_lng=13.39, max_lat=52.53, max_lng=13.42)


def _query_of(request: httpx.Request) -> str:
    return parse_qs(request.content.decode())["data"][0]


class TestBackoffDelay:
    def test_doubles_from_base(self) -> None:
        assert [backoff_delay(n, 1.0) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_custom_base(self) -> None:
        assert backoff_delay(3, 0.5) == 2.0


class TestCategoriesForTags:
    def test_museum_is_history_and_art(self) -> None:
        assert categories_for_tags({"tourism": "museum"}) == [
            InterestCategory.HISTORY_CULTURE,
            InterestCategory.ART_MUSEUMS,
        ]

    def test_wildcard_historic(self) -> None:
        assert categories_for_tags({"historic": "ruins"}) == [InterestCategory.HISTORY_CULTURE]

    def test_wildcard_ignores_no(self) -> None:
        assert categories_for_tags({"historic": "no"}) == []

    def test_nightlife(self) -> None:
        assert categories_for_tags({"amenity": "pub"}) == [InterestCategory.NIGHTLIFE]

    def test_unrelated_tags(self) -> None:
        assert categories_for_tags({"shop": "bakery"}) == []


class TestSignificance:
    def test_bare_node(self) -> None:
        assert calculate_significance({}, "node") == 0

    def test_all_signals_on_relation(self) -> None:
        tags = {
            "wikipedia": "en:Pergamon_Museum",
            "wikidata": "Q154453",
            "website": "https://smb.museum",
            "name": "Pergamonmuseum",
        }
        assert calculate_significance(tags, "relation") == 3 + 2 + 1 + 1 + 2

    def test_way_outranks_node(self) -> None:
        tags = {"name": "Park"}
        assert calculate_significance(tags, "way") > calculate_significance(tags, "node")

    def test_contact_website_counts(self) -> None:
        assert calculate_significance({"contact:website": "https://x"}, "node") == 1


class TestBuildQuery:
    def setup_method(self) -> None:
        self.service = OSMOverpassService()

    def test_union_of_category_filters(self) -> None:
        query = self.service.build_query(
            BERLIN_BBOX, [InterestCategory.ART_MUSEUMS, InterestCategory.NIGHTLIFE], 50
        )
        assert 'node["tourism"="gallery"](52.5,13.39,52.53,13.42);' in query
        assert 'way["amenity"="pub"](52.5,13.39,52.53,13.42);' in query
        assert 'relation["tourism"="museum"]' in query
        assert '["leisure"="park"]' not in query

    def test_shared_filters_appear_once(self) -> None:
        query = self.service.build_query(
            BERLIN_BBOX,
            [InterestCategory.HISTORY_CULTURE, InterestCategory.ART_MUSEUMS],
            10,
        )
        assert query.count('node["tourism"="museum"]') == 1

    def test_noise_subtracted(self) -> None:
        query = self.service.build_query(BERLIN_BBOX, [InterestCategory.HISTORY_CULTURE], 10)
        assert '["tourism"="information"]' in query
        assert '["memorial"="plaque"]' in query
        assert "(.wanted; - .noise;);" in query

    def test_wildcard_filter(self) -> None:
        query = self.service.build_query(BERLIN_BBOX, [InterestCategory.HISTORY_CULTURE], 10)
        assert 'node["historic"](52.5,13.39,52.53,13.42);' in query

    def test_overfetch(self) -> None:
        query = self.service.build_query(BERLIN_BBOX, [InterestCategory.ART_MUSEUMS], 50)
        assert "out center tags 150;" in query


class TestElementToPoi:
    def setup_method(self) -> None:
        self.service = OSMOverpassService()

    def test_node(self) -> None:
        poi = self.service.element_to_poi(
            overpass_element(1, 52.51, 13.40, name="Gallery", tourism="gallery")
        )
        assert poi is not None
        assert poi.id == "osm_node_1"
        assert poi.coordinates.lat == 52.51
        assert poi.categories == [InterestCategory.ART_MUSEUMS]
        assert poi.significance == 1

    def test_way_uses_center(self) -> None:
        poi = self.service.element_to_poi(
            overpass_element(7, 52.52, 13.41, osm_type="way", leisure="park")
        )
        assert poi.id == "osm_way_7"
        assert poi.coordinates.lng == 13.41
        assert poi.name == "Unnamed"

    def test_without_coordinates(self) -> None:
        element = {"type": "way", "id": 3, "tags": {"tourism": "museum"}}
        assert self.service.element_to_poi(element) is None

    def test_without_category(self) -> None:
        assert self.service.element_to_poi(overpass_element(2, 52.5, 13.4, shop="bakery")) is None


class TestAcquirePois:
    """Tests for the request/retry/ranking pipeline."""

    @pytest.mark.asyncio
    async def test_dedup_sort_truncate(self) -> None:
        elements = [
            overpass_element(1, 52.51, 13.40, tourism="museum"),
            overpass_element(2, 52.51, 13.40, osm_type="relation", tourism="museum",
                             name="Big", wikipedia="de:Big", wikidata="Q1"),
            overpass_element(1, 52.51, 13.40, tourism="museum"),
            overpass_element(3, 52.52, 13.41, tourism="gallery", name="Mid"),
        ]
        transport = RecordingTransport(lambda r: json_response({"elements": elements}))
        service = OSMOverpassService(transport=transport)

        pois = await service.acquire_pois(BERLIN_BBOX, 2, [InterestCategory.ART_MUSEUMS])

        assert [p.id for p in pois] == ["osm_relation_2", "osm_node_3"]
        assert transport.call_count == 1
        assert "tourism" in _query_of(transport.requests[0])

    @pytest.mark.asyncio
    async def test_empty_categories_query_everything(self) -> None:
        transport = RecordingTransport(lambda r: json_response({"elements": []}))
        service = OSMOverpassService(transport=transport)

        assert await service.acquire_pois(BERLIN_BBOX, 5, []) == []
        query = _query_of(transport.requests[0])
        assert '["amenity"="nightclub"]' in query
        assert '["leisure"="park"]' in query

    @pytest.mark.asyncio
    async def test_invalid_limit(self) -> None:
        transport = RecordingTransport(lambda r: json_response({"elements": []}))
        service = OSMOverpassService(transport=transport)
        with pytest.raises(InputValidationError):
            await service.acquire_pois(BERLIN_BBOX, 0, [InterestCategory.ART_MUSEUMS])
        assert transport.call_count == 0

    @pytest.mark.asyncio
    async def test_two_timeouts_then_success(self, recorded_sleeps) -> None:
        responses = [
            httpx.Response(504),
            httpx.Response(504),
            json_response({"elements": [overpass_element(1, 52.51, 13.40, tourism="museum")]}),
        ]
        transport = RecordingTransport(lambda r: responses.pop(0))
        service = OSMOverpassService(max_attempts=3, backoff_base=1.0, transport=transport)

        pois = await service.acquire_pois(BERLIN_BBOX, 10, [InterestCategory.ART_MUSEUMS])

        assert [p.id for p in pois] == ["osm_node_1"]
        assert transport.call_count == 3
        assert recorded_sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_attempts(self, recorded_sleeps) -> None:
        transport = RecordingTransport(lambda r: httpx.Response(504))
        service = OSMOverpassService(max_attempts=4, backoff_base=0.5, transport=transport)

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await service.acquire_pois(BERLIN_BBOX, 10, [InterestCategory.ART_MUSEUMS])

        assert exc_info.value.attempts == 4
        assert exc_info.value.to_app_error().kind.value == "Timeout"
        assert transport.call_count == 4
        assert recorded_sleeps == [0.5, 1.0, 2.0]

    @pytest.mark.asyncio
    async def test_transport_timeout_is_transient(self, recorded_sleeps) -> None:
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return json_response({"elements": []})

        service = OSMOverpassService(transport=httpx.MockTransport(handler))
        assert await service.acquire_pois(BERLIN_BBOX, 10, [InterestCategory.ART_MUSEUMS]) == []
        assert calls["n"] == 2
        assert recorded_sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_timeout_remark_is_transient(self, recorded_sleeps) -> None:
        responses = [
            json_response({"elements": [], "remark": "runtime error: Query timed out in \"query\""}),
            json_response({"elements": []}),
        ]
        transport = RecordingTransport(lambda r: responses.pop(0))
        service = OSMOverpassService(transport=transport)

        await service.acquire_pois(BERLIN_BBOX, 10, [InterestCategory.ART_MUSEUMS])
        assert transport.call_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_not_retried(self, recorded_sleeps) -> None:
        transport = RecordingTransport(lambda r: httpx.Response(429))
        service = OSMOverpassService(transport=transport)

        with pytest.raises(RateLimitedError):
            await service.acquire_pois(BERLIN_BBOX, 10, [InterestCategory.ART_MUSEUMS])
        assert transport.call_count == 1
        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_bad_request_not_retried(self, recorded_sleeps) -> None:
        transport = RecordingTransport(lambda r: httpx.Response(400, text="parse error"))
        service = OSMOverpassService(transport=transport)

        with pytest.raises(FatalProviderError):
            await service.acquire_pois(BERLIN_BBOX, 10, [InterestCategory.ART_MUSEUMS])
        assert transport.call_count == 1
        assert recorded_sleeps == []

    @pytest.mark.asyncio
    async def test_connection_error_not_retried(self, recorded_sleeps) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        service = OSMOverpassService(transport=httpx.MockTransport(handler))
        with pytest.raises(FatalProviderError):
            await service.acquire_pois(BERLIN_BBOX, 10, [InterestCategory.ART_MUSEUMS])
        assert recorded_sleeps == []


class TestAcquireAndMergeScenario:
    """Acquire a viewport, then pan to an overlapping one."""

    @pytest.mark.asyncio
    async def test_pan_grows_cache_by_new_pois_only(self) -> None:
        first_batch = [
            overpass_element(i, 52.50 + i * 0.0005, 13.40, tourism="museum", name=f"M{i}")
            for i in range(1, 31)
        ]
        # 10 overlap with the first batch (ids 21..30), 5 are new (ids 101..105)
        second_batch = first_batch[20:] + [
            overpass_element(100 + i, 52.54, 13.43 + i * 0.001, tourism="gallery", name=f"G{i}")
            for i in range(1, 6)
        ]
        batches = [first_batch, second_batch]
        transport = RecordingTransport(lambda r: json_response({"elements": batches.pop(0)}))
        service = OSMOverpassService(transport=transport)
        cache = POICache()

        pois = await service.acquire_pois(BERLIN_BBOX, 50, [InterestCategory.ART_MUSEUMS])
        assert len({p.id for p in pois}) == len(pois) == 30
        cache.merge_incoming(pois)
        assert len(cache) == 30

        panned = BoundingBox(min_lat=52.51, min_lng=13.40, max_lat=52.55, max_lng=13.44)
        more = await service.acquire_pois(panned, 50, [InterestCategory.ART_MUSEUMS])
        assert len(more) == 15
        added = cache.merge_incoming(more)
        assert len(added) == 5
        assert len(cache) == 35
