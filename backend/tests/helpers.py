"""Builders for POIs, Overpass elements and stubbed HTTP responses."""

import json
from typing import Any, Callable

import httpx

from poiroute.models import POI, Coordinates, InterestCategory


def make_poi(
    poi_id: str,
    lat: float,
    lng: float,
    name: str | None = None,
    tags: dict[str, str] | None = None,
    categories: list[InterestCategory] | None = None,
    significance: int = 1,
) -> POI:
    return POI(
        id=poi_id,
        name=name or poi_id,
        coordinates=Coordinates(lat=lat, lng=lng),
        categories=categories or [InterestCategory.ART_MUSEUMS],
        tags=tags or {},
        significance=significance,
    )


def overpass_element(
    osm_id: int,
    lat: float,
    lon: float,
    osm_type: str = "node",
    **tags: str,
) -> dict[str, Any]:
    element: dict[str, Any] = {"type": osm_type, "id": osm_id, "tags": tags}
    if osm_type == "node":
        element["lat"] = lat
        element["lon"] = lon
    else:
        element["center"] = {"lat": lat, "lon": lon}
    return element


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], Any]) -> None:
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request):
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    @property
    def call_count(self) -> int:
        return len(self.requests)


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json"},
    )


