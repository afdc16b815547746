"""API routes for the POI route planner.

- POIs: acquire into the session cache, query by viewport, flag must-visit
- Images: lazy per-POI image resolution
- Routes: build through must-visit stops, current route, summary, GeoJSON export
- Credentials: store a provider key, retrying a pending route build once
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from poiroute.api.state import PlannerState
from poiroute.models import (
    POI,
    AppError,
    BoundingBox,
    InterestCategory,
    MobilityType,
    Route,
    ServiceError,
    TransportMode,
    TravelPace,
)
from poiroute.services import RouteRequest
from poiroute.utils.geojson import route_to_geojson
from poiroute.utils.route_summary import calculate_route_bounds, calculate_route_duration

logger = logging.getLogger(__name__)

router = APIRouter()


def get_planner(request: Request) -> PlannerState:
    return request.app.state.planner


def _get_poi_or_404(planner: PlannerState, poi_id: str) -> POI:
    poi = planner.cache.get(poi_id)
    if poi is None:
        raise HTTPException(status_code=404, detail=f"Unknown POI: {poi_id}")
    return poi


# Request/Response models
class AcquireRequest(BaseModel):
    """Request model for POI acquisition."""
    bbox: BoundingBox
    limit: int = Field(50, ge=1, le=500)
    categories: list[InterestCategory] = Field(default_factory=list)


class AcquireResponse(BaseModel):
    """Acquisition result; ``pois`` is everything cached inside the bbox."""
    success: bool
    added: int = 0
    pois: list[POI] = Field(default_factory=list)
    error: Optional[AppError] = None


class MustVisitRequest(BaseModel):
    must_visit: bool


class ImageResponse(BaseModel):
    poi_id: str
    url: str


class BuildRouteRequest(BaseModel):
    """Request model for building a route through the must-visit POIs."""
    start_id: str = Field(..., min_length=1)
    finish_id: str = Field(..., min_length=1)
    mobility: MobilityType = MobilityType.STANDARD
    transport_mode: TransportMode = TransportMode.WALK
    avoid_stairs: Optional[bool] = None


class RouteResponse(BaseModel):
    success: bool
    route: Optional[Route] = None
    error: Optional[AppError] = None


class RouteSummaryResponse(BaseModel):
    """Duration breakdown (seconds plus HH:MM) and geometry bounds."""
    pace: TravelPace
    duration: dict
    bounds: Optional[BoundingBox] = None


class CredentialsRequest(BaseModel):
    api_key: str = Field(..., min_length=1)


class CredentialsResponse(BaseModel):
    """``route`` is present when a pending route build was retried."""
    saved: bool
    retried: bool = False
    route: Optional[RouteResponse] = None


@router.post("/pois/acquire", response_model=AcquireResponse)
async def acquire_pois(body: AcquireRequest, request: Request) -> AcquireResponse:
    planner = get_planner(request)
    try:
        added = await planner.acquire(body.bbox, body.limit, body.categories)
    except ServiceError as e:
        logger.warning(f"[OSM] Acquisition failed: {e.kind.value}: {e.message}")
        # Previously cached POIs stay visible
        return AcquireResponse(
            success=False,
            pois=planner.cache.in_view(body.bbox),
            error=e.to_app_error(),
        )
    return AcquireResponse(
        success=True,
        added=len(added),
        pois=planner.cache.in_view(body.bbox),
    )


@router.get("/pois", response_model=list[POI])
async def pois_in_view(
    request: Request,
    min_lat: float = Query(...),
    min_lng: float = Query(...),
    max_lat: float = Query(...),
    max_lng: float = Query(...),
) -> list[POI]:
    bbox = BoundingBox(min_lat=min_lat, min_lng=min_lng, max_lat=max_lat, max_lng=max_lng)
    return get_planner(request).cache.in_view(bbox)


@router.put("/pois/{poi_id}/must-visit", response_model=POI)
async def set_must_visit(poi_id: str, body: MustVisitRequest, request: Request) -> POI:
    planner = get_planner(request)
    _get_poi_or_404(planner, poi_id)
    return planner.cache.set_must_visit(poi_id, body.must_visit)


@router.get("/pois/{poi_id}/image", response_model=ImageResponse)
async def get_poi_image(poi_id: str, request: Request) -> ImageResponse:
    planner = get_planner(request)
    poi = _get_poi_or_404(planner, poi_id)
    url = await planner.resolve_image(poi)
    return ImageResponse(poi_id=poi_id, url=url)


@router.post("/routes", response_model=RouteResponse)
async def build_route(body: BuildRouteRequest, request: Request) -> RouteResponse:
    planner = get_planner(request)
    start = _get_poi_or_404(planner, body.start_id)
    finish = _get_poi_or_404(planner, body.finish_id)
    intermediates = [
        poi for poi in planner.cache.must_visit_pois()
        if poi.id not in (start.id, finish.id)
    ]
    route_request = RouteRequest(
        start=start,
        finish=finish,
        intermediates=intermediates,
        mobility=body.mobility,
        transport_mode=body.transport_mode,
        avoid_stairs=body.avoid_stairs,
    )
    try:
        route = await planner.build_route(route_request)
    except ServiceError as e:
        logger.warning(f"[ROUTE] Route build failed: {e.kind.value}: {e.message}")
        return RouteResponse(success=False, error=e.to_app_error())
    return RouteResponse(success=True, route=route)


@router.get("/routes/current", response_model=RouteResponse)
async def current_route(request: Request) -> RouteResponse:
    route = get_planner(request).current_route
    if route is None:
        raise HTTPException(status_code=404, detail="No route has been built")
    return RouteResponse(success=True, route=route)


@router.get("/routes/current/geojson")
async def current_route_geojson(request: Request) -> dict:
    route = get_planner(request).current_route
    if route is None:
        raise HTTPException(status_code=404, detail="No route has been built")
    return route_to_geojson(route)


@router.get("/routes/current/summary", response_model=RouteSummaryResponse)
async def current_route_summary(
    request: Request, pace: TravelPace = Query(TravelPace.MEDIUM)
) -> RouteSummaryResponse:
    route = get_planner(request).current_route
    if route is None:
        raise HTTPException(status_code=404, detail="No route has been built")
    return RouteSummaryResponse(
        pace=pace,
        duration=calculate_route_duration(route, pace),
        bounds=calculate_route_bounds(route),
    )


@router.put("/credentials/{provider}", response_model=CredentialsResponse)
async def save_credentials(
    provider: str, body: CredentialsRequest, request: Request
) -> CredentialsResponse:
    planner = get_planner(request)
    retried = planner.pending_route is not None
    try:
        route = await planner.save_credentials(provider, body.api_key)
    except ServiceError as e:
        if not retried or planner.pending_route is not None:
            # Key was rejected before any retry happened
            raise
        return CredentialsResponse(
            saved=True,
            retried=True,
            route=RouteResponse(success=False, error=e.to_app_error()),
        )
    if route is None:
        return CredentialsResponse(saved=True)
    return CredentialsResponse(
        saved=True, retried=True, route=RouteResponse(success=True, route=route)
    )
