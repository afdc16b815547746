"""Route-level figures: duration breakdown and geometry bounds."""

from typing import Any, Optional

from poiroute.models import BoundingBox, Route, TravelPace

# Hours spent at each stop, by travel pace
VISIT_HOURS_BY_PACE = {
    TravelPace.LOW: 2.5,
    TravelPace.MEDIUM: 2.0,
    TravelPace.HIGH: 1.5,
}


def visit_hours(pace: TravelPace | None) -> float:
    """Hours per stop; unknown or missing pace counts as medium."""
    return VISIT_HOURS_BY_PACE.get(pace, VISIT_HOURS_BY_PACE[TravelPace.MEDIUM])


def visit_seconds(stop_count: int, pace: TravelPace | None) -> float:
    if stop_count <= 0:
        return 0.0
    return stop_count * visit_hours(pace) * 3600


def format_duration(seconds: float) -> str:
    """Seconds as ``HH:MM``, half a minute rounds up."""
    if not seconds or seconds < 0:
        return "00:00"
    total_minutes = int(seconds / 60 + 0.5)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def calculate_route_duration(route: Route, pace: TravelPace | None = None) -> dict[str, Any]:
    """Travel time from the provider plus time spent at each intermediate stop.

    Start and finish are not visits. All values are in seconds, with
    ``HH:MM`` renderings under ``formatted``.
    """
    travel = route.total_duration
    visit = visit_seconds(len(route.intermediates), pace)
    total = travel + visit
    return {
        "total": total,
        "travel": travel,
        "visit": visit,
        "formatted": {
            "total": format_duration(total),
            "travel": format_duration(travel),
            "visit": format_duration(visit),
        },
    }


def calculate_route_bounds(route: Route) -> Optional[BoundingBox]:
    """Smallest box around the route geometry, None when there is none."""
    if not route.geometry:
        return None
    lats = [lat for lat, _ in route.geometry]
    lngs = [lng for _, lng in route.geometry]
    return BoundingBox(
        min_lat=min(lats),
        min_lng=min(lngs),
        max_lat=max(lats),
        max_lng=max(lngs),
    )
