"""GeoJSON export for assembled routes."""

from typing import Any

from poiroute.models import POI, Route


def _poi_feature(poi: POI, index: int, total: int) -> dict[str, Any]:
    if index == 0:
        poi_type = "start"
    elif index == total - 1:
        poi_type = "finish"
    else:
        poi_type = "waypoint"

    return {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            "coordinates": [poi.coordinates.lng, poi.coordinates.lat],
        },
        "properties": {
            "name": poi.name,
            "category": ", ".join(c.value for c in poi.categories),
            "icon_url": poi.resolved_image_url,
            "website": poi.website,
            "wikipedia": poi.wikipedia_url,
            "poi_id": poi.id,
            "poi_type": poi_type,
            "sequence": index + 1,
        },
    }


def route_to_geojson(route: Route, name: str = "Route") -> dict[str, Any]:
    """FeatureCollection: the route LineString, then one Point per waypoint."""
    route_feature = {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            # GeoJSON order is [lng, lat]
            "coordinates": [[lng, lat] for lat, lng in route.geometry],
        },
        "properties": {
            "name": name,
            "distance": route.total_distance,
            "duration": route.total_duration,
            "poi_count": len(route.ordered_pois),
            "profile": route.profile,
            "provider": route.provider,
            "feature_type": "route",
        },
    }
    total = len(route.ordered_pois)
    return {
        "type": "FeatureCollection",
        "features": [route_feature]
        + [_poi_feature(poi, i, total) for i, poi in enumerate(route.ordered_pois)],
    }
