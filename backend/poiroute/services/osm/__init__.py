"""OpenStreetMap Overpass POI acquisition."""

from .service import (
    CATEGORY_TO_OSM_TAGS,
    NOISE_TAGS,
    OSMOverpassService,
    backoff_delay,
    calculate_significance,
    categories_for_tags,
)

__all__ = [
    "CATEGORY_TO_OSM_TAGS",
    "NOISE_TAGS",
    "OSMOverpassService",
    "backoff_delay",
    "calculate_significance",
    "categories_for_tags",
]
