"""Core data models for the POI route planner.

This module contains the Pydantic models used throughout the application
for representing coordinates, bounding boxes, points of interest (POIs)
and assembled routes.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class InterestCategory(str, Enum):
    """Closed vocabulary of interest categories a POI can belong to."""

    HISTORY_CULTURE = "history_culture"
    ART_MUSEUMS = "art_museums"
    ARCHITECTURE = "architecture"
    NATURE_PARKS = "nature_parks"
    ENTERTAINMENT = "entertainment"
    GASTRONOMY = "gastronomy"
    NIGHTLIFE = "nightlife"


class MobilityType(str, Enum):
    """The traveller's main mobility factor.

    Anything other than STANDARD makes stairs a problem.
    """

    STANDARD = "standard"
    WHEELCHAIR = "wheelchair"
    STROLLER = "stroller"
    LOW_ENDURANCE = "low_endurance"


class TransportMode(str, Enum):
    """Preferred way of moving between stops."""

    WALK = "walk"
    BIKE = "bike"
    PUBLIC_TRANSIT = "public_transit"
    CAR_TAXI = "car_taxi"


class TravelPace(str, Enum):
    """How many stops the traveller wants to fit in, and so how long each visit lasts."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Coordinates(BaseModel):
    """Geographic coordinates with validation.

    Latitude must be between -90 and 90 degrees.
    Longitude must be between -180 and 180 degrees.
    """

    lat: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    lng: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class BoundingBox(BaseModel):
    """Axis-aligned latitude/longitude box.

    Every edge is inclusive: a point lying exactly on an edge is inside.
    """

    min_lat: float = Field(..., ge=-90, le=90)
    min_lng: float = Field(..., ge=-180, le=180)
    max_lat: float = Field(..., ge=-90, le=90)
    max_lng: float = Field(..., ge=-180, le=180)

    @model_validator(mode="after")
    def _check_order(self) -> "BoundingBox":
        if self.min_lat > self.max_lat:
            raise ValueError("min_lat must not exceed max_lat")
        if self.min_lng > self.max_lng:
            raise ValueError("min_lng must not exceed max_lng")
        return self

    def contains(self, lat: float, lng: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lng <= lng <= self.max_lng
        )

    def to_overpass(self) -> str:
        """Overpass bbox filter order: south, west, north, east."""
        return f"{self.min_lat},{self.min_lng},{self.max_lat},{self.max_lng}"


class POI(BaseModel):
    """Point of Interest model.

    Built once from an OpenStreetMap element during acquisition. The raw
    tags and the significance score never change afterwards; the resolved
    image only ever moves from unresolved to resolved, and ``must_visit``
    is toggled by the user.
    """

    id: str = Field(..., min_length=1, description="Stable id, e.g. osm_node_12345")
    name: str = Field(..., min_length=1, description="Display name of the place")
    coordinates: Coordinates = Field(..., description="Geographic location")
    categories: list[InterestCategory] = Field(
        ..., min_length=1, description="Interest categories matched by the tags"
    )
    tags: dict[str, str] = Field(
        default_factory=dict, frozen=True, description="Raw OSM tags"
    )
    osm_type: str = Field("node", frozen=True, description="node, way or relation")
    osm_id: Optional[str] = Field(None, frozen=True, description="OSM element id")
    significance: int = Field(
        0, ge=0, frozen=True, description="Heuristic rank computed at acquisition"
    )
    resolved_image_url: Optional[str] = Field(
        None, description="Display image, None until resolved"
    )
    must_visit: bool = Field(False, description="User wants this stop on the route")

    @property
    def wikidata_id(self) -> Optional[str]:
        return self.tags.get("wikidata") or None

    @property
    def image_reference(self) -> Optional[str]:
        return self.tags.get("image") or None

    @property
    def commons_file(self) -> Optional[str]:
        return self.tags.get("wikimedia_commons") or None

    @property
    def website(self) -> Optional[str]:
        return self.tags.get("website") or self.tags.get("contact:website") or None

    @property
    def wheelchair(self) -> Optional[str]:
        """Raw ``wheelchair`` accessibility tag (yes/limited/no) if present."""
        return self.tags.get("wheelchair") or None

    @property
    def wikipedia_url(self) -> Optional[str]:
        """Article URL for the ``wikipedia`` tag.

        OSM stores it as ``language:Article_Name`` (e.g. ``en:Eiffel_Tower``);
        values without a prefix are treated as English.
        """
        value = self.tags.get("wikipedia")
        if not value:
            return None
        if ":" in value:
            language, article = value.split(":", 1)
            return f"https://{language}.wikipedia.org/wiki/{article.replace(' ', '_')}"
        return f"https://en.wikipedia.org/wiki/{value.replace(' ', '_')}"

    def has_resolved_image(self) -> bool:
        return self.resolved_image_url is not None

    def set_resolved_image_url(self, url: str) -> bool:
        """Record the resolved image.

        Returns False (and keeps the existing value) when the POI already
        has one or when ``url`` is empty.
        """
        if not url or self.resolved_image_url is not None:
            return False
        self.resolved_image_url = url
        return True


class RouteOptions(BaseModel):
    """Options passed to a route provider for a single request."""

    profile: str = Field("foot", description="Provider-specific profile token")
    avoid_stairs: bool = Field(False, description="Avoid steps where supported")


class ProviderRoute(BaseModel):
    """Result of one routing request against a provider."""

    distance: float = Field(..., ge=0, description="Distance in meters")
    duration: float = Field(..., ge=0, description="Duration in seconds")
    geometry: list[tuple[float, float]] = Field(
        default_factory=list, description="(lat, lng) pairs along the path"
    )
    legs: list[dict[str, Any]] = Field(default_factory=list)


class Route(BaseModel):
    """A complete route: start, must-visit stops in visit order, finish.

    Distance and duration are sums over every provider request the route
    was assembled from.
    """

    ordered_pois: list[POI] = Field(..., min_length=2, description="Waypoints in visit order")
    geometry: list[tuple[float, float]] = Field(
        default_factory=list, description="(lat, lng) pairs for the whole route"
    )
    total_distance: float = Field(..., ge=0, description="Total distance in meters")
    total_duration: float = Field(..., ge=0, description="Total duration in seconds")
    profile: str = Field(..., description="Provider profile the route was built with")
    provider: str = Field(..., description="Route provider name")
    legs: list[dict[str, Any]] = Field(default_factory=list)
    request_count: int = Field(1, ge=1, description="Provider requests issued")

    @property
    def waypoints(self) -> list[Coordinates]:
        return [poi.coordinates for poi in self.ordered_pois]

    @property
    def intermediates(self) -> list[POI]:
        return self.ordered_pois[1:-1]
