"""OpenStreetMap Overpass API service for POI acquisition.

Architecture:
1. Build one Overpass QL query: union of the per-category tag filters,
   minus a fixed set of "noise" elements (info boards, plaques, ...)
2. POST it, retrying gateway timeouts with exponential backoff
3. Map elements to POIs: categories from tags, additive significance score
4. Deduplicate by id, sort by significance, truncate to the limit

Only HTTP 504 and transport timeouts are treated as transient. Rate
limiting and every other failure surface immediately.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional

import httpx

from poiroute.core.config import settings
from poiroute.models import (
    POI,
    BoundingBox,
    Coordinates,
    FatalProviderError,
    InputValidationError,
    InterestCategory,
    ProviderTimeoutError,
    RateLimitedError,
    TransientProviderError,
)

logger = logging.getLogger(__name__)


# Map interest categories to OSM tags ("key=value", or "key=*" for any value)
CATEGORY_TO_OSM_TAGS: dict[InterestCategory, list[str]] = {
    InterestCategory.HISTORY_CULTURE: [
        "historic=*",
        "tourism=museum",
    ],
    InterestCategory.ART_MUSEUMS: [
        "tourism=museum", "tourism=gallery", "tourism=artwork",
        "amenity=arts_centre",
    ],
    InterestCategory.ARCHITECTURE: [
        "building=cathedral", "building=church", "building=palace",
        "man_made=tower", "man_made=bridge",
        "amenity=place_of_worship",
    ],
    InterestCategory.NATURE_PARKS: [
        "leisure=park", "leisure=garden", "leisure=nature_reserve",
        "tourism=viewpoint", "natural=peak", "natural=beach",
    ],
    InterestCategory.ENTERTAINMENT: [
        "tourism=attraction", "tourism=zoo", "tourism=theme_park",
        "tourism=aquarium", "amenity=theatre", "amenity=cinema",
    ],
    InterestCategory.GASTRONOMY: [
        "amenity=restaurant", "amenity=cafe", "amenity=ice_cream",
    ],
    InterestCategory.NIGHTLIFE: [
        "amenity=bar", "amenity=pub", "amenity=nightclub", "amenity=biergarten",
    ],
}

# Generic markers that match the filters above but are not worth a visit.
# The boundary is a product call; extend as needed.
NOISE_TAGS = [
    "tourism=information",
    "information=board",
    "memorial=plaque",
    "memorial=stolperstein",
    "historic=boundary_stone",
    "man_made=survey_point",
]

# Significance weights (additive)
SIGNIFICANCE_WEIGHTS = {
    "wikipedia": 3,
    "wikidata": 2,
    "website": 1,
    "name": 1,
    "way": 1,
    "relation": 2,
}

OVERFETCH_FACTOR = 3


def backoff_delay(attempt: int, base: float) -> float:
    """Delay before retrying after the given (1-based) failed attempt."""
    return base * (2 ** (attempt - 1))


def _split_tag(tag: str) -> tuple[str, str]:
    key, value = tag.split("=", 1)
    return key, value


def tag_matches(tags: dict[str, str], tag: str) -> bool:
    key, value = _split_tag(tag)
    if value == "*":
        return bool(tags.get(key)) and tags[key] != "no"
    return tags.get(key) == value


def categories_for_tags(tags: dict[str, str]) -> list[InterestCategory]:
    """All categories whose filters match the element's tags, in enum order."""
    return [
        category
        for category, filters in CATEGORY_TO_OSM_TAGS.items()
        if any(tag_matches(tags, f) for f in filters)
    ]


def calculate_significance(tags: dict[str, str], osm_type: str) -> int:
    """Additive significance score.

    Encyclopedia and knowledge-base links say the place is notable, a
    website says it is established, and ways/relations (buildings, parks)
    outrank single nodes.
    """
    score = 0
    if tags.get("wikipedia"):
        score += SIGNIFICANCE_WEIGHTS["wikipedia"]
    if tags.get("wikidata"):
        score += SIGNIFICANCE_WEIGHTS["wikidata"]
    if tags.get("website") or tags.get("contact:website"):
        score += SIGNIFICANCE_WEIGHTS["website"]
    if tags.get("name"):
        score += SIGNIFICANCE_WEIGHTS["name"]
    score += SIGNIFICANCE_WEIGHTS.get(osm_type, 0)
    return score


class OSMOverpassService:
    """Overpass API client that turns a bbox + categories into POIs."""

    OVERPASS_URL = settings.OVERPASS_URL

    HEADERS = {"User-Agent": settings.USER_AGENT}

    def __init__(
        self,
        overpass_url: str | None = None,
        timeout: float = settings.OVERPASS_TIMEOUT_SECONDS,
        max_attempts: int = settings.ACQUISITION_MAX_ATTEMPTS,
        backoff_base: float = settings.ACQUISITION_BACKOFF_BASE_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._url = overpass_url or self.OVERPASS_URL
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._transport = transport

    async def close(self) -> None:
        pass  # No persistent client to close

    def _tag_selectors(self, tags: Iterable[str], bbox: BoundingBox) -> list[str]:
        area = bbox.to_overpass()
        selectors = []
        for tag in tags:
            key, value = _split_tag(tag)
            predicate = f'["{key}"]' if value == "*" else f'["{key}"="{value}"]'
            for element_type in ("node", "way", "relation"):
                selectors.append(f"{element_type}{predicate}({area});")
        return selectors

    def build_query(
        self,
        bbox: BoundingBox,
        categories: Iterable[InterestCategory],
        limit: int,
    ) -> str:
        """Build the Overpass QL query for the requested categories."""
        wanted_tags: list[str] = []
        for category in categories:
            for tag in CATEGORY_TO_OSM_TAGS[category]:
                if tag not in wanted_tags:
                    wanted_tags.append(tag)

        wanted = "\n  ".join(self._tag_selectors(wanted_tags, bbox))
        noise = "\n  ".join(self._tag_selectors(NOISE_TAGS, bbox))

        return f"""
[out:json][timeout:25];
(
  {wanted}
)->.wanted;
(
  {noise}
)->.noise;
(.wanted; - .noise;);
out center tags {limit * OVERFETCH_FACTOR};
"""

    async def _post_query(self, query: str) -> dict[str, Any]:
        """Single Overpass call; classifies failures into the error taxonomy."""
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, headers=self.HEADERS, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url,
                    data={"data": query},
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.TimeoutException as e:
            raise TransientProviderError(f"Overpass request timed out: {e}") from e
        except httpx.TransportError as e:
            raise FatalProviderError(f"Overpass unreachable: {e}") from e

        if response.status_code == 504:
            raise TransientProviderError("Overpass gateway timeout (504)")
        if response.status_code == 429:
            raise RateLimitedError("Overpass rate limit reached, try again shortly")
        if response.status_code >= 400:
            raise FatalProviderError(f"Overpass HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise FatalProviderError("Overpass returned malformed JSON") from e

        # Overpass reports server-side query timeouts inside a 200 response
        remark = data.get("remark") or ""
        if "timed out" in remark or "Timeout" in remark:
            raise TransientProviderError(f"Overpass query timed out: {remark}")
        return data

    async def _post_with_retry(self, query: str) -> dict[str, Any]:
        """POST with exponential backoff on transient failures."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._post_query(query)
            except TransientProviderError as e:
                if attempt >= self._max_attempts:
                    logger.warning(f"[OSM] Giving up after {attempt} attempts: {e.message}")
                    raise ProviderTimeoutError(
                        f"POI service timed out after {attempt} attempts",
                        attempts=attempt,
                    ) from e
                wait = backoff_delay(attempt, self._backoff_base)
                logger.info(f"[OSM] Retry {attempt}/{self._max_attempts - 1} in {wait:.1f}s: {e.message}")
                await asyncio.sleep(wait)

    def element_to_poi(self, element: dict[str, Any]) -> Optional[POI]:
        """Convert one Overpass element to a POI, or None if unusable."""
        osm_type = element.get("type")
        osm_id = element.get("id")
        if osm_type not in ("node", "way", "relation") or osm_id is None:
            return None

        # Coordinates (center for ways/relations)
        if "lat" in element and "lon" in element:
            lat, lon = element["lat"], element["lon"]
        elif "center" in element:
            lat = element["center"].get("lat")
            lon = element["center"].get("lon")
        else:
            return None
        if lat is None or lon is None:
            return None

        tags = {str(k): str(v) for k, v in (element.get("tags") or {}).items()}
        categories = categories_for_tags(tags)
        if not categories:
            return None

        return POI(
            id=f"osm_{osm_type}_{osm_id}",
            name=tags.get("name") or "Unnamed",
            coordinates=Coordinates(lat=lat, lng=lon),
            categories=categories,
            tags=tags,
            osm_type=osm_type,
            osm_id=str(osm_id),
            significance=calculate_significance(tags, osm_type),
        )

    async def acquire_pois(
        self,
        bbox: BoundingBox,
        limit: int,
        categories: Iterable[InterestCategory] | None = None,
    ) -> list[POI]:
        """Fetch POIs inside ``bbox`` for the requested categories.

        Args:
            bbox: Area to search.
            limit: Maximum number of POIs returned.
            categories: Interest categories; all of them when empty.

        Returns:
            POIs with unique ids, most significant first.

        Raises:
            InputValidationError: limit below 1.
            ProviderTimeoutError: every attempt hit a gateway timeout.
            RateLimitedError, FatalProviderError: non-retryable failures.
        """
        if limit < 1:
            raise InputValidationError("limit must be at least 1")

        requested = list(dict.fromkeys(categories or []))
        if not requested:
            requested = list(InterestCategory)

        query = self.build_query(bbox, requested, limit)
        logger.info(
            f"[OSM] Querying {len(requested)} categories in ({bbox.to_overpass()}), limit={limit}"
        )
        data = await self._post_with_retry(query)

        pois: dict[str, POI] = {}
        for element in data.get("elements", []):
            poi = self.element_to_poi(element)
            if poi is not None and poi.id not in pois:
                pois[poi.id] = poi

        ranked = sorted(pois.values(), key=lambda p: p.significance, reverse=True)
        logger.info(f"[OSM] Found {len(ranked)} POIs, returning {min(limit, len(ranked))}")
        return ranked[:limit]
