"""Spatial POI cache.

Holds every POI acquired during a session, keyed by its stable id, and
answers viewport queries.

Merging is additive: an id that is already cached is never replaced, so a
later (or superseded, out-of-order) acquisition cannot wipe a resolved
image or a must-visit flag. Viewport queries are a linear scan over the
cache; there is no spatial index and no eviction, the cache grows for the
lifetime of the session and is bounded only by acquisition limits.
"""

import logging
from typing import Iterable, Iterator

from poiroute.models import POI, BoundingBox

logger = logging.getLogger(__name__)


class POICache:
    """In-memory POI store with bounding-box lookup."""

    def __init__(self) -> None:
        self._pois: dict[str, POI] = {}

    def __len__(self) -> int:
        return len(self._pois)

    def __contains__(self, poi_id: object) -> bool:
        return poi_id in self._pois

    def __iter__(self) -> Iterator[POI]:
        return iter(list(self._pois.values()))

    def merge_incoming(self, pois: Iterable[POI]) -> list[POI]:
        """Add POIs whose id is not cached yet.

        Existing entries are left untouched. Returns the POIs that were
        actually added, in input order.
        """
        added: list[POI] = []
        for poi in pois:
            if poi.id in self._pois:
                continue
            self._pois[poi.id] = poi
            added.append(poi)
        logger.info(f"[CACHE] Merged {len(added)} new POIs (cache size {len(self._pois)})")
        return added

    def in_view(self, bbox: BoundingBox) -> list[POI]:
        """All cached POIs inside ``bbox``, edges included."""
        return [
            poi for poi in self._pois.values()
            if bbox.contains(poi.coordinates.lat, poi.coordinates.lng)
        ]

    def get(self, poi_id: str) -> POI | None:
        return self._pois.get(poi_id)

    def set_resolved_image(self, poi_id: str, url: str) -> bool:
        """Persist a resolved image URL onto the cached entry.

        Returns False for unknown ids or entries that already hold an image.
        """
        poi = self._pois.get(poi_id)
        if poi is None:
            return False
        return poi.set_resolved_image_url(url)

    def set_must_visit(self, poi_id: str, must_visit: bool) -> POI | None:
        poi = self._pois.get(poi_id)
        if poi is None:
            return None
        poi.must_visit = must_visit
        return poi

    def must_visit_pois(self) -> list[POI]:
        return [poi for poi in self._pois.values() if poi.must_visit]
