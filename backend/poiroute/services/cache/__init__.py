"""Session-scoped spatial POI cache."""

from .service import POICache

__all__ = ["POICache"]
