"""Lazy POI image resolution through a rate-limited Wikidata queue."""

from .service import ImageResolutionQueue, commons_file_url, is_bare_image_file

__all__ = ["ImageResolutionQueue", "commons_file_url", "is_bare_image_file"]
