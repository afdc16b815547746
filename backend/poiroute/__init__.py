"""POI acquisition, caching and multi-stop route assembly."""

__version__ = "0.1.0"
