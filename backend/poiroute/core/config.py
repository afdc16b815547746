"""Application settings, read from the environment and ``.env``."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    USER_AGENT: str = "POIRoutePlanner/1.0 (contact@poiroute.app)"
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # POI acquisition (Overpass)
    OVERPASS_URL: str = "https://overpass-api.de/api/interpreter"
    OVERPASS_TIMEOUT_SECONDS: float = 30.0
    ACQUISITION_MAX_ATTEMPTS: int = 3
    ACQUISITION_BACKOFF_BASE_SECONDS: float = 1.0

    # Image resolution (Wikidata)
    WIKIDATA_API_URL: str = "https://www.wikidata.org/w/api.php"
    IMAGE_LOOKUP_DELAY_SECONDS: float = 0.5
    IMAGE_PLACEHOLDER_URL: str = "/static/no_image_placeholder.png"

    # Routing
    ROUTE_PROVIDER: str = "osrm"
    MAX_INTERMEDIATE_WAYPOINTS: int = 15
    OSRM_URL: str = "https://router.project-osrm.org"
    OSRM_MAX_WAYPOINTS: int = 5
    GRAPHHOPPER_URL: str = "https://graphhopper.com/api/1"
    GRAPHHOPPER_MAX_WAYPOINTS: int = 25
    GRAPHHOPPER_API_KEY: str | None = None

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
