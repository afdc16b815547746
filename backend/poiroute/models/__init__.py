"""Data models and error types."""

from .core import (
    POI,
    BoundingBox,
    Coordinates,
    InterestCategory,
    MobilityType,
    ProviderRoute,
    Route,
    RouteOptions,
    TransportMode,
    TravelPace,
)
from .errors import (
    AppError,
    CredentialError,
    ErrorKind,
    FatalProviderError,
    InputValidationError,
    ProviderTimeoutError,
    RateLimitedError,
    ServiceError,
    TransientProviderError,
)

__all__ = [
    # Core models
    "POI",
    "BoundingBox",
    "Coordinates",
    "InterestCategory",
    "MobilityType",
    "ProviderRoute",
    "Route",
    "RouteOptions",
    "TransportMode",
    "TravelPace",
    # Errors
    "AppError",
    "CredentialError",
    "ErrorKind",
    "FatalProviderError",
    "InputValidationError",
    "ProviderTimeoutError",
    "RateLimitedError",
    "ServiceError",
    "TransientProviderError",
]
