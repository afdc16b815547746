"""Route provider interface.

A route provider turns one ordered waypoint list into distance, duration
and geometry in a single request. Providers differ in how many waypoints
one request may carry and in whether they need an API key; splitting
longer routes is the route assembly engine's job, not the provider's.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from poiroute.models import (
    Coordinates,
    InputValidationError,
    MobilityType,
    ProviderRoute,
    RouteOptions,
    TransportMode,
)

logger = logging.getLogger(__name__)


class CredentialStore:
    """In-memory API key storage, one key per provider name."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._keys: dict[str, str] = {
            name.lower(): key for name, key in (initial or {}).items() if key
        }

    def get(self, provider: str) -> Optional[str]:
        return self._keys.get(provider.lower())

    def set(self, provider: str, api_key: str) -> None:
        if not api_key or not api_key.strip():
            raise InputValidationError("API key cannot be empty")
        self._keys[provider.lower()] = api_key.strip()
        logger.info(f"[ROUTE] Stored API key for {provider}")

    def clear(self, provider: str) -> None:
        self._keys.pop(provider.lower(), None)

    def has(self, provider: str) -> bool:
        return provider.lower() in self._keys


class RouteProvider(ABC):
    """Abstract base class for routing backends."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @property
    @abstractmethod
    def max_waypoints_per_request(self) -> int:
        pass

    @property
    def requires_api_key(self) -> bool:
        return False

    @abstractmethod
    def get_profile_for_mobility(
        self, mobility: MobilityType, transport_mode: TransportMode
    ) -> str:
        """Map semantic travel constraints to a provider profile token."""
        pass

    @abstractmethod
    async def _request_route(
        self, waypoints: list[Coordinates], options: RouteOptions
    ) -> ProviderRoute:
        pass

    async def build_route(
        self, waypoints: list[Coordinates], options: RouteOptions | None = None
    ) -> ProviderRoute:
        """Route through ``waypoints`` in order with one provider request.

        Raises:
            InputValidationError: fewer than 2 or more than
                ``max_waypoints_per_request`` waypoints.
            CredentialError, RateLimitedError, TransientProviderError,
            FatalProviderError: provider-side failures.
        """
        if len(waypoints) < 2:
            raise InputValidationError("A route needs at least 2 waypoints")
        if len(waypoints) > self.max_waypoints_per_request:
            raise InputValidationError(
                f"{self.provider_name} accepts at most "
                f"{self.max_waypoints_per_request} waypoints per request, got {len(waypoints)}"
            )
        return await self._request_route(waypoints, options or RouteOptions())

    async def close(self) -> None:
        pass  # No persistent client to close
