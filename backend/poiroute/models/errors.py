"""Error taxonomy shared by the services and the API layer.

Services raise the exceptions below; the API layer turns them into the
``{"kind": ..., "message": ...}`` shape via :meth:`ServiceError.to_app_error`.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Error kinds surfaced to callers."""

    TIMEOUT = "Timeout"
    RATE_LIMITED = "RateLimited"
    PROVIDER_AUTH_REQUIRED = "ProviderAuthRequired"
    VALIDATION_ERROR = "ValidationError"
    NETWORK_ERROR = "NetworkError"


HTTP_STATUS_BY_KIND = {
    ErrorKind.TIMEOUT: 504,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.PROVIDER_AUTH_REQUIRED: 401,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.NETWORK_ERROR: 502,
}


class AppError(BaseModel):
    """Error payload returned to clients."""

    kind: ErrorKind = Field(..., description="Error category")
    message: str = Field(..., description="Human-readable detail")


class ServiceError(Exception):
    """Base class for every error a service raises on purpose."""

    kind: ErrorKind = ErrorKind.NETWORK_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_app_error(self) -> AppError:
        return AppError(kind=self.kind, message=self.message)

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]


class TransientProviderError(ServiceError):
    """Retryable upstream failure (gateway timeout, transport timeout)."""

    kind = ErrorKind.TIMEOUT


class ProviderTimeoutError(ServiceError):
    """Transient failures persisted through every allowed attempt."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class RateLimitedError(ServiceError):
    """Upstream refused the request because of its rate limit."""

    kind = ErrorKind.RATE_LIMITED


class FatalProviderError(ServiceError):
    """Non-retryable request/response problem, e.g. no path found."""

    kind = ErrorKind.NETWORK_ERROR


class InputValidationError(ServiceError):
    """The caller violated a precondition (e.g. too many stops)."""

    kind = ErrorKind.VALIDATION_ERROR


class CredentialError(ServiceError):
    """The route provider needs an API key that is missing or invalid."""

    kind = ErrorKind.PROVIDER_AUTH_REQUIRED

    def __init__(self, message: str, provider: str) -> None:
        super().__init__(message)
        self.provider = provider
