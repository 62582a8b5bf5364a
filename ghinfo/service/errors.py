"""Errors raised by the services and mapped to HTTP responses in ``main``."""


class ServiceError(Exception):
    """Base class; ``status_code`` is the HTTP status reported to the client."""

    status_code = 500


class BadRequestError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404

    def __init__(self, message: str = "Data not found") -> None:
        super().__init__(message)


class RateLimitedError(ServiceError):
    status_code = 429


class UpstreamError(ServiceError):
    """The origin failed before sending a usable response."""

    status_code = 502


class StreamInterruptedError(UpstreamError):
    """The origin failed after the response body had started."""
