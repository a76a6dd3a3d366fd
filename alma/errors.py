"""Error taxonomy shared by services and routes.

Every subclass carries the HTTP status it maps to.
"""

from __future__ import annotations


class AlmaError(Exception):
    """Base class for all expected application errors."""

    status_code: int = 500
    title: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.title
        super().__init__(self.detail)


class ConfigurationMissing(AlmaError):
    """A required credential or connection setting is absent."""

    status_code = 503
    title = "Service unavailable"


class Unauthorized(AlmaError):
    """Missing or mismatched credential."""

    status_code = 401
    title = "Unauthorized"


class UpstreamFailure(AlmaError):
    """The database or cache backend returned an error.

    ``detail`` is what the caller sees; ``upstream_message`` is only logged.
    """

    status_code = 500
    title = "Upstream failure"

    def __init__(
        self, detail: str | None = None, upstream_message: str | None = None
    ) -> None:
        super().__init__(detail)
        self.upstream_message = upstream_message


class ValidationFailure(AlmaError):
    """Malformed input rejected before any external call."""

    status_code = 400
    title = "Validation error"
