"""Exception hierarchy for the Alma SDK."""

from __future__ import annotations

from alma.sdk.models import RateLimitInfo


class AlmaAPIError(Exception):
    """Base exception for all Alma API errors."""

    def __init__(self, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class AuthenticationError(AlmaAPIError):
    """Raised on 401 or 403 responses."""


class RateLimitError(AlmaAPIError):
    """Raised on 429 responses."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        rate_limit_info: RateLimitInfo | None = None,
    ) -> None:
        super().__init__(status_code, detail)
        self.rate_limit_info = rate_limit_info


class NotFoundError(AlmaAPIError):
    """Raised on 404 responses."""


class ValidationError(AlmaAPIError):
    """Raised on 400 or 422 responses."""


class ServiceUnavailableError(AlmaAPIError):
    """Raised on 503 responses (server-side configuration missing)."""
