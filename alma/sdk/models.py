"""Lightweight models used by the SDK client."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class RateLimitInfo:
    """Rate-limit metadata parsed from response headers."""

    limit: int
    remaining: int
    reset: int

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> RateLimitInfo | None:
        """Parse ``X-RateLimit-*`` headers; *None* when the limiter is off."""
        raw = [
            headers.get(f"x-ratelimit-{name}")
            for name in ("limit", "remaining", "reset")
        ]
        if any(v is None for v in raw):
            return None
        try:
            limit, remaining, reset = (int(v) for v in raw)
        except ValueError:
            return None
        return cls(limit=limit, remaining=remaining, reset=reset)
