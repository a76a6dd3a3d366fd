"""Alma Python SDK: typed clients for the Alma API plus a local location cache."""

from __future__ import annotations

from alma.sdk.client import AlmaClient, AsyncAlmaClient, NoStoredLocationError
from alma.sdk.exceptions import (
    AlmaAPIError,
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    ServiceUnavailableError,
    ValidationError,
)
from alma.sdk.location import Location, LocationStore
from alma.sdk.models import RateLimitInfo

__all__ = [
    "AsyncAlmaClient",
    "AlmaClient",
    "AlmaAPIError",
    "AuthenticationError",
    "RateLimitError",
    "NotFoundError",
    "ValidationError",
    "ServiceUnavailableError",
    "NoStoredLocationError",
    "Location",
    "LocationStore",
    "RateLimitInfo",
]
