"""Client-side cache of the user's last known position.

The location lives in a small JSON file owned by the client. Each new fix
overwrites it. A missing, unreadable or malformed file simply means "no
location", and write failures are logged and swallowed so a broken disk never
breaks a search.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path.home() / ".alma" / "last_location.json"
LOCATION_PATH_ENV = "ALMA_LOCATION_FILE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)
    label: str | None = None
    source: Literal["gps", "manual"] = "gps"
    saved_at: datetime = Field(default_factory=_utcnow)
    formatted_address: str | None = None


class LocationStore:
    """Load/save/clear a single :class:`Location` at *path*."""

    def __init__(self, path: str | os.PathLike | None = None) -> None:
        if path is None:
            path = os.environ.get(LOCATION_PATH_ENV) or DEFAULT_PATH
        self.path = Path(path)

    def load(self) -> Location | None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Could not read %s: %s", self.path, exc)
            return None

        try:
            return Location.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError) as exc:
            logger.debug("Ignoring malformed location file %s: %s", self.path, exc)
            return None

    def save(self, location: Location) -> Location:
        """Persist *location*, replacing whatever was stored before."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(location.model_dump_json(), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            logger.warning("Could not save location to %s: %s", self.path, exc)
        return location

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
