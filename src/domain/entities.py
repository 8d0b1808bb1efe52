"""
Domain value objects.

* ``Coordinate`` -- a latitude/longitude pair in signed degrees.
* ``Principal``  -- the authenticated caller, supplied per request by the
  boundary layer.  The engine only performs authorization against it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .exceptions import InvalidArgument


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def validate(self) -> "Coordinate":
        """Return ``self`` if both components are in range, else raise."""
        if math.isnan(self.latitude) or not -90.0 <= self.latitude <= 90.0:
            raise InvalidArgument(f"Latitude out of range: {self.latitude}")
        if math.isnan(self.longitude) or not -180.0 <= self.longitude <= 180.0:
            raise InvalidArgument(f"Longitude out of range: {self.longitude}")
        return self


@dataclass(frozen=True)
class Principal:
    id: int
    is_driver: bool = False
