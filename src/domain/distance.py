"""
Distance calculation using the Haversine formula.

Assumption
----------
We use great-circle (Haversine) distance on a spherical Earth instead of a
real routing engine.  Trip matching only needs "is the rider's pickup near
the driver's origin", so straight-line miles are good enough and keep the
engine free of external map services.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math

from .entities import Coordinate

EARTH_RADIUS_MILES = 3_958.8


def haversine_miles(a: Coordinate, b: Coordinate) -> float:
    """Return the great-circle distance in **miles** between two points.

    No range validation happens here; malformed input yields NaN.
    """
    lat1_r, lat2_r = math.radians(a.latitude), math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlng = math.radians(b.longitude - a.longitude)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_MILES * math.atan2(
        math.sqrt(h), math.sqrt(max(0.0, 1 - h))
    )
