"""
Trip Matching by Proximity and Date
===================================

1. **Date window**   -- Candidate trips are active, have at least one free
   seat, and depart within the UTC calendar day of the requested date
   (``00:00:00`` to ``23:59:59.999999`` inclusive).  This part runs in SQL.
2. **Radius filter** -- A trip matches when the rider's pickup is within
   ``radius_miles`` of the trip origin *and* the dropoff is within
   ``radius_miles`` of the trip destination.  Boundary is inclusive.

Results are unordered.  Callers that want a ranking pass ``sort_key``.

Complexity
----------
Let T = active trips departing that day.  Filtering is O(T) haversine
calls; there is no spatial index.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Optional

from .distance import haversine_miles
from .entities import Coordinate
from .exceptions import InvalidArgument


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_bounds(on_date: date) -> tuple[datetime, datetime]:
    """Return the inclusive UTC start and end of *on_date*."""
    start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(on_date, time.max, tzinfo=timezone.utc)
    return start, end


def within_radius(
    pickup: Coordinate,
    dropoff: Coordinate,
    trip_origin: Coordinate,
    trip_destination: Coordinate,
    radius_miles: float,
) -> bool:
    """True when both legs are within *radius_miles* (inclusive)."""
    return (
        haversine_miles(pickup, trip_origin) <= radius_miles
        and haversine_miles(dropoff, trip_destination) <= radius_miles
    )


class GeoMatcher:
    """
    Filters active trips for a rider's pickup, dropoff and travel date.

    *trip_repo* needs a single coroutine,
    ``list_departing_between(start, end)``, returning trips with
    ``origin`` and ``destination`` coordinates.
    """

    def __init__(self, trip_repo):
        self.trip_repo = trip_repo

    async def find_matches(
        self,
        pickup: Coordinate,
        dropoff: Coordinate,
        on_date: date,
        radius_miles: float,
        sort_key: Optional[Callable[[Any], Any]] = None,
    ) -> list:
        if math.isnan(radius_miles) or radius_miles <= 0:
            raise InvalidArgument("radius_miles must be positive")
        pickup.validate()
        dropoff.validate()

        start, end = day_bounds(on_date)
        candidates = await self.trip_repo.list_departing_between(start, end)
        matches = [
            trip
            for trip in candidates
            if within_radius(
                pickup, dropoff, trip.origin, trip.destination, radius_miles
            )
        ]
        if sort_key is not None:
            matches.sort(key=sort_key)
        return matches
