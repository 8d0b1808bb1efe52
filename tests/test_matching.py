"""Unit tests for haversine distance and the trip matcher."""

import math
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from src.domain.distance import EARTH_RADIUS_MILES, haversine_miles
from src.domain.entities import Coordinate
from src.domain.exceptions import InvalidArgument
from src.domain.matching import GeoMatcher, as_utc, day_bounds, within_radius

SF = Coordinate(37.7749, -122.4194)
SJ = Coordinate(37.3382, -121.8863)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_miles(SF, SF) == 0.0

    def test_known_distance(self):
        # San Francisco -> San Jose is ~42 miles as the crow flies
        d = haversine_miles(SF, SJ)
        assert 40.0 < d < 44.0

    def test_symmetric(self):
        assert abs(haversine_miles(SF, SJ) - haversine_miles(SJ, SF)) < 1e-9

    def test_one_degree_of_latitude(self):
        d = haversine_miles(Coordinate(0.0, 0.0), Coordinate(1.0, 0.0))
        assert d == pytest.approx(EARTH_RADIUS_MILES * math.pi / 180)

    def test_antipodal_points(self):
        d = haversine_miles(Coordinate(0.0, 0.0), Coordinate(0.0, 180.0))
        assert d == pytest.approx(EARTH_RADIUS_MILES * math.pi)

    def test_nan_propagates(self):
        assert math.isnan(haversine_miles(Coordinate(float("nan"), 0.0), SF))


class TestCoordinate:
    def test_valid_coordinate(self):
        assert SF.validate() is SF

    @pytest.mark.parametrize(
        "lat,lng",
        [(90.1, 0.0), (-90.1, 0.0), (0.0, 180.5), (0.0, -181.0), (float("nan"), 0.0)],
    )
    def test_out_of_range_rejected(self, lat, lng):
        with pytest.raises(InvalidArgument):
            Coordinate(lat, lng).validate()

    def test_poles_and_antimeridian_accepted(self):
        Coordinate(90.0, 180.0).validate()
        Coordinate(-90.0, -180.0).validate()


class TestWithinRadius:
    def test_boundary_is_inclusive(self):
        pickup = Coordinate(37.70, -122.4194)
        radius = haversine_miles(pickup, SF)
        assert within_radius(pickup, SJ, SF, SJ, radius)

    def test_just_outside_radius_excluded(self):
        pickup = Coordinate(37.70, -122.4194)
        radius = haversine_miles(pickup, SF)
        assert not within_radius(pickup, SJ, SF, SJ, radius - 1e-9)

    def test_both_legs_must_match(self):
        # pickup on top of the origin, dropoff far from the destination
        far_dropoff = Coordinate(38.5816, -121.4944)  # Sacramento
        assert not within_radius(SF, far_dropoff, SF, SJ, 5.0)


class TestDayBounds:
    def test_bounds_cover_the_whole_utc_day(self):
        start, end = day_bounds(date(2024, 6, 1))
        assert start == datetime(2024, 6, 1, 0, 0, tzinfo=timezone.utc)
        assert end.date() == date(2024, 6, 1)
        assert (end.hour, end.minute, end.second) == (23, 59, 59)

    def test_naive_datetime_is_treated_as_utc(self):
        naive = datetime(2024, 6, 1, 12, 0)
        assert as_utc(naive) == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class _StubTripRepo:
    """Returns every trip regardless of the requested window."""

    def __init__(self, trips):
        self.trips = trips
        self.window = None

    async def list_departing_between(self, start, end):
        self.window = (start, end)
        return list(self.trips)


def _trip(trip_id, origin, destination, departure=None):
    return SimpleNamespace(
        id=trip_id,
        origin=origin,
        destination=destination,
        departure_time=departure or datetime(2024, 6, 1, 9, tzinfo=timezone.utc),
    )


class TestGeoMatcher:
    @pytest.mark.asyncio
    async def test_filters_by_both_legs(self):
        near = _trip(1, Coordinate(37.78, -122.41), Coordinate(37.34, -121.89))
        wrong_origin = _trip(2, Coordinate(37.8044, -122.2712), SJ)  # Oakland
        repo = _StubTripRepo([near, wrong_origin])

        matches = await GeoMatcher(repo).find_matches(SF, SJ, date(2024, 6, 1), 5.0)

        assert [t.id for t in matches] == [1]
        assert repo.window == day_bounds(date(2024, 6, 1))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("radius", [0.0, -1.0, float("nan")])
    async def test_non_positive_radius_rejected(self, radius):
        with pytest.raises(InvalidArgument):
            await GeoMatcher(_StubTripRepo([])).find_matches(
                SF, SJ, date(2024, 6, 1), radius
            )

    @pytest.mark.asyncio
    async def test_invalid_coordinates_rejected(self):
        with pytest.raises(InvalidArgument):
            await GeoMatcher(_StubTripRepo([])).find_matches(
                Coordinate(95.0, 0.0), SJ, date(2024, 6, 1), 5.0
            )

    @pytest.mark.asyncio
    async def test_caller_supplied_sort_key(self):
        later = _trip(1, SF, SJ, datetime(2024, 6, 1, 18, tzinfo=timezone.utc))
        earlier = _trip(2, SF, SJ, datetime(2024, 6, 1, 7, tzinfo=timezone.utc))
        matches = await GeoMatcher(_StubTripRepo([later, earlier])).find_matches(
            SF, SJ, date(2024, 6, 1), 5.0, sort_key=lambda t: t.departure_time
        )
        assert [t.id for t in matches] == [2, 1]
