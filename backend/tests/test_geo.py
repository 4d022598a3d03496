import math
from datetime import datetime, timedelta

import pytest

from fieldtrack.services.geo import (
    detect_impossible_travel, distance_meters, inside, route_distance_meters,
)

MUMBAI = (19.076, 72.8777)
DELHI = (28.6139, 77.209)
T0 = datetime(2026, 3, 2, 9, 0, 0)


class TestDistance:

    @pytest.mark.parametrize("point", [(0.0, 0.0), MUMBAI, DELHI, (-33.8688, 151.2093), (89.9, -179.9)])
    def test_identical_points_are_zero(self, point):
        assert distance_meters(point, point) == 0

    def test_symmetric(self):
        assert distance_meters(MUMBAI, DELHI) == pytest.approx(distance_meters(DELHI, MUMBAI))

    def test_mumbai_to_delhi(self):
        assert 1_100_000 < distance_meters(MUMBAI, DELHI) < 1_200_000

    def test_one_degree_of_latitude(self):
        assert distance_meters((0, 0), (1, 0)) == pytest.approx(111_195, rel=1e-3)

    def test_route_distance_sums_consecutive_pairs(self):
        points = [(0, 0), (1, 0), (1, 0), (2, 0)]
        assert route_distance_meters(points) == pytest.approx(2 * distance_meters((0, 0), (1, 0)))

    def test_route_distance_of_single_point(self):
        assert route_distance_meters([DELHI]) == 0


class TestInside:

    def test_center_is_inside(self):
        assert inside(DELHI, DELHI, 500)

    def test_one_km_away_is_outside(self):
        # ~0.009 deg of latitude is ~1km
        assert not inside((28.6229, 77.209), DELHI, 500)

    def test_boundary_is_inclusive(self):
        point = (28.6184, 77.209)
        assert inside(point, DELHI, distance_meters(point, DELHI))


class TestImpossibleTravel:

    def test_far_jump_in_one_minute(self):
        result = detect_impossible_travel((0, 0), T0, (10, 10), T0 + timedelta(minutes=1))
        assert result["impossible"] is True
        assert result["speed_kmh"] > 200

    def test_plausible_speed_over_an_hour(self):
        result = detect_impossible_travel((0, 0), T0, (1, 0), T0 + timedelta(hours=1))
        assert result["impossible"] is False
        assert 100 < result["speed_kmh"] < 120

    def test_same_instant_same_place(self):
        result = detect_impossible_travel(DELHI, T0, (28.61392, 77.209), T0)
        assert math.isinf(result["speed_kmh"])
        assert result["impossible"] is False

    def test_same_instant_far_apart(self):
        result = detect_impossible_travel(DELHI, T0, MUMBAI, T0)
        assert math.isinf(result["speed_kmh"])
        assert result["impossible"] is True

    def test_custom_threshold(self):
        result = detect_impossible_travel((0, 0), T0, (1, 0), T0 + timedelta(hours=1), max_speed_kmh=100)
        assert result["impossible"] is True
