"""Unit tests for great-circle distance."""

import pytest

from dispatch.domain.distance import distance_km, haversine_km
from dispatch.domain.entities import Location

# One degree of latitude on a 6371 km sphere
KM_PER_DEGREE_LAT = 111.19492664455873


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(12.9716, 77.5946, 12.9716, 77.5946) == 0.0

    def test_symmetric(self):
        a = haversine_km(12.9716, 77.5946, 13.1986, 77.7066)
        b = haversine_km(13.1986, 77.7066, 12.9716, 77.5946)
        assert a == pytest.approx(b)

    def test_one_degree_of_latitude(self):
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(
            KM_PER_DEGREE_LAT, rel=1e-9
        )

    def test_known_city_distance(self):
        # MG Road -> Kempegowda International Airport, roughly 28 km
        d = haversine_km(12.9716, 77.5946, 13.1986, 77.7066)
        assert 26 < d < 30

    def test_antipodal_points_do_not_fail(self):
        d = haversine_km(0.0, 0.0, 0.0, 180.0)
        assert d == pytest.approx(3.141592653589793 * 6371.0, rel=1e-9)


class TestDistanceKm:
    def test_location_wrapper_matches_haversine(self):
        a = Location(12.9716, 77.5946)
        b = Location(12.9800, 77.6000)
        assert distance_km(a, b) == pytest.approx(
            haversine_km(12.9716, 77.5946, 12.9800, 77.6000)
        )

    def test_proximity_threshold_bounds(self):
        pickup = Location(12.9716, 77.5946)
        far = Location(12.9716 + 0.6 / KM_PER_DEGREE_LAT, 77.5946)
        near = Location(12.9716 + 0.3 / KM_PER_DEGREE_LAT, 77.5946)
        assert distance_km(pickup, far) == pytest.approx(0.6, abs=1e-6)
        assert distance_km(pickup, near) == pytest.approx(0.3, abs=1e-6)
