from __future__ import annotations

import pytest

from workhub.schemas import GeoPoint
from workhub.services.geo import haversine_distance_m


HQ = GeoPoint(lat=6.524379, lng=3.379206)


def test_distance_to_self_is_zero() -> None:
    assert haversine_distance_m(HQ, HQ) == 0


def test_distance_is_symmetric() -> None:
    other = GeoPoint(lat=51.5074, lng=-0.1278)
    assert haversine_distance_m(HQ, other) == pytest.approx(haversine_distance_m(other, HQ))


@pytest.mark.parametrize(
    "lat,expected",
    [
        (6.525279, 100.08),  # 0.0009 degrees of latitude
        (6.526179, 200.15),
    ],
)
def test_distance_along_meridian(lat: float, expected: float) -> None:
    d = haversine_distance_m(HQ, GeoPoint(lat=lat, lng=HQ.lng))
    assert d == pytest.approx(expected, abs=0.05)


def test_long_distance_matches_known_value() -> None:
    lagos = GeoPoint(lat=6.5244, lng=3.3792)
    abuja = GeoPoint(lat=9.0765, lng=7.3986)
    # Roughly 524 km by great circle.
    assert 515_000 < haversine_distance_m(lagos, abuja) < 535_000
