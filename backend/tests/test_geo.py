from datetime import datetime, timedelta, timezone

import pytest

from tracking import geo


def test_one_degree_of_longitude_at_the_equator():
    assert geo.haversine_km(0, 0, 0, 1) == pytest.approx(111.19, abs=0.01)


def test_same_point_is_zero():
    assert geo.haversine_km(-6.5565, 107.4433, -6.5565, 107.4433) == 0.0


@pytest.mark.parametrize("points", [[], [(0, 0)]])
def test_distance_needs_two_points(points):
    assert geo.total_distance(points) == 0.0


def test_distance_accepts_dicts_and_pairs():
    pairs = [(0, 0), (0, 1), (0, 2)]
    dicts = [{"latitude": lat, "longitude": lon} for lat, lon in pairs]
    assert geo.total_distance(pairs) == geo.total_distance(dicts) == pytest.approx(222.39, abs=0.01)


def test_sorting_restores_the_route():
    t0 = datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc)
    route = [
        {"latitude": -6.5565, "longitude": 107.4433, "recorded_at": t0},
        {"latitude": -6.5500, "longitude": 107.4500, "recorded_at": t0 + timedelta(minutes=5)},
        {"latitude": -6.5400, "longitude": 107.4600, "recorded_at": t0 + timedelta(minutes=10)},
    ]
    shuffled = [route[2], route[0], route[1]]

    assert geo.sort_by_recorded_at(shuffled) == route
    assert geo.total_distance(geo.sort_by_recorded_at(shuffled)) == geo.total_distance(route)
    assert geo.latest_point(shuffled) is route[2]


def test_latest_point_of_nothing():
    assert geo.latest_point([]) is None
