from __future__ import annotations

import itertools

from models import Coordinates, SelectedPOI, TravelPreferences
from services.radius_policy import RadiusPolicy, analyze_travel_pattern


CITY_CENTER = Coordinates(36.445, 28.225)  # inside the high-density zone
LINDOS = Coordinates(36.10, 28.09)
REMOTE = Coordinates(36.20, 27.90)


def test_car_active_is_wider_than_walking_relaxed() -> None:
    policy = RadiusPolicy()
    fast = policy.compute(CITY_CENTER, TravelPreferences(transport="car", pace="active"), [], 1)
    slow = policy.compute(CITY_CENTER, TravelPreferences(transport="walking", pace="relaxed"), [], 1)
    assert fast > slow
    assert fast == 2080  # 1000 * 0.8 * 2.0 * 1.3
    assert slow == 640  # 1000 * 0.8 * 1.0 * 0.8


def test_zone_lookup() -> None:
    policy = RadiusPolicy()
    assert policy.zone_for(CITY_CENTER).density == "high"
    assert policy.zone_for(LINDOS).name == "Lindos"
    assert policy.zone_for(REMOTE).density == "low"


def test_no_location_returns_default() -> None:
    assert RadiusPolicy().compute(None, TravelPreferences(), [], 1) == 5000


def test_step_two_tightens() -> None:
    policy = RadiusPolicy()
    prefs = TravelPreferences()
    first = policy.compute(REMOTE, prefs, [], 1)
    second = policy.compute(REMOTE, prefs, [SelectedPOI(name="a", lat=36.2, lng=27.9)], 2)
    assert first == 3600  # 3000 * 1.2
    assert second == 2520


def test_later_steps_follow_travel_style() -> None:
    policy = RadiusPolicy()
    prefs = TravelPreferences()
    close = [SelectedPOI(name="a", lat=36.4461, lng=28.2236), SelectedPOI(name="b", lat=36.4455, lng=28.2253)]
    spread = [SelectedPOI(name="a", lat=36.4461, lng=28.2236), SelectedPOI(name="b", lat=36.0917, lng=28.0856)]
    assert policy.compute(REMOTE, prefs, close, 3) < policy.compute(REMOTE, prefs, spread, 3)


def test_output_always_clamped_and_deterministic() -> None:
    policy = RadiusPolicy()
    transports = ["walking", "bicycle", "car", "public_transport", "unknown"]
    paces = ["relaxed", "moderate", "active"]
    spread = [SelectedPOI(name="a", lat=36.0, lng=28.0), SelectedPOI(name="b", lat=36.5, lng=28.3)]
    for transport, pace, loc, step in itertools.product(transports, paces, [CITY_CENTER, LINDOS, REMOTE], [1, 2, 3, 7]):
        prefs = TravelPreferences(transport=transport, pace=pace)
        radius = policy.compute(loc, prefs, spread, step)
        assert 500 <= radius <= 8000
        assert radius == policy.compute(loc, prefs, spread, step)


def test_travel_pattern_unknown_with_single_poi() -> None:
    pattern = analyze_travel_pattern([SelectedPOI(name="only", lat=36.4, lng=28.2)])
    assert pattern["travel_style"] == "unknown"


def test_travel_pattern_ignores_pois_without_coordinates() -> None:
    selected = [SelectedPOI(name="a", lat=36.4461, lng=28.2236), SelectedPOI(name="b"), SelectedPOI(name="c", lat=36.4455, lng=28.2253)]
    assert analyze_travel_pattern(selected)["travel_style"] == "concentrated"
