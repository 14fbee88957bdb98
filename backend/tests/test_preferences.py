import threading

import pytest

from errors import ErrorKind, ParameterValidationError
from services.preferences import (
    build_context,
    map_budget_to_price_level,
    map_interests_to_types,
    parse_location,
    parse_preferences,
    parse_selected_pois,
)


def test_interest_mapping_dedupes_and_defaults():
    assert map_interests_to_types(["beaches", "relaxation"]) == ["beach", "spa", "park"]
    assert map_interests_to_types(["unknown"]) == ["attraction", "restaurant", "beach", "museum"]
    assert map_interests_to_types([]) == ["attraction", "restaurant", "beach", "museum"]


def test_budget_mapping():
    assert map_budget_to_price_level("budget") == 1
    assert map_budget_to_price_level("Moderate") == 2
    assert map_budget_to_price_level(None) == 3


def test_preferences_defaults_and_aliases():
    prefs = parse_preferences({"transport": "Bike", "budget": "mid-range", "interests": ["History", " "]})
    assert prefs.transport == "bicycle"
    assert prefs.pace == "moderate"
    assert prefs.budget == "moderate"
    assert prefs.interests == ["history"]
    assert prefs.number_of_pois == 5
    assert parse_preferences(None).transport == "walking"


@pytest.mark.parametrize(
    "data",
    [
        {"transport": "teleport"},
        {"pace": 3},
        {"interests": "beaches"},
        {"numberOfPOIs": 0},
        "not a dict",
    ],
)
def test_invalid_preferences(data):
    with pytest.raises(ParameterValidationError) as info:
        parse_preferences(data)
    assert info.value.kind is ErrorKind.PARAMETER_VALIDATION


def test_parse_location():
    assert parse_location({"lat": 36.4, "lng": 28.2}).lat == 36.4
    assert parse_location({"latitude": 36.4, "longitude": 28.2}).lng == 28.2
    assert parse_location(None) is None
    with pytest.raises(ParameterValidationError):
        parse_location({"lat": 120, "lng": 28.2})


def test_parse_selected_pois_accepts_nested_coordinates():
    selected = parse_selected_pois(
        [{"name": "Elli Beach", "place_id": "poi-elli-beach", "primary_type": "Beach", "location": {"coordinates": {"lat": 36.4556, "lng": 28.2228}}}]
    )
    assert selected[0].id == "poi-elli-beach"
    assert selected[0].type == "beach"
    assert selected[0].coordinates.lat == 36.4556


def test_parse_selected_pois_requires_name():
    with pytest.raises(ParameterValidationError) as info:
        parse_selected_pois([{"name": "ok"}, {"id": "x"}])
    assert info.value.details["field"] == "selectedPOIs[1].name"


def test_build_context():
    event = threading.Event()
    ctx = build_context(
        {
            "userLocation": {"lat": 36.44, "lng": 28.22},
            "preferences": {"transport": "car"},
            "selectedPOIs": [{"name": "Mandraki Harbor", "id": "poi-mandraki"}],
            "currentStep": 2,
            "excludeNames": ["Elli Beach"],
        },
        cancel_event=event,
    )
    assert ctx.round_number == 2
    assert not ctx.is_initial
    exclusions = ctx.exclusions()
    assert {"mandraki harbor", "elli beach"} <= exclusions.names
    assert "poi-mandraki" in exclusions.ids
    assert not ctx.is_cancelled()
    event.set()
    assert ctx.is_cancelled()


@pytest.mark.parametrize("step", [0, -1, 1.5, "2", True])
def test_build_context_rejects_bad_step(step):
    with pytest.raises(ParameterValidationError):
        build_context({"currentStep": step})
