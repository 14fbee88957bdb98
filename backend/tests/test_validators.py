from __future__ import annotations

import copy

from services.validators import (
    parse_round_decision,
    parse_selection_decision,
    validate_round_decision,
    validate_selection_decision,
)


def _round(**overrides):
    payload = {
        "action": "PLAN_ROUND",
        "round_number": 2,
        "round_type": "beach",
        "reasoning": "A swim after the Old Town walk.",
        "spatial_strategy": {
            "search_radius_meters": 4000,
            "spatial_reasoning": "Beaches north of the Old Town are close.",
            "center_coordinates": {"lat": 36.4461, "lng": 28.2236},
        },
        "poi_criteria": {
            "required_types": ["beach"],
            "quality_threshold": 4,
            "budget_level": "moderate",
        },
    }
    payload.update(overrides)
    return payload


def _selection(**overrides):
    payload = {
        "action": "SELECT_POIS",
        "round_number": 2,
        "selected_pois": [{"poi_id": "A1", "selection_reasoning": "Closest sandy beach.", "fit_score": 8.5}],
        "round_completion_status": "COMPLETE",
        "rejected_pois": [{"poi_id": "B2", "rejection_reason": "Too far."}],
    }
    payload.update(overrides)
    return payload


def _fields(result):
    return {e.field for e in result.errors}


def test_valid_round_decision_passes_twice() -> None:
    payload = _round()
    before = copy.deepcopy(payload)
    first = validate_round_decision(payload)
    second = validate_round_decision(payload)
    assert first.valid and second.valid
    assert first.errors == second.errors == []
    assert payload == before


def test_valid_selection_decision_passes_twice() -> None:
    payload = _selection()
    assert validate_selection_decision(payload).valid
    assert validate_selection_decision(payload).valid


def test_round_radius_must_be_integer_in_range() -> None:
    for radius in (499, 50001, 4000.5, "4000", True):
        payload = _round()
        payload["spatial_strategy"]["search_radius_meters"] = radius
        result = validate_round_decision(payload)
        assert _fields(result) == {"spatial_strategy.search_radius_meters"}
        assert result.errors[0].received == radius


def test_round_reports_every_bad_field() -> None:
    payload = _round(action="PLAN", round_number=0, round_type="casino", reasoning=" ")
    payload["spatial_strategy"]["center_coordinates"] = {"lat": 95, "lng": 28.2}
    payload["poi_criteria"] = {"required_types": [], "quality_threshold": 6, "budget_level": "cheap"}
    result = validate_round_decision(payload)
    assert _fields(result) == {
        "action",
        "round_number",
        "round_type",
        "reasoning",
        "spatial_strategy.center_coordinates",
        "poi_criteria.required_types",
        "poi_criteria.quality_threshold",
        "poi_criteria.budget_level",
    }


def test_round_missing_sections() -> None:
    payload = _round()
    del payload["spatial_strategy"]
    del payload["poi_criteria"]
    assert _fields(validate_round_decision(payload)) == {"spatial_strategy", "poi_criteria"}


def test_round_budget_level_optional() -> None:
    payload = _round()
    del payload["poi_criteria"]["budget_level"]
    assert validate_round_decision(payload).valid


def test_non_object_payload() -> None:
    result = validate_round_decision(["not", "a", "dict"])
    assert not result.valid
    assert result.errors[0].field == "$"


def test_selection_field_errors() -> None:
    payload = _selection(
        selected_pois=[{"poi_id": "", "selection_reasoning": "", "fit_score": 11}],
        round_completion_status="DONE",
        rejected_pois=[{"poi_id": "B2"}],
    )
    result = validate_selection_decision(payload)
    assert _fields(result) == {
        "selected_pois[0].poi_id",
        "selected_pois[0].selection_reasoning",
        "selected_pois[0].fit_score",
        "round_completion_status",
        "rejected_pois[0].rejection_reason",
    }
    as_dict = result.errors[2].to_dict()
    assert as_dict["field"] == "selected_pois[0].fit_score"
    assert as_dict["received"] == 11


def test_selection_requires_non_empty_list() -> None:
    assert _fields(validate_selection_decision(_selection(selected_pois=[]))) == {"selected_pois"}


def test_parse_round_decision_builds_strategy() -> None:
    strategy = parse_round_decision(_round())
    assert strategy.round_type == "beach"
    assert strategy.spatial.radius_m == 4000
    assert strategy.spatial.center.lat == 36.4461
    assert strategy.criteria.required_types == ("beach",)
    assert strategy.criteria.quality_threshold == 4.0


def test_parse_sanitizes_strings() -> None:
    payload = _selection(spatial_logic="short hop <script>steal()</script>")
    payload["selected_pois"][0]["selection_reasoning"] = "Great <iframe src='x'></iframe>beach"
    decision = parse_selection_decision(payload)
    assert decision.chosen.selection_reasoning == "Great beach"
    assert decision.chosen.spatial_logic == "short hop"
    assert decision.rejected[0].poi_id == "B2"
