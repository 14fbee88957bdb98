"""Structural and semantic checks for reasoning-service payloads.

Validation never raises and never mutates its input: each check appends a
``FieldError`` (field path, expected shape, received value) so callers get
every problem at once. ``parse_*`` helpers build typed decisions from
payloads that already passed validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models import (
    Coordinates,
    PoiCriteria,
    RejectedPick,
    SearchStrategy,
    SelectedPick,
    SelectionDecision,
    SpatialStrategy,
)
from utils import is_number, is_valid_coordinate, sanitize_value


ROUND_ACTION = "PLAN_ROUND"
SELECTION_ACTION = "SELECT_POIS"

ROUND_TYPES = frozenset(
    {
        "restaurant",
        "beach",
        "attraction",
        "cafe",
        "market",
        "viewpoint",
        "museum",
        "historical_site",
        "nature",
        "shopping",
    }
)
BUDGET_LEVELS = frozenset({"budget", "moderate", "luxury"})
COMPLETION_STATUSES = frozenset({"COMPLETE", "NEEDS_MORE_OPTIONS"})

MIN_RADIUS_M = 500
MAX_RADIUS_M = 50000


@dataclass(frozen=True)
class FieldError:
    field: str
    expected: str
    received: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "expected": self.expected, "received": self.received}


@dataclass
class ValidationResult:
    errors: List[FieldError] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add(self, path: str, expected: str, received: Any) -> None:
        self.errors.append(FieldError(path, expected, received))

    def summary(self) -> str:
        return "; ".join(f"{e.field}: expected {e.expected}" for e in self.errors)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _in_range(value: Any, low: float, high: float) -> bool:
    return is_number(value) and low <= value <= high


def validate_round_decision(payload: Any) -> ValidationResult:
    result = ValidationResult()
    if not isinstance(payload, dict):
        result.add("$", "object", payload)
        return result

    if payload.get("action") != ROUND_ACTION:
        result.add("action", f'"{ROUND_ACTION}"', payload.get("action"))
    if not _positive_int(payload.get("round_number")):
        result.add("round_number", "positive integer", payload.get("round_number"))
    if payload.get("round_type") not in ROUND_TYPES:
        result.add("round_type", f"one of {sorted(ROUND_TYPES)}", payload.get("round_type"))
    if not _non_empty_str(payload.get("reasoning")):
        result.add("reasoning", "non-empty string", payload.get("reasoning"))

    spatial = payload.get("spatial_strategy")
    if not isinstance(spatial, dict):
        result.add("spatial_strategy", "object", spatial)
    else:
        radius = spatial.get("search_radius_meters")
        if not (isinstance(radius, int) and not isinstance(radius, bool) and MIN_RADIUS_M <= radius <= MAX_RADIUS_M):
            result.add(
                "spatial_strategy.search_radius_meters", f"integer in [{MIN_RADIUS_M}, {MAX_RADIUS_M}]", radius
            )
        if not _non_empty_str(spatial.get("spatial_reasoning")):
            result.add("spatial_strategy.spatial_reasoning", "non-empty string", spatial.get("spatial_reasoning"))
        center = spatial.get("center_coordinates")
        if not isinstance(center, dict) or not is_valid_coordinate(center.get("lat"), center.get("lng")):
            result.add(
                "spatial_strategy.center_coordinates", "{lat in [-90,90], lng in [-180,180]}", center
            )

    criteria = payload.get("poi_criteria")
    if not isinstance(criteria, dict):
        result.add("poi_criteria", "object", criteria)
    else:
        required = criteria.get("required_types")
        if not isinstance(required, list) or not required or not all(_non_empty_str(t) for t in required):
            result.add("poi_criteria.required_types", "non-empty list of strings", required)
        if not _in_range(criteria.get("quality_threshold"), 1, 5):
            result.add("poi_criteria.quality_threshold", "number in [1, 5]", criteria.get("quality_threshold"))
        budget = criteria.get("budget_level")
        if budget is not None and budget not in BUDGET_LEVELS:
            result.add("poi_criteria.budget_level", f"one of {sorted(BUDGET_LEVELS)}", budget)
        excluded = criteria.get("exclude_types")
        if excluded is not None and not (isinstance(excluded, list) and all(isinstance(t, str) for t in excluded)):
            result.add("poi_criteria.exclude_types", "list of strings", excluded)
    return result


def validate_selection_decision(payload: Any) -> ValidationResult:
    result = ValidationResult()
    if not isinstance(payload, dict):
        result.add("$", "object", payload)
        return result

    if payload.get("action") != SELECTION_ACTION:
        result.add("action", f'"{SELECTION_ACTION}"', payload.get("action"))
    if not _positive_int(payload.get("round_number")):
        result.add("round_number", "positive integer", payload.get("round_number"))

    selected = payload.get("selected_pois")
    if not isinstance(selected, list) or not selected:
        result.add("selected_pois", "non-empty list", selected)
    else:
        for idx, entry in enumerate(selected):
            path = f"selected_pois[{idx}]"
            if not isinstance(entry, dict):
                result.add(path, "object", entry)
                continue
            if not _non_empty_str(entry.get("poi_id")):
                result.add(f"{path}.poi_id", "non-empty string", entry.get("poi_id"))
            if not _non_empty_str(entry.get("selection_reasoning")):
                result.add(f"{path}.selection_reasoning", "non-empty string", entry.get("selection_reasoning"))
            if not _in_range(entry.get("fit_score"), 1, 10):
                result.add(f"{path}.fit_score", "number in [1, 10]", entry.get("fit_score"))

    status = payload.get("round_completion_status")
    if status not in COMPLETION_STATUSES:
        result.add("round_completion_status", f"one of {sorted(COMPLETION_STATUSES)}", status)

    rejected = payload.get("rejected_pois")
    if rejected is not None:
        if not isinstance(rejected, list):
            result.add("rejected_pois", "list", rejected)
        else:
            for idx, entry in enumerate(rejected):
                path = f"rejected_pois[{idx}]"
                if not isinstance(entry, dict):
                    result.add(path, "object", entry)
                    continue
                if not _non_empty_str(entry.get("poi_id")):
                    result.add(f"{path}.poi_id", "non-empty string", entry.get("poi_id"))
                if not _non_empty_str(entry.get("rejection_reason")):
                    result.add(f"{path}.rejection_reason", "non-empty string", entry.get("rejection_reason"))
    return result


def _clamp_radius(value: int) -> int:
    return max(MIN_RADIUS_M, min(MAX_RADIUS_M, int(value)))


def parse_round_decision(payload: Dict[str, Any]) -> SearchStrategy:
    """Sanitize a validated round payload and build the SearchStrategy."""
    clean = sanitize_value(payload)
    spatial = clean["spatial_strategy"]
    criteria = clean["poi_criteria"]
    center = spatial["center_coordinates"]
    return SearchStrategy(
        round_number=clean["round_number"],
        round_type=clean["round_type"],
        reasoning=clean["reasoning"],
        spatial=SpatialStrategy(
            radius_m=_clamp_radius(spatial["search_radius_meters"]),
            center=Coordinates(float(center["lat"]), float(center["lng"])),
            rationale=spatial["spatial_reasoning"],
        ),
        criteria=PoiCriteria(
            required_types=tuple(t.strip().lower() for t in criteria["required_types"]),
            quality_threshold=float(criteria["quality_threshold"]),
            budget_level=criteria.get("budget_level"),
            exclude_types=tuple(criteria.get("exclude_types") or ()),
        ),
    )


def parse_selection_decision(payload: Dict[str, Any]) -> SelectionDecision:
    clean = sanitize_value(payload)
    spatial_logic: Optional[str] = clean.get("spatial_logic") if isinstance(clean.get("spatial_logic"), str) else None
    picks = tuple(
        SelectedPick(
            poi_id=entry["poi_id"],
            selection_reasoning=entry["selection_reasoning"],
            fit_score=float(entry["fit_score"]),
            spatial_logic=entry.get("spatial_logic") if isinstance(entry.get("spatial_logic"), str) else spatial_logic,
        )
        for entry in clean["selected_pois"]
    )
    rejected = tuple(
        RejectedPick(poi_id=entry["poi_id"], rejection_reason=entry["rejection_reason"])
        for entry in (clean.get("rejected_pois") or [])
    )
    hint = clean.get("next_round_hint")
    return SelectionDecision(
        round_number=clean["round_number"],
        picks=picks,
        completion_status=clean["round_completion_status"],
        rejected=rejected,
        next_round_hint=hint if isinstance(hint, str) else None,
    )
