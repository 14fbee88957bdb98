from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List, Sequence

from models import SelectedPOI, TravelPreferences
from services.radius_policy import analyze_travel_pattern


ACTIVITY_TYPES: Dict[str, List[str]] = {
    "dining": ["restaurant", "cafe", "bar"],
    "sightseeing": ["attraction", "museum", "historical_site"],
    "beach": ["beach"],
    "shopping": ["shopping_mall", "store"],
    "nightlife": ["bar", "nightclub"],
    "culture": ["museum", "gallery", "theater", "historical_site"],
    "nature": ["park", "beach", "hiking_trail"],
}

KEY_TYPES = ["beach", "restaurant", "attraction", "historical_site", "museum", "nature"]

NEXT_TYPE_PROGRESSIONS: Dict[str, List[str]] = {
    "historical_site": ["restaurant", "museum", "beach"],
    "museum": ["restaurant", "beach", "attraction"],
    "restaurant": ["beach", "attraction", "nature"],
    "beach": ["restaurant", "attraction", "historical_site"],
    "attraction": ["restaurant", "beach", "historical_site"],
    "nature": ["restaurant", "beach", "attraction"],
}


def determine_activity_type(step: int, prefs: TravelPreferences, selected: Sequence[SelectedPOI]) -> str:
    if step == 1:
        return "sightseeing"

    interests = set(prefs.interests)
    for interest, activity in (("beaches", "beach"), ("food", "dining"), ("history", "culture"), ("nature", "nature")):
        if interest in interests:
            return activity

    if selected:
        types = {p.type for p in selected}
        if "beach" not in types:
            return "beach"
        if "restaurant" not in types and step > 2:
            return "dining"
        if "attraction" not in types:
            return "sightseeing"

    if step <= 2:
        return "sightseeing"
    if step == 3:
        return "beach"
    if step == 4:
        return "dining"
    return "sightseeing"


def time_of_day(step: int) -> str:
    if step <= 2:
        return "morning"
    if step <= 4:
        return "afternoon"
    return "evening"


def _next_types(selected: Sequence[SelectedPOI], missing: List[str]) -> List[str]:
    if not selected:
        return ["attraction", "historical_site"]
    if missing:
        return missing[:3]
    last_type = selected[-1].type or ""
    return NEXT_TYPE_PROGRESSIONS.get(last_type, ["restaurant", "beach", "attraction"])[:3]


def analyze_plan_context(selected: Sequence[SelectedPOI]) -> Dict[str, Any]:
    """Summarize what the plan covers so far and what it is missing."""
    distribution = Counter(p.type for p in selected if p.type)
    areas = {
        (round(p.lat * 100), round(p.lng * 100))
        for p in selected
        if p.lat is not None and p.lng is not None
    }
    pattern = analyze_travel_pattern(selected)
    total = float(pattern["total_distance_m"])
    missing = [t for t in KEY_TYPES if t not in distribution]

    if total > 10000:
        intensity = "high"
    elif total > 5000:
        intensity = "medium"
    else:
        intensity = "low"

    return {
        "poi_type_distribution": dict(distribution),
        "missing_poi_types": missing,
        "areas_explored": len(areas),
        "total_travel_distance_m": total,
        "travel_style": pattern["travel_style"],
        "recommended_next_types": _next_types(selected, missing),
        "travel_intensity": intensity,
    }
