"""Prompt templates for the two-phase round protocol."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

from models import Candidate, Coordinates, SearchStrategy, WorkflowContext
from services.travel_context import time_of_day
from services.validators import ROUND_ACTION, ROUND_TYPES, SELECTION_ACTION


JSON_RULES = (
    "Return ONLY one valid JSON object. No text before or after it, no markdown fences.\n"
    "Field names and value types must match the required structure exactly."
)

ROUND_EXAMPLE: Dict[str, Any] = {
    "action": ROUND_ACTION,
    "round_number": 1,
    "round_type": "attraction",
    "reasoning": "Start with a landmark close to the traveller.",
    "spatial_strategy": {
        "search_radius_meters": 5000,
        "spatial_reasoning": "A moderate radius keeps the first leg walkable.",
        "center_coordinates": {"lat": 36.4341, "lng": 28.2176},
    },
    "poi_criteria": {
        "required_types": ["attraction", "historical_site"],
        "quality_threshold": 4.0,
        "budget_level": "moderate",
        "exclude_types": [],
    },
}

SELECTION_EXAMPLE: Dict[str, Any] = {
    "action": SELECTION_ACTION,
    "round_number": 1,
    "selected_pois": [
        {"poi_id": "candidate-id", "selection_reasoning": "Best rated option near the last stop.", "fit_score": 8}
    ],
    "round_completion_status": "COMPLETE",
    "rejected_pois": [{"poi_id": "other-id", "rejection_reason": "Too far from the current area."}],
    "spatial_logic": "Keeps the route compact.",
    "next_round_hint": "A beach would balance the plan.",
}


def _round_types() -> str:
    return "|".join(sorted(ROUND_TYPES))


def _selected_summary(ctx: WorkflowContext) -> str:
    if not ctx.selected_pois:
        return "None"
    return ", ".join(f"{p.name} ({p.type or 'unknown'})" for p in ctx.selected_pois)


def round_planning_prompt(
    ctx: WorkflowContext,
    reference: Coordinates,
    plan_context: Dict[str, Any],
) -> tuple[str, str]:
    round_number = ctx.round_number
    prefs = ctx.preferences
    interests = ", ".join(prefs.interests) or "general sightseeing"
    remaining = max(prefs.number_of_pois - len(ctx.selected_pois), 0)

    system = (
        "You plan one round of a step-by-step travel itinerary.\n"
        f"{JSON_RULES}\n\n"
        f"Required structure (round_type is one of {_round_types()}; "
        "search_radius_meters is an integer between 500 and 50000; quality_threshold is between 1 and 5; "
        "budget_level is budget|moderate|luxury):\n"
        f"{json.dumps(ROUND_EXAMPLE, indent=2)}"
    )

    if ctx.is_initial:
        user = (
            f"Plan round {round_number} (the first stop) of {prefs.number_of_pois}.\n"
            f"Traveller location: {reference.lat}, {reference.lng}\n"
            f"Interests: {interests}\n"
            f"Transport: {prefs.transport}; pace: {prefs.pace}; budget: {prefs.budget or 'unspecified'}\n"
            f"Time of day: {time_of_day(ctx.current_step)}\n"
            "Use the traveller location as center_coordinates. Prefer a strong, well-rated opening stop.\n"
            "Return ONLY the JSON object."
        )
        return system, user

    last = ctx.selected_pois[-1]
    user = (
        f"Plan round {round_number} of {prefs.number_of_pois} ({remaining} stops remaining).\n"
        f"Already selected: {_selected_summary(ctx)}\n"
        f"Last stop: {last.name} at {reference.lat}, {reference.lng}\n"
        f"Interests: {interests}\n"
        f"Transport: {prefs.transport}; pace: {prefs.pace}; budget: {prefs.budget or 'unspecified'}\n"
        f"Time of day: {time_of_day(ctx.current_step)}\n"
        f"Plan analysis: {json.dumps(plan_context)}\n"
        "Complement the previous stops, avoid repeating a type unless the interests ask for it, "
        "and keep the next leg spatially sensible from the last stop.\n"
        "Return ONLY the JSON object."
    )
    return system, user


def _candidate_line(candidate: Candidate) -> Dict[str, Any]:
    poi = candidate.poi
    return {
        "poi_id": poi.key,
        "name": poi.name,
        "type": poi.primary_type,
        "lat": poi.lat,
        "lng": poi.lng,
        "rating": poi.rating,
        "distance_meters": int(candidate.distance_m) if candidate.distance_m is not None else None,
        "description": poi.description[:240],
    }


def selection_prompt(
    ctx: WorkflowContext,
    strategy: SearchStrategy,
    candidates: Sequence[Candidate],
) -> tuple[str, str]:
    system = (
        "You choose exactly one stop for the current itinerary round from a fixed candidate list.\n"
        f"{JSON_RULES}\n"
        "poi_id MUST be copied from the candidate list; never invent an identifier. "
        "fit_score is a number between 1 and 10. round_completion_status is COMPLETE or NEEDS_MORE_OPTIONS.\n\n"
        f"Required structure:\n{json.dumps(SELECTION_EXAMPLE, indent=2)}"
    )
    lines: List[Dict[str, Any]] = [_candidate_line(c) for c in candidates]
    user = (
        f"Round {strategy.round_number} ({strategy.round_type}): {strategy.reasoning}\n"
        f"Already selected: {_selected_summary(ctx)}\n"
        f"Interests: {', '.join(ctx.preferences.interests) or 'general sightseeing'}\n"
        f"Candidates:\n{json.dumps(lines, indent=2, ensure_ascii=False)}\n"
        "Select the single best candidate. Return ONLY the JSON object."
    )
    return system, user


def fallback_prompt(kind: str, failure: str, user_prompt: str) -> tuple[str, str]:
    """Shorter, stricter prompt used for the single retry after a bad response."""
    example = ROUND_EXAMPLE if kind == "round" else SELECTION_EXAMPLE
    system = (
        "ERROR RECOVERY: your previous answer could not be used.\n"
        f"Problem: {failure}\n"
        "Reply with ONE JSON object exactly like this example, nothing else:\n"
        f"{json.dumps(example)}"
    )
    return system, user_prompt
