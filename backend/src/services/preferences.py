from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from errors import ParameterValidationError
from models import Coordinates, SelectedPOI, TravelPreferences, WorkflowContext
from utils import is_number, is_valid_coordinate


TRANSPORT_MODES = {"walking", "bicycle", "car", "public_transport"}
PACES = {"relaxed", "moderate", "active"}
BUDGETS = {"budget", "moderate", "luxury"}

TRANSPORT_ALIASES = {"walk": "walking", "bike": "bicycle", "cycling": "bicycle", "driving": "car", "public transport": "public_transport", "bus": "public_transport"}
BUDGET_ALIASES = {"mid-range": "moderate", "mid_range": "moderate", "midrange": "moderate"}

INTEREST_TYPES: Dict[str, List[str]] = {
    "beaches": ["beach"],
    "history": ["historical_site", "museum", "monument", "archaeological_site"],
    "food": ["restaurant", "cafe", "taverna", "bar"],
    "culture": ["museum", "gallery", "theater", "cultural_site"],
    "nature": ["park", "beach", "hiking_trail", "natural_site"],
    "nightlife": ["bar", "nightclub", "entertainment"],
    "shopping": ["shopping_mall", "market", "store"],
    "adventure": ["activity", "sports", "adventure_park"],
    "relaxation": ["spa", "beach", "park"],
}
DEFAULT_TYPES = ["attraction", "restaurant", "beach", "museum"]

BUDGET_PRICE_LEVEL = {"budget": 1, "moderate": 2, "luxury": 3}


def map_interests_to_types(interests: List[str]) -> List[str]:
    types: list[str] = []
    for interest in interests:
        types.extend(INTEREST_TYPES.get(interest.strip().lower(), []))
    types = list(dict.fromkeys(types))
    return types or list(DEFAULT_TYPES)


def map_budget_to_price_level(budget: Optional[str]) -> int:
    return BUDGET_PRICE_LEVEL.get((budget or "").strip().lower(), 3)


def _norm_choice(value: Any, field: str, allowed: set[str], aliases: Dict[str, str], default: Optional[str]) -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if not isinstance(value, str):
        raise ParameterValidationError(f"{field} must be a string", {"field": field, "received": value})
    norm = value.strip().lower()
    norm = aliases.get(norm, norm)
    if norm not in allowed:
        raise ParameterValidationError(
            f"unsupported {field}: {value}",
            {"field": field, "expected": sorted(allowed), "received": value},
        )
    return norm


def _str_list(value: Any, field: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ParameterValidationError(f"{field} must be a list of strings", {"field": field, "received": value})
    return [x.strip() for x in value if x.strip()]


def _coords_from(data: Dict[str, Any]) -> tuple[Any, Any]:
    if "lat" in data or "lng" in data:
        return data.get("lat"), data.get("lng")
    if "latitude" in data or "longitude" in data:
        return data.get("latitude"), data.get("longitude")
    nested = (data.get("location") or {}).get("coordinates") if isinstance(data.get("location"), dict) else None
    if isinstance(nested, dict):
        return nested.get("lat"), nested.get("lng")
    return None, None


def parse_location(value: Any) -> Optional[Coordinates]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ParameterValidationError("userLocation must be an object", {"field": "userLocation", "received": value})
    lat, lng = _coords_from(value)
    if lat is None and lng is None:
        return None
    if not is_valid_coordinate(lat, lng):
        raise ParameterValidationError(
            "userLocation has invalid coordinates",
            {"field": "userLocation", "expected": "lat in [-90,90], lng in [-180,180]", "received": value},
        )
    return Coordinates(float(lat), float(lng))


def parse_preferences(data: Any) -> TravelPreferences:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParameterValidationError("preferences must be an object", {"field": "preferences", "received": data})

    transport = _norm_choice(data.get("transport"), "transport", TRANSPORT_MODES, TRANSPORT_ALIASES, "walking")
    pace = _norm_choice(data.get("pace"), "pace", PACES, {}, "moderate")
    budget = _norm_choice(data.get("budget"), "budget", BUDGETS, BUDGET_ALIASES, None)
    interests = [i.lower() for i in _str_list(data.get("interests"), "interests")]

    count = data.get("numberOfPOIs", data.get("number_of_pois"))
    if count is None:
        number_of_pois = 5
    elif is_number(count) and int(count) >= 1:
        number_of_pois = int(count)
    else:
        raise ParameterValidationError("numberOfPOIs must be a positive integer", {"field": "numberOfPOIs", "received": count})

    return TravelPreferences(
        transport=transport or "walking",
        pace=pace or "moderate",
        interests=interests,
        budget=budget,
        number_of_pois=number_of_pois,
    )


def parse_selected_pois(value: Any) -> list[SelectedPOI]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ParameterValidationError("selectedPOIs must be a list", {"field": "selectedPOIs", "received": value})

    out: list[SelectedPOI] = []
    for idx, item in enumerate(value):
        field = f"selectedPOIs[{idx}]"
        if not isinstance(item, dict):
            raise ParameterValidationError(f"{field} must be an object", {"field": field, "received": item})
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ParameterValidationError(f"{field}.name is required", {"field": f"{field}.name", "received": name})
        lat, lng = _coords_from(item)
        if lat is not None or lng is not None:
            if not is_valid_coordinate(lat, lng):
                raise ParameterValidationError(
                    f"{field} has invalid coordinates", {"field": field, "received": {"lat": lat, "lng": lng}}
                )
        poi_id = item.get("id") or item.get("place_id")
        poi_type = item.get("type") or item.get("primary_type")
        out.append(
            SelectedPOI(
                name=name.strip(),
                id=(str(poi_id) if poi_id else None),
                type=(str(poi_type).strip().lower() if poi_type else None),
                lat=(float(lat) if lat is not None else None),
                lng=(float(lng) if lng is not None else None),
            )
        )
    return out


def build_context(payload: Dict[str, Any], cancel_event: Optional[threading.Event] = None) -> WorkflowContext:
    """Validate a raw request payload into a WorkflowContext before any external call."""
    step = payload.get("currentStep", 1)
    if step is None:
        step = 1
    if not is_number(step) or int(step) != step or step < 1:
        raise ParameterValidationError("currentStep must be a positive integer", {"field": "currentStep", "received": step})

    return WorkflowContext(
        user_location=parse_location(payload.get("userLocation")),
        preferences=parse_preferences(payload.get("preferences")),
        selected_pois=parse_selected_pois(payload.get("selectedPOIs")),
        current_step=int(step),
        exclude_names=_str_list(payload.get("excludeNames"), "excludeNames"),
        exclude_ids=_str_list(payload.get("excludeIds"), "excludeIds"),
        cancel_event=cancel_event,
    )
