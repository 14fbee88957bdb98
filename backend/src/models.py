"""Data models for the POI step planner."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


ACCOMMODATION_TYPES = frozenset(
    {
        "hotel",
        "lodging",
        "accommodation",
        "resort",
        "guesthouse",
        "villa",
        "apartment",
        "hostel",
        "bed_and_breakfast",
        "vacation_rental",
    }
)


def normalize_type(value: str) -> str:
    return value.strip().lower().replace(" ", "_").replace("-", "_")


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class POI:
    id: Optional[str]
    name: str
    primary_type: str
    lat: float
    lng: float
    secondary_types: tuple[str, ...] = ()
    rating: Optional[float] = None
    price_level: Optional[int] = None
    address: Optional[str] = None
    amenities: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    description: str = ""
    highlights: tuple[str, ...] = ()
    local_tips: tuple[str, ...] = ()
    opening_hours: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None

    @property
    def types(self) -> tuple[str, ...]:
        return (self.primary_type,) + tuple(self.secondary_types)

    @property
    def key(self) -> str:
        """Identifier, falling back to the name when no identifier exists."""
        return self.id or self.name


@dataclass
class SearchHit:
    poi: POI
    distance_m: Optional[float] = None


@dataclass
class Candidate:
    poi: POI
    distance_m: Optional[float]
    score: float = 0.0


@dataclass(frozen=True)
class ExclusionSet:
    names: frozenset[str] = frozenset()
    ids: frozenset[str] = frozenset()
    types: frozenset[str] = ACCOMMODATION_TYPES

    @classmethod
    def build(
        cls,
        names: Optional[List[str]] = None,
        ids: Optional[List[str]] = None,
        types: Optional[List[str]] = None,
    ) -> "ExclusionSet":
        return cls(
            names=frozenset(n.strip().lower() for n in (names or []) if n and n.strip()),
            ids=frozenset(i for i in (ids or []) if i),
            types=ACCOMMODATION_TYPES | frozenset(normalize_type(t) for t in (types or []) if t),
        )

    def with_types(self, types: List[str]) -> "ExclusionSet":
        return ExclusionSet(
            names=self.names,
            ids=self.ids,
            types=self.types | frozenset(normalize_type(t) for t in types if t),
        )

    def excludes(self, poi: POI) -> bool:
        if poi.name and poi.name.strip().lower() in self.names:
            return True
        if poi.id and poi.id in self.ids:
            return True
        return any(normalize_type(t) in self.types for t in poi.types if t)


@dataclass
class TravelPreferences:
    transport: str = "walking"
    pace: str = "moderate"
    interests: list[str] = field(default_factory=list)
    budget: Optional[str] = None
    number_of_pois: int = 5


@dataclass(frozen=True)
class SelectedPOI:
    name: str
    id: Optional[str] = None
    type: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(self.lat, self.lng)


@dataclass
class WorkflowContext:
    """Request-scoped state; created per request and dropped afterwards."""

    user_location: Optional[Coordinates]
    preferences: TravelPreferences
    selected_pois: list[SelectedPOI] = field(default_factory=list)
    current_step: int = 1
    exclude_names: list[str] = field(default_factory=list)
    exclude_ids: list[str] = field(default_factory=list)
    tier: Optional[str] = None
    cancel_event: Optional[threading.Event] = None

    @property
    def round_number(self) -> int:
        return len(self.selected_pois) + 1

    @property
    def is_initial(self) -> bool:
        return not self.selected_pois

    def exclusions(self) -> ExclusionSet:
        names = list(self.exclude_names) + [p.name for p in self.selected_pois]
        ids = list(self.exclude_ids) + [p.id for p in self.selected_pois if p.id]
        return ExclusionSet.build(names=names, ids=ids)

    def reference_location(self, default: tuple[float, float]) -> Coordinates:
        """Last selected POI, else the user, else the default reference point."""
        for poi in reversed(self.selected_pois):
            if poi.coordinates is not None:
                return poi.coordinates
        if self.user_location is not None:
            return self.user_location
        return Coordinates(default[0], default[1])

    def is_cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


@dataclass
class RetrievalResult:
    hits: list[SearchHit]
    radius_m: int
    attempts: int
    success: bool
    error: Optional[str] = None

    def metadata(self) -> Dict[str, Any]:
        return {
            "searchRadius": self.radius_m,
            "searchAttempts": self.attempts,
            "searchSuccess": self.success,
        }


@dataclass(frozen=True)
class SpatialStrategy:
    radius_m: int
    center: Coordinates
    rationale: str


@dataclass(frozen=True)
class PoiCriteria:
    required_types: tuple[str, ...]
    quality_threshold: float
    budget_level: Optional[str] = None
    exclude_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class SearchStrategy:
    round_number: int
    round_type: str
    reasoning: str
    spatial: SpatialStrategy
    criteria: PoiCriteria

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_number": self.round_number,
            "round_type": self.round_type,
            "reasoning": self.reasoning,
            "spatial": {
                "radius_meters": self.spatial.radius_m,
                "center": {"lat": self.spatial.center.lat, "lng": self.spatial.center.lng},
                "rationale": self.spatial.rationale,
            },
            "criteria": {
                "required_types": list(self.criteria.required_types),
                "quality_threshold": self.criteria.quality_threshold,
                "budget_level": self.criteria.budget_level,
                "exclude_types": list(self.criteria.exclude_types),
            },
        }


@dataclass(frozen=True)
class SelectedPick:
    poi_id: str
    selection_reasoning: str
    fit_score: float
    spatial_logic: Optional[str] = None


@dataclass(frozen=True)
class RejectedPick:
    poi_id: str
    rejection_reason: str


@dataclass(frozen=True)
class SelectionDecision:
    round_number: int
    picks: tuple[SelectedPick, ...]
    completion_status: str
    rejected: tuple[RejectedPick, ...] = ()
    next_round_hint: Optional[str] = None

    @property
    def chosen(self) -> SelectedPick:
        return self.picks[0]


@dataclass
class RecommendationResult:
    success: bool
    recommendations: list[Dict[str, Any]]
    source: str
    location: Optional[Dict[str, float]] = None
    context: Dict[str, Any] = field(default_factory=dict)
    ai_metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "recommendations": self.recommendations,
            "source": self.source,
            "location": self.location,
            "context": self.context,
        }
        if self.ai_metadata is not None:
            out["aiMetadata"] = self.ai_metadata
        return out
