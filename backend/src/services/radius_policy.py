"""Adaptive search radius: density zone base, scaled by travel context."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from models import Coordinates, SelectedPOI, TravelPreferences
from services.bbox_builder import BBox, bbox_contains
from utils import haversine_m


@dataclass(frozen=True)
class DensityZone:
    name: str
    density: str
    bbox: BBox  # min_lon, min_lat, max_lon, max_lat
    base_radius_m: int
    multiplier: float


DEFAULT_ZONES: tuple[DensityZone, ...] = (
    DensityZone("Rhodes City Center", "high", (28.21, 36.43, 28.24, 36.46), 1000, 0.8),
    DensityZone("Lindos", "medium", (28.08, 36.08, 28.10, 36.12), 1500, 1.0),
    DensityZone("Faliraki", "medium", (28.19, 36.33, 28.22, 36.36), 1500, 1.0),
    DensityZone("Ixia", "medium", (28.20, 36.41, 28.22, 36.43), 1500, 1.0),
    DensityZone("Kallithea", "medium", (28.19, 36.37, 28.22, 36.40), 1500, 1.0),
)
RURAL_ZONE = DensityZone("Rural/Remote Areas", "low", (0.0, 0.0, 0.0, 0.0), 3000, 1.2)


@dataclass(frozen=True)
class RadiusPolicy:
    zones: tuple[DensityZone, ...] = DEFAULT_ZONES
    fallback_zone: DensityZone = RURAL_ZONE
    transport_factors: Dict[str, float] = field(
        default_factory=lambda: {"walking": 1.0, "bicycle": 1.5, "car": 2.0, "public_transport": 1.3}
    )
    pace_factors: Dict[str, float] = field(default_factory=lambda: {"relaxed": 0.8, "moderate": 1.0, "active": 1.3})
    second_step_factor: float = 0.7
    style_factors: Dict[str, float] = field(
        default_factory=lambda: {"concentrated": 0.9, "exploring": 1.4, "unknown": 1.0}
    )
    concentrated_threshold_m: float = 1000.0
    min_radius_m: int = 500
    max_radius_m: int = 8000
    no_location_radius_m: int = 5000

    def zone_for(self, location: Coordinates) -> DensityZone:
        for zone in self.zones:
            if bbox_contains(zone.bbox, location.lng, location.lat):
                return zone
        return self.fallback_zone

    def step_factor(self, step: int, selected: Sequence[SelectedPOI]) -> float:
        if step <= 1:
            return 1.0
        if step == 2:
            return self.second_step_factor
        style = analyze_travel_pattern(selected, self.concentrated_threshold_m)["travel_style"]
        return self.style_factors.get(style, 1.0)

    def compute(
        self,
        location: Optional[Coordinates],
        preferences: TravelPreferences,
        selected: Sequence[SelectedPOI] = (),
        step: int = 1,
    ) -> int:
        if location is None:
            return self.no_location_radius_m

        zone = self.zone_for(location)
        radius = zone.base_radius_m * zone.multiplier
        radius *= self.transport_factors.get(preferences.transport, 1.0)
        radius *= self.pace_factors.get(preferences.pace, 1.0)
        radius *= self.step_factor(step, selected)
        return int(min(max(round(radius), self.min_radius_m), self.max_radius_m))


def analyze_travel_pattern(
    selected: Sequence[SelectedPOI], concentrated_threshold_m: float = 1000.0
) -> Dict[str, object]:
    located: List[Coordinates] = [p.coordinates for p in selected if p.coordinates is not None]
    if len(located) < 2:
        return {"travel_style": "unknown", "total_distance_m": 0.0, "average_distance_m": 0.0}

    legs = [
        haversine_m(a.lat, a.lng, b.lat, b.lng)
        for a, b in zip(located, located[1:])
    ]
    total = sum(legs)
    average = total / len(legs)
    style = "concentrated" if average < concentrated_threshold_m else "exploring"
    return {
        "travel_style": style,
        "total_distance_m": round(total),
        "average_distance_m": round(average),
    }
