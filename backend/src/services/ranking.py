from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from models import Candidate, ExclusionSet, SearchHit


@dataclass(frozen=True)
class ScoringPolicy:
    rating_weight: float = 30.0
    missing_rating_score: float = 15.0
    proximity_weight: float = 20.0
    proximity_scale_m: float = 100.0
    missing_distance_score: float = 10.0
    popular_types: frozenset[str] = frozenset({"attraction", "restaurant", "beach", "museum", "historical_site"})
    popular_bonus: float = 15.0
    description_threshold: int = 100
    description_bonus: float = 10.0
    highlights_bonus: float = 5.0
    local_tips_bonus: float = 5.0


DEFAULT_SCORING = ScoringPolicy()


def basic_filter(
    hits: Iterable[SearchHit],
    exclusions: ExclusionSet,
    *,
    quality_threshold: Optional[float] = None,
) -> List[SearchHit]:
    """Drop unnamed, excluded and blocklisted records; unrated POIs pass any quality threshold."""
    out: list[SearchHit] = []
    for hit in hits:
        poi = hit.poi
        if not poi.name or not poi.name.strip():
            continue
        if exclusions.excludes(poi):
            continue
        if quality_threshold is not None and poi.rating is not None and poi.rating < quality_threshold:
            continue
        out.append(hit)
    return out


def dedupe_hits(hits: Iterable[SearchHit]) -> List[SearchHit]:
    seen: set[str] = set()
    out: list[SearchHit] = []
    for hit in hits:
        key = hit.poi.id or hit.poi.name.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(hit)
    return out


def score_hit(hit: SearchHit, policy: ScoringPolicy = DEFAULT_SCORING) -> float:
    poi = hit.poi
    score = 0.0
    if poi.rating is not None:
        score += poi.rating / 5.0 * policy.rating_weight
    else:
        score += policy.missing_rating_score

    if hit.distance_m is not None:
        proximity = policy.proximity_weight - hit.distance_m / policy.proximity_scale_m
        score += min(max(0.0, proximity), policy.proximity_weight)
    else:
        score += policy.missing_distance_score

    if poi.primary_type in policy.popular_types:
        score += policy.popular_bonus
    if len(poi.description) > policy.description_threshold:
        score += policy.description_bonus
    if poi.highlights:
        score += policy.highlights_bonus
    if poi.local_tips:
        score += policy.local_tips_bonus
    return float(round(score))


def rank_candidates(hits: Iterable[SearchHit], policy: ScoringPolicy = DEFAULT_SCORING) -> List[Candidate]:
    scored = [Candidate(poi=h.poi, distance_m=h.distance_m, score=score_hit(h, policy)) for h in hits]
    # sorted() is stable, so equal scores keep retrieval order
    return sorted(scored, key=lambda c: c.score, reverse=True)


def to_payload(candidate: Candidate) -> Dict[str, Any]:
    poi = candidate.poi
    distance = int(round(candidate.distance_m)) if candidate.distance_m is not None else None
    rating = float(poi.rating) if poi.rating is not None else None
    price_level = int(poi.price_level) if poi.price_level is not None else None
    return {
        "id": poi.id,
        "place_id": poi.id,
        "name": poi.name,
        "type": poi.primary_type,
        "secondary_types": list(poi.secondary_types),
        "latitude": poi.lat,
        "longitude": poi.lng,
        "address": poi.address,
        "rating": rating,
        "price_level": price_level,
        "phone": poi.phone,
        "website": poi.website,
        "description": poi.description,
        "highlights": list(poi.highlights),
        "local_tips": list(poi.local_tips),
        "amenities": list(poi.amenities),
        "tags": list(poi.tags),
        "distance_meters": distance,
        "aiScore": int(candidate.score),
        "location": {
            "address": poi.address,
            "coordinates": {"lat": poi.lat, "lng": poi.lng},
        },
        "details": {
            "openingHours": poi.opening_hours,
            "priceRange": f"Level {price_level}" if price_level is not None else "Not specified",
            "rating": str(rating) if rating is not None else "Not rated",
        },
    }


def process_candidates(
    hits: Iterable[SearchHit],
    exclusions: ExclusionSet,
    *,
    limit: int = 5,
    quality_threshold: Optional[float] = None,
    policy: ScoringPolicy = DEFAULT_SCORING,
) -> List[Candidate]:
    """Filter, dedupe, score and truncate raw Geo Index hits, in that order."""
    kept = basic_filter(hits, exclusions, quality_threshold=quality_threshold)
    ranked = rank_candidates(dedupe_hits(kept), policy)
    return ranked[: max(0, limit)]
