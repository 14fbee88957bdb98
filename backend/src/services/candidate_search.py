from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from loguru import logger

from config import Configuration
from models import Coordinates, ExclusionSet, RetrievalResult, SearchHit
from services.geo_index import GeoIndex


@dataclass(frozen=True)
class SearchRequest:
    center: Optional[Coordinates]
    radius_m: int
    types: List[str]
    max_price_level: Optional[int] = None
    min_rating: Optional[float] = None
    search_text: Optional[str] = None


class CandidateRetriever:
    """Widening-radius search against the Geo Index.

    Attempts are sequential; an index failure counts as a zero-result attempt.
    When every attempt comes back short, one island-wide query around the
    default reference point is issued and its result is final.
    """

    def __init__(self, cfg: Configuration, index: GeoIndex) -> None:
        self.cfg = cfg
        self.index = index

    def _query(self, center: Optional[Coordinates], radius_m: int, req: SearchRequest, exclusions: ExclusionSet) -> List[SearchHit]:
        return self.index.search(
            center=center,
            radius_m=radius_m,
            types=req.types,
            min_rating=req.min_rating,
            max_price_level=req.max_price_level,
            search_text=req.search_text,
            exclude_ids=exclusions.ids,
            exclude_names=exclusions.names,
            exclude_types=exclusions.types,
            limit=self.cfg.candidate_limit,
        )

    def _widen(self, radius_m: int) -> int:
        widened = min(radius_m * self.cfg.search_expansion_factor, self.cfg.search_max_radius_m)
        return int(max(radius_m, round(widened)))

    def retrieve(self, req: SearchRequest, exclusions: ExclusionSet) -> RetrievalResult:
        radius = int(req.radius_m)
        max_attempts = max(1, self.cfg.search_max_attempts)
        attempts = 0
        last_error: Optional[str] = None

        while attempts < max_attempts:
            attempts += 1
            try:
                hits = self._query(req.center, radius, req, exclusions)
            except Exception as exc:
                logger.warning("geo search attempt={} radius={} failed: {}", attempts, radius, exc)
                last_error = str(exc)
                hits = []

            logger.debug("geo search attempt={} radius={} results={}", attempts, radius, len(hits))
            if len(hits) >= self.cfg.search_min_results:
                return RetrievalResult(hits=hits, radius_m=radius, attempts=attempts, success=True)
            if attempts < max_attempts:
                radius = self._widen(radius)

        island_radius = self.cfg.island_radius_m
        center = Coordinates(*self.cfg.default_center)
        logger.info("geo search falling back to island-wide radius={} after {} attempts", island_radius, attempts)
        try:
            hits = self._query(center, island_radius, req, exclusions)
        except Exception as exc:
            logger.warning("island-wide geo search failed: {}", exc)
            return RetrievalResult(
                hits=[], radius_m=island_radius, attempts=attempts + 1, success=False, error=str(exc)
            )
        return RetrievalResult(
            hits=hits,
            radius_m=island_radius,
            attempts=attempts + 1,
            success=bool(hits),
            error=last_error if not hits else None,
        )
