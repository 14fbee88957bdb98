"""Geo Index query contract plus an in-memory catalog implementation."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from errors import GeoIndexError
from models import POI, Coordinates, SearchHit, normalize_type
from services.bbox_builder import bbox_contains, expand_bbox_from_center
from utils import haversine_m


class GeoIndex:
    """Bounded-pool wrapper around a read-only POI store.

    Subclasses implement ``_search``; ``search`` takes a pool slot first and
    raises GeoIndexError when none frees up within ``acquire_timeout``.
    """

    def __init__(self, max_connections: int = 5, acquire_timeout: float = 10.0) -> None:
        self._slots = threading.BoundedSemaphore(max(1, max_connections))
        self._acquire_timeout = acquire_timeout

    def is_available(self) -> bool:
        return True

    def search(
        self,
        *,
        center: Optional[Coordinates] = None,
        radius_m: Optional[float] = None,
        types: Optional[List[str]] = None,
        min_rating: Optional[float] = None,
        max_price_level: Optional[int] = None,
        amenities: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        search_text: Optional[str] = None,
        exclude_ids: Optional[Iterable[str]] = None,
        exclude_names: Optional[Iterable[str]] = None,
        exclude_types: Optional[Iterable[str]] = None,
        limit: int = 15,
    ) -> List[SearchHit]:
        if not self._slots.acquire(timeout=self._acquire_timeout):
            raise GeoIndexError("geo index pool exhausted", {"timeout_s": self._acquire_timeout})
        try:
            return self._search(
                center=center,
                radius_m=radius_m,
                types=[normalize_type(t) for t in (types or [])],
                min_rating=min_rating,
                max_price_level=max_price_level,
                amenities=amenities or [],
                tags=tags or [],
                search_text=search_text,
                exclude_ids=set(exclude_ids or []),
                exclude_names={n.strip().lower() for n in (exclude_names or [])},
                exclude_types={normalize_type(t) for t in (exclude_types or [])},
                limit=limit,
            )
        finally:
            self._slots.release()

    def _search(self, **query: Any) -> List[SearchHit]:
        raise NotImplementedError


def _matches(poi: POI, query: Dict[str, Any]) -> bool:
    poi_types = {normalize_type(t) for t in poi.types if t}
    if query["types"] and not poi_types.intersection(query["types"]):
        return False
    if query["exclude_types"] and poi_types.intersection(query["exclude_types"]):
        return False
    if query["min_rating"] is not None and (poi.rating is None or poi.rating < query["min_rating"]):
        return False
    if query["max_price_level"] is not None and poi.price_level is not None and poi.price_level > query["max_price_level"]:
        return False
    if query["amenities"] and not set(poi.amenities).intersection(query["amenities"]):
        return False
    if query["tags"] and not set(poi.tags).intersection(query["tags"]):
        return False
    if query["search_text"]:
        needle = query["search_text"].lower()
        if needle not in (poi.name or "").lower() and needle not in poi.description.lower():
            return False
    if poi.id and poi.id in query["exclude_ids"]:
        return False
    if poi.name and poi.name.strip().lower() in query["exclude_names"]:
        return False
    return True


class CatalogGeoIndex(GeoIndex):
    def __init__(self, pois: Iterable[POI], max_connections: int = 5, acquire_timeout: float = 10.0) -> None:
        super().__init__(max_connections=max_connections, acquire_timeout=acquire_timeout)
        self.pois: tuple[POI, ...] = tuple(pois)

    @classmethod
    def from_json(cls, path: str | Path, **kwargs: Any) -> "CatalogGeoIndex":
        pois = load_catalog(path)
        logger.info("catalog loaded path={} pois={}", path, len(pois))
        return cls(pois, **kwargs)

    def is_available(self) -> bool:
        return bool(self.pois)

    def __len__(self) -> int:
        return len(self.pois)

    def _search(self, **query: Any) -> List[SearchHit]:
        center: Optional[Coordinates] = query["center"]
        radius_m: Optional[float] = query["radius_m"]
        bbox = None
        if center is not None and radius_m:
            bbox = expand_bbox_from_center(center.lng, center.lat, radius_m)

        hits: list[SearchHit] = []
        for poi in self.pois:
            if bbox is not None and not bbox_contains(bbox, poi.lng, poi.lat):
                continue
            if not _matches(poi, query):
                continue
            distance = None
            if center is not None:
                distance = haversine_m(center.lat, center.lng, poi.lat, poi.lng)
                if radius_m and distance > radius_m:
                    continue
            hits.append(SearchHit(poi=poi, distance_m=distance))

        if center is not None:
            hits.sort(key=lambda h: h.distance_m or 0.0)
        else:
            hits.sort(key=lambda h: (h.poi.rating is None, -(h.poi.rating or 0.0)))
        return hits[: max(0, query["limit"])]


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(x) for x in value if x)


def _float_or_none(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_poi(row: Dict[str, Any]) -> Optional[POI]:
    """Build a POI from a catalog row; rows without usable coordinates are skipped."""
    lat = row.get("latitude", row.get("lat"))
    lng = row.get("longitude", row.get("lng"))
    if lat is None or lng is None:
        coords = ((row.get("location") or {}).get("coordinates") or {})
        lat, lng = coords.get("lat"), coords.get("lng")
    lat, lng = _float_or_none(lat), _float_or_none(lng)
    if lat is None or lng is None:
        return None

    price = row.get("price_level")
    try:
        price_level = int(price) if price is not None else None
    except (TypeError, ValueError):
        price_level = None

    primary = row.get("primary_type") or row.get("type") or "attraction"
    poi_id = row.get("id") or row.get("place_id")
    return POI(
        id=(str(poi_id) if poi_id else None),
        name=str(row.get("name") or "").strip(),
        primary_type=normalize_type(str(primary)),
        lat=lat,
        lng=lng,
        secondary_types=tuple(normalize_type(t) for t in _str_tuple(row.get("secondary_types"))),
        rating=_float_or_none(row.get("rating")),
        price_level=price_level,
        address=(str(row["address"]) if row.get("address") else None),
        amenities=_str_tuple(row.get("amenities")),
        tags=_str_tuple(row.get("tags")),
        description=str(row.get("description") or ""),
        highlights=_str_tuple(row.get("highlights")),
        local_tips=_str_tuple(row.get("local_tips")),
        opening_hours=(str(row["opening_hours"]) if row.get("opening_hours") else None),
        phone=(str(row["phone"]) if row.get("phone") else None),
        website=(str(row["website"]) if row.get("website") else None),
    )


def load_catalog(path: str | Path) -> List[POI]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        raise GeoIndexError(f"failed to load catalog: {exc}", {"path": str(path)}) from exc

    rows = data.get("pois", []) if isinstance(data, dict) else data
    pois: list[POI] = []
    for row in rows or []:
        if not isinstance(row, dict):
            continue
        poi = parse_poi(row)
        if poi is not None:
            pois.append(poi)
    return pois
