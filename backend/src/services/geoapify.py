from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests
from loguru import logger
from requests.adapters import HTTPAdapter

from config import Configuration
from errors import GeoIndexError
from models import POI, Coordinates, SearchHit
from services.geo_index import GeoIndex, _matches
from utils import haversine_m


TYPE_CATEGORIES: Dict[str, str] = {
    "beach": "beach",
    "restaurant": "catering.restaurant",
    "taverna": "catering.restaurant",
    "cafe": "catering.cafe",
    "bar": "catering.bar",
    "museum": "entertainment.museum",
    "gallery": "entertainment.culture.gallery",
    "theater": "entertainment.culture.theatre",
    "cultural_site": "entertainment.culture",
    "historical_site": "heritage",
    "monument": "tourism.sights.memorial",
    "archaeological_site": "tourism.sights.archaeological_site",
    "attraction": "tourism.attraction",
    "viewpoint": "tourism.attraction.viewpoint",
    "park": "leisure.park",
    "nature": "natural",
    "natural_site": "natural",
    "hiking_trail": "natural.mountain",
    "market": "commercial.marketplace",
    "shopping_mall": "commercial.shopping_mall",
    "store": "commercial",
    "shopping": "commercial",
    "nightclub": "adult.nightclub",
    "entertainment": "entertainment",
    "spa": "leisure.spa",
    "sports": "sport",
    "activity": "activity",
    "adventure_park": "entertainment.activity_park",
}
DEFAULT_CATEGORIES = "tourism,catering.restaurant,beach,entertainment.museum,heritage"

# Geoapify accommodation subcategories; anything else under accommodation maps to "accommodation"
ACCOMMODATION_CATEGORIES: Dict[str, str] = {
    "hotel": "hotel",
    "hostel": "hostel",
    "motel": "hotel",
    "apartment": "apartment",
    "chalet": "villa",
    "guest_house": "guesthouse",
}


@dataclass
class _RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


def categories_for(types: List[str]) -> str:
    cats = [TYPE_CATEGORIES[t] for t in types if t in TYPE_CATEGORIES]
    return ",".join(dict.fromkeys(cats)) or DEFAULT_CATEGORIES


def accommodation_types(categories: List[str]) -> Tuple[str, ...]:
    """Blocklist types for any `accommodation` or `*.accommodation` category."""
    found: list[str] = []
    for raw in categories:
        parts = raw.split(".")
        if "accommodation" not in parts:
            continue
        idx = parts.index("accommodation")
        sub = parts[idx + 1] if idx + 1 < len(parts) else ""
        found.append(ACCOMMODATION_CATEGORIES.get(sub, "accommodation"))
    return tuple(dict.fromkeys(found))


def type_for(categories: List[str]) -> str:
    """Most specific POI type whose Geoapify category prefixes one of ``categories``."""
    best, best_len = "attraction", 0
    for poi_type, cat in TYPE_CATEGORIES.items():
        for raw in categories:
            if (raw == cat or raw.startswith(cat + ".")) and len(cat) > best_len:
                best, best_len = poi_type, len(cat)
    return best


class GeoapifyGeoIndex(GeoIndex):
    def __init__(self, cfg: Configuration) -> None:
        super().__init__(max_connections=cfg.geo_max_connections, acquire_timeout=cfg.geo_acquire_timeout)
        self.cfg = cfg
        self.base = cfg.geoapify_base_url.rstrip("/")
        self.session = requests.Session()
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=cfg.geo_max_connections, pool_block=True)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self._cache_ttl = 60 * 30  # 30 minutes
        self._cache_max = 128
        self._cache: OrderedDict[str, Tuple[float, List[POI]]] = OrderedDict()

    def is_available(self) -> bool:
        return bool(self.cfg.geoapify_api_key)

    def _cache_get(self, key: str) -> Optional[List[POI]]:
        entry = self._cache.get(key)
        if not entry:
            return None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            self._cache.pop(key, None)
            return None
        self._cache.move_to_end(key)
        return value

    def _cache_set(self, key: str, value: List[POI]) -> None:
        if len(self._cache) >= self._cache_max:
            self._cache.popitem(last=False)
        self._cache[key] = (time.time(), value)

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        params = {**params, "apiKey": self.cfg.geoapify_api_key}
        policy = _RetryPolicy()
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(
                    url, headers={"Accept": "application/json"}, params=params, timeout=self.cfg.geo_timeout
                )
            except requests.RequestException as exc:
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise GeoIndexError(f"request error: {exc}") from exc

            if resp.status_code in (429, 500, 502, 503, 504) and attempt <= policy.retries:
                logger.debug("geoapify status={} attempt={} retrying", resp.status_code, attempt)
                time.sleep(policy.base_delay * attempt)
                continue
            if not resp.ok:
                raise GeoIndexError(f"upstream {resp.status_code}", {"body": resp.text[:300]})

            try:
                return resp.json()
            except ValueError as exc:
                raise GeoIndexError("invalid json response") from exc

    def _parse_features(self, features: List[dict]) -> List[POI]:
        results: list[POI] = []
        for feat in features:
            props = feat.get("properties") or {}
            lon, lat = props.get("lon"), props.get("lat")
            if lon is None or lat is None:
                coords = (feat.get("geometry") or {}).get("coordinates") or []
                if isinstance(coords, list) and len(coords) >= 2:
                    lon, lat = coords[0], coords[1]
            if lon is None or lat is None:
                continue
            categories = [str(c) for c in (props.get("categories") or [])]
            rating = props.get("rating")
            raw = (props.get("datasource") or {}).get("raw")
            description = raw.get("description") if isinstance(raw, dict) else None
            results.append(
                POI(
                    id=(str(props["place_id"]) if props.get("place_id") else None),
                    name=str(props.get("name") or ""),
                    primary_type=type_for(categories),
                    lat=float(lat),
                    lng=float(lon),
                    secondary_types=accommodation_types(categories),
                    rating=(float(rating) if isinstance(rating, (int, float)) else None),
                    address=(props.get("formatted") or props.get("address_line1") or None),
                    tags=tuple(categories),
                    description=str(description or ""),
                    opening_hours=(str(props["opening_hours"]) if props.get("opening_hours") else None),
                    website=(str(props["website"]) if props.get("website") else None),
                )
            )
        return results

    def _search(self, **query: Any) -> List[SearchHit]:
        center: Coordinates = query["center"] or Coordinates(*self.cfg.default_center)
        radius_m = float(query["radius_m"] or self.cfg.island_radius_m)
        categories = categories_for(query["types"])
        fetch_limit = min(max(query["limit"] * 3, 20), 100)

        key = f"circle:{categories}:{center.lng:.4f},{center.lat:.4f}:{radius_m:.0f}:{fetch_limit}"
        pois = self._cache_get(key)
        if pois is None:
            payload = self._get(
                "/v2/places",
                {
                    "categories": categories,
                    "filter": f"circle:{center.lng},{center.lat},{radius_m:.0f}",
                    "bias": f"proximity:{center.lng},{center.lat}",
                    "limit": fetch_limit,
                    "lang": "en",
                },
            )
            pois = self._parse_features(payload.get("features") or [])
            self._cache_set(key, pois)

        # Geoapify matches by category, not by our type names
        query = {**query, "types": []}
        hits = [
            SearchHit(poi=p, distance_m=haversine_m(center.lat, center.lng, p.lat, p.lng))
            for p in pois
            if _matches(p, query)
        ]
        hits.sort(key=lambda h: h.distance_m or 0.0)
        return hits[: query["limit"]]
