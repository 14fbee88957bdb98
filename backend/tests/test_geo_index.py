import json
import threading

import pytest

from errors import GeoIndexError
from models import Coordinates
from services.geo_index import CatalogGeoIndex, load_catalog, parse_poi


OLD_TOWN = Coordinates(36.4461, 28.2236)


def test_catalog_loads_sample(catalog_index):
    assert len(catalog_index) == 13
    assert catalog_index.is_available()


def test_radius_and_types_filter(catalog_index):
    hits = catalog_index.search(center=OLD_TOWN, radius_m=1500, types=["historical_site"])
    names = [h.poi.name for h in hits]
    assert "Palace of the Grand Master" in names
    assert "Acropolis of Lindos" not in names
    assert all(h.distance_m <= 1500 for h in hits)
    # nearest first
    assert [h.distance_m for h in hits] == sorted(h.distance_m for h in hits)


def test_secondary_types_match(catalog_index):
    hits = catalog_index.search(center=OLD_TOWN, radius_m=2000, types=["museum"])
    ids = {h.poi.id for h in hits}
    assert {"poi-grand-master-palace", "poi-archaeological-museum"} <= ids


def test_exclusions(catalog_index):
    hits = catalog_index.search(
        center=OLD_TOWN,
        radius_m=3000,
        exclude_names=["ELLI BEACH"],
        exclude_ids=["poi-mandraki"],
        exclude_types=["hotel"],
    )
    ids = {h.poi.id for h in hits}
    assert "poi-elli-beach" not in ids
    assert "poi-mandraki" not in ids
    assert "poi-grand-hotel" not in ids
    assert "poi-street-of-the-knights" in ids


def test_min_rating_and_price(catalog_index):
    hits = catalog_index.search(min_rating=4.6, max_price_level=2, limit=50)
    assert hits
    for hit in hits:
        assert hit.poi.rating >= 4.6
        assert hit.poi.price_level is None or hit.poi.price_level <= 2
        assert hit.distance_m is None
    # unknown price level is kept
    assert "poi-anthony-quinn-bay" in {h.poi.id for h in hits}
    # without a center results are ordered by rating
    ratings = [h.poi.rating for h in hits]
    assert ratings == sorted(ratings, reverse=True)


def test_search_text_and_limit(catalog_index):
    assert [h.poi.id for h in catalog_index.search(search_text="lindos")] == ["poi-lindos-acropolis"]
    assert len(catalog_index.search(limit=3)) == 3


def test_pool_exhaustion_raises():
    index = CatalogGeoIndex([], max_connections=1, acquire_timeout=0.01)
    index._slots.acquire()
    try:
        with pytest.raises(GeoIndexError):
            index.search()
    finally:
        index._slots.release()


def test_pool_slot_released_after_search(catalog_index):
    for _ in range(10):
        catalog_index.search(limit=1)
    assert catalog_index._slots.acquire(timeout=0)


def test_concurrent_searches(catalog_index):
    results = []

    def worker():
        results.append(len(catalog_index.search(center=OLD_TOWN, radius_m=5000)))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(set(results)) == 1


def test_empty_catalog_is_unavailable():
    assert not CatalogGeoIndex([]).is_available()


def test_parse_poi_variants():
    poi = parse_poi({"place_id": 7, "name": " Cafe ", "type": "Coffee Shop", "location": {"coordinates": {"lat": "36.4", "lng": 28.2}}})
    assert poi.id == "7"
    assert poi.name == "Cafe"
    assert poi.primary_type == "coffee_shop"
    assert poi.lat == 36.4
    assert parse_poi({"name": "nowhere"}) is None


def test_load_catalog_list_and_errors(tmp_path):
    path = tmp_path / "list.json"
    path.write_text(json.dumps([{"id": "a", "name": "A", "lat": 1, "lng": 2}, "junk", {"name": "no coords"}]))
    pois = load_catalog(path)
    assert [p.id for p in pois] == ["a"]

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(GeoIndexError):
        load_catalog(bad)
    with pytest.raises(GeoIndexError):
        load_catalog(tmp_path / "missing.json")
