from unittest.mock import MagicMock, patch

import pytest

from config import Configuration
from errors import GeoIndexError
from models import Coordinates, ExclusionSet
from services.geoapify import GeoapifyGeoIndex, accommodation_types, categories_for, type_for
from services.ranking import process_candidates


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = "error" if status_code >= 400 else ""

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload


FEATURES = {
    "features": [
        {
            "properties": {
                "place_id": "g1",
                "name": "Elli Beach",
                "lat": 36.4556,
                "lon": 28.2228,
                "categories": ["beach", "leisure"],
                "formatted": "Elli, Rhodes",
            }
        },
        {
            "properties": {"place_id": "g2", "name": "Kallithea Springs", "categories": ["natural.water"]},
            "geometry": {"coordinates": [28.2473, 36.3789]},
        },
        {"properties": {"place_id": "g3", "name": "No coordinates"}},
    ]
}


@pytest.fixture
def index():
    with patch("services.geoapify.time.sleep"):
        yield GeoapifyGeoIndex(Configuration(geo_backend="geoapify", geoapify_api_key="test-key"))


def test_category_mapping():
    assert categories_for(["beach", "restaurant", "taverna"]) == "beach,catering.restaurant"
    assert categories_for(["unknown"]).startswith("tourism")
    assert type_for(["entertainment.culture.gallery"]) == "gallery"
    assert type_for(["catering.restaurant.greek"]) == "restaurant"
    assert type_for(["something.else"]) == "attraction"


def test_search_parses_and_caches(index):
    index.session.get = MagicMock(return_value=FakeResponse(payload=FEATURES))
    center = Coordinates(36.4461, 28.2236)
    hits = index.search(center=center, radius_m=20000, types=["beach"], exclude_names=["kallithea springs"])
    assert [h.poi.id for h in hits] == ["g1"]
    assert hits[0].poi.primary_type == "beach"
    params = index.session.get.call_args.kwargs["params"]
    assert params["apiKey"] == "test-key"
    assert params["filter"] == "circle:28.2236,36.4461,20000"

    again = index.search(center=center, radius_m=20000, types=["beach"])
    assert [h.poi.id for h in again] == ["g1", "g2"]
    assert index.session.get.call_count == 1


def test_retries_on_rate_limit(index):
    responses = [FakeResponse(429), FakeResponse(payload={"features": []})]
    with patch.object(index.session, "get", side_effect=responses) as get:
        assert index.search(center=Coordinates(36.4, 28.2), radius_m=1000) == []
    assert get.call_count == 2


def test_upstream_error_raises(index):
    with patch.object(index.session, "get", return_value=FakeResponse(403)):
        with pytest.raises(GeoIndexError):
            index.search(center=Coordinates(36.4, 28.2), radius_m=1000)


def test_unavailable_without_key():
    assert not GeoapifyGeoIndex(Configuration(geo_backend="geoapify")).is_available()


HOTELS = {
    "features": [
        {
            "properties": {
                "place_id": "h1",
                "name": "Grand Hotel Rhodes",
                "lat": 36.4530,
                "lon": 28.2205,
                "categories": ["accommodation.hotel"],
            }
        },
        {
            "properties": {
                "place_id": "h2",
                "name": "Plain Hotel",
                "lat": 36.4500,
                "lon": 28.2210,
                "categories": ["tourism.attraction", "building.accommodation"],
            }
        },
        {
            "properties": {
                "place_id": "a1",
                "name": "Mandraki Harbor",
                "lat": 36.4510,
                "lon": 28.2262,
                "categories": ["tourism.attraction"],
            }
        },
    ]
}


def test_accommodation_types():
    assert accommodation_types(["accommodation.hotel"]) == ("hotel",)
    assert accommodation_types(["accommodation.guest_house"]) == ("guesthouse",)
    assert accommodation_types(["accommodation", "building.accommodation"]) == ("accommodation",)
    assert accommodation_types(["tourism.attraction", "catering.cafe"]) == ()


def test_hotels_never_reach_candidates(index):
    exclusions = ExclusionSet.build()
    with patch.object(index.session, "get", return_value=FakeResponse(payload=HOTELS)):
        hits = index.search(center=Coordinates(36.4461, 28.2236), radius_m=5000, exclude_types=exclusions.types)
    assert [h.poi.id for h in hits] == ["a1"]

    # the processor drops them too when the index does not filter
    with patch.object(index.session, "get", return_value=FakeResponse(payload=HOTELS)):
        unfiltered = index.search(center=Coordinates(36.4461, 28.2236), radius_m=6000)
    assert {h.poi.id for h in unfiltered} == {"h1", "h2", "a1"}
    assert [c.poi.name for c in process_candidates(unfiltered, exclusions)] == ["Mandraki Harbor"]
