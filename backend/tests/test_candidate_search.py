from __future__ import annotations

from config import Configuration
from errors import GeoIndexError
from models import POI, Coordinates, ExclusionSet, SearchHit
from services.candidate_search import CandidateRetriever, SearchRequest
from services.geo_index import GeoIndex


def _hits(prefix: str, n: int) -> list[SearchHit]:
    return [
        SearchHit(POI(id=f"{prefix}{i}", name=f"{prefix} {i}", primary_type="beach", lat=36.4, lng=28.2), 100.0 * i)
        for i in range(n)
    ]


class SequenceIndex(GeoIndex):
    """Returns (or raises) one scripted item per search call and records the queries."""

    def __init__(self, script):
        super().__init__()
        self.script = list(script)
        self.queries = []

    def _search(self, **query):
        self.queries.append(query)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


REQ = SearchRequest(center=Coordinates(36.44, 28.22), radius_m=1000, types=["beach"])


def test_widens_until_enough_results() -> None:
    index = SequenceIndex([_hits("a", 2), _hits("b", 8)])
    result = CandidateRetriever(Configuration(), index).retrieve(REQ, ExclusionSet.build())
    assert result.attempts == 2
    assert result.success is True
    assert [h.poi.id for h in result.hits] == [f"b{i}" for i in range(8)]
    assert result.metadata() == {"searchRadius": 1800, "searchAttempts": 2, "searchSuccess": True}
    assert [q["radius_m"] for q in index.queries] == [1000, 1800]


def test_first_attempt_success() -> None:
    index = SequenceIndex([_hits("a", 5)])
    result = CandidateRetriever(Configuration(), index).retrieve(REQ, ExclusionSet.build())
    assert (result.attempts, result.success, result.radius_m) == (1, True, 1000)


def test_radius_expansion_is_capped() -> None:
    index = SequenceIndex([[], [], [], _hits("z", 1)])
    req = SearchRequest(center=Coordinates(36.44, 28.22), radius_m=6000, types=["beach"])
    CandidateRetriever(Configuration(), index).retrieve(req, ExclusionSet.build())
    assert [q["radius_m"] for q in index.queries] == [6000, 10000, 10000, 25000]


def test_large_initial_radius_is_never_shrunk() -> None:
    index = SequenceIndex([[], _hits("b", 5)])
    req = SearchRequest(center=Coordinates(36.44, 28.22), radius_m=15000, types=["beach"])
    CandidateRetriever(Configuration(), index).retrieve(req, ExclusionSet.build())
    assert [q["radius_m"] for q in index.queries] == [15000, 15000]


def test_exhausted_attempts_fall_back_to_island_query() -> None:
    index = SequenceIndex([_hits("a", 1), _hits("b", 2), _hits("c", 3), _hits("d", 2)])
    cfg = Configuration()
    result = CandidateRetriever(cfg, index).retrieve(REQ, ExclusionSet.build())
    assert result.attempts == 4
    assert result.success is True
    assert result.radius_m == 25000
    assert [h.poi.id for h in result.hits] == ["d0", "d1"]
    final = index.queries[-1]
    assert final["center"] == Coordinates(*cfg.default_center)


def test_island_query_with_no_results_is_terminal() -> None:
    index = SequenceIndex([[], [], [], []])
    result = CandidateRetriever(Configuration(), index).retrieve(REQ, ExclusionSet.build())
    assert result.hits == []
    assert result.success is False
    assert result.attempts == 4


def test_index_errors_count_as_empty_attempts() -> None:
    index = SequenceIndex([GeoIndexError("down"), RuntimeError("boom"), _hits("c", 6)])
    result = CandidateRetriever(Configuration(), index).retrieve(REQ, ExclusionSet.build())
    assert result.attempts == 3
    assert result.success is True
    assert len(index.queries) == 3


def test_island_query_failure_reports_error() -> None:
    index = SequenceIndex([[], [], [], GeoIndexError("still down")])
    result = CandidateRetriever(Configuration(), index).retrieve(REQ, ExclusionSet.build())
    assert result.success is False
    assert "still down" in (result.error or "")


def test_exclusions_and_blocklist_are_passed_to_index() -> None:
    index = SequenceIndex([_hits("a", 5)])
    exclusions = ExclusionSet.build(names=["Elli Beach"], ids=["poi-1"])
    CandidateRetriever(Configuration(), index).retrieve(REQ, exclusions)
    query = index.queries[0]
    assert "elli beach" in query["exclude_names"]
    assert "poi-1" in query["exclude_ids"]
    assert {"hotel", "hostel", "vacation_rental"} <= query["exclude_types"]
    assert query["limit"] == 15
