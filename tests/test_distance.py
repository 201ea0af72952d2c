import pytest

from vibesearch.core.errors import ProviderError, ProviderTimeout
from vibesearch.core.models import (
    UNKNOWN_DISTANCE,
    Candidate,
    Coordinates,
    DistanceDestination,
    DistanceResult,
    SourceKind,
)
from vibesearch.search import distance
from vibesearch.search.distance import DistanceEnricher, GeoDistanceResolver
from vibesearch.vendors import distance_matrix

ORIGIN = Coordinates(37.7749, -122.4194)


def _ok(meters, seconds):
    return {
        "status": "OK",
        "distance": {"value": meters, "text": "12.0 mi"},
        "duration": {"value": seconds, "text": "20 mins"},
    }


class RecordingMatrix:
    def __init__(self, elements_for=None, error=None):
        self.calls = []
        self.elements_for = elements_for or (lambda dests: [_ok(1609.344 * 2, 600) for _ in dests])
        self.error = error

    def __call__(self, origin, destinations, api_key, timeout=10):
        self.calls.append((origin, list(destinations), timeout))
        if self.error is not None:
            raise self.error
        return self.elements_for(destinations)


@pytest.fixture
def matrix(monkeypatch):
    recorder = RecordingMatrix()
    monkeypatch.setattr(distance_matrix, "distance_elements", recorder)
    return recorder


def _dest(identity, lat=37.8, lng=-122.27):
    return DistanceDestination(identity=identity, coordinates=Coordinates(lat, lng))


def test_resolve_converts_units(matrix):
    matrix.elements_for = lambda dests: [_ok(19312, 1230)]

    [result] = GeoDistanceResolver("key").resolve(ORIGIN, [_dest("b1")])

    assert result.ok
    assert result.distance_miles == 12.0
    assert result.eta_minutes == 20
    assert result.distance_text == "12.0 mi"


def test_resolve_reports_failed_elements(matrix, caplog):
    matrix.elements_for = lambda dests: [{"status": "ZERO_RESULTS"}, _ok(1609, 60)]

    with caplog.at_level("WARNING"):
        results = GeoDistanceResolver("key").resolve(ORIGIN, [_dest("b1"), _dest("b2")])

    assert [r.ok for r in results] == [False, True]
    assert results[0].status == "ZERO_RESULTS"
    assert "b1" in " ".join(caplog.messages)


def test_resolve_chunks_at_provider_limit(matrix):
    destinations = [_dest(f"b{i}") for i in range(30)]

    results = GeoDistanceResolver("key").resolve(ORIGIN, destinations, timeout=4)

    assert len(results) == 30
    assert [len(call[1]) for call in matrix.calls] == [25, 5]
    assert all(call[2] == 4 for call in matrix.calls)
    assert [r.identity for r in results] == [d.identity for d in destinations]


def test_enricher_attaches_distances_in_one_call(matrix):
    candidates = [
        Candidate("b1", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.8, -122.27)),
        Candidate("p1", SourceKind.EXTERNAL_PLACE, coordinates=Coordinates(37.79, -122.4)),
    ]

    DistanceEnricher(GeoDistanceResolver("key")).enrich(candidates, ORIGIN)

    assert len(matrix.calls) == 1
    assert [c.distance_miles for c in candidates] == [2.0, 2.0]
    assert [c.eta_minutes for c in candidates] == [10, 10]
    assert not any(c.distance_fallback for c in candidates)


def test_enricher_marks_candidates_without_coordinates(matrix):
    located = Candidate("b1", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.8, -122.27))
    ai = Candidate("ai-1", SourceKind.AI_GENERATED)

    DistanceEnricher(GeoDistanceResolver("key")).enrich([located, ai], ORIGIN)

    assert ai.distance_miles == UNKNOWN_DISTANCE
    assert ai.eta_minutes == UNKNOWN_DISTANCE
    assert ai.distance_fallback is True
    assert len(matrix.calls[0][1]) == 1


def test_enricher_survives_provider_failure(matrix):
    matrix.error = distance_matrix.DistanceMatrixError("REQUEST_DENIED")
    candidates = [
        Candidate("b1", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.8, -122.27)),
        Candidate("b2", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.7, -122.3)),
    ]

    result = DistanceEnricher(GeoDistanceResolver("key")).enrich(candidates, ORIGIN)

    assert result is candidates
    assert all(c.distance_miles == UNKNOWN_DISTANCE for c in candidates)
    assert all(c.distance_fallback for c in candidates)


def test_enricher_skips_resolver_when_nothing_located():
    class ExplodingResolver:
        def resolve(self, *args, **kwargs):
            raise AssertionError("should not be called")

    candidates = [Candidate("ai-1", SourceKind.AI_GENERATED)]

    DistanceEnricher(ExplodingResolver()).enrich(candidates, ORIGIN)

    assert candidates[0].distance_miles == UNKNOWN_DISTANCE


def test_enricher_marks_failed_elements_unknown():
    class PartialResolver:
        def resolve(self, origin, destinations, timeout=None):
            return [
                DistanceResult(identity="b1", distance_miles=3.1, eta_minutes=9, status="OK"),
                DistanceResult(identity="b2", status="NOT_FOUND"),
            ]

    candidates = [
        Candidate("b1", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.8, -122.27)),
        Candidate("b2", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.7, -122.3)),
    ]

    DistanceEnricher(PartialResolver()).enrich(candidates, ORIGIN)

    assert candidates[0].distance_miles == 3.1
    assert candidates[1].distance_miles == UNKNOWN_DISTANCE
    assert candidates[1].distance_fallback is True


def test_mark_unknown():
    candidate = Candidate("x", SourceKind.EXTERNAL_PLACE)
    distance.mark_unknown(candidate)
    assert candidate.has_known_distance is False


@pytest.mark.parametrize(
    "element",
    [
        {"status": "OK", "distance": {"value": "12 km"}, "duration": {"value": 600}},
        {"status": "OK", "distance": "12 km", "duration": {"value": 600}},
        {"status": "OK", "distance": {"value": 1609}},
        {"status": "OK", "distance": {"value": True}, "duration": {"value": 600}},
    ],
)
def test_resolve_flags_malformed_elements(matrix, element):
    matrix.elements_for = lambda dests: [element]

    [result] = GeoDistanceResolver("key").resolve(ORIGIN, [_dest("b1")])

    assert result.status == "MALFORMED"
    assert result.ok is False


def test_enricher_marks_malformed_elements_unknown(matrix):
    matrix.elements_for = lambda dests: [
        {"status": "OK", "distance": {"value": "12 km"}, "duration": {"value": 600}},
        _ok(1609.344 * 3, 900),
    ]
    candidates = [
        Candidate("b1", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.8, -122.27)),
        Candidate("b2", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.7, -122.3)),
    ]

    DistanceEnricher(GeoDistanceResolver("key")).enrich(candidates, ORIGIN)

    assert candidates[0].distance_miles == UNKNOWN_DISTANCE
    assert candidates[0].distance_fallback is True
    assert candidates[1].distance_miles == 3.0


def test_enricher_reports_provider_failure(matrix):
    matrix.error = distance_matrix.DistanceMatrixError("REQUEST_DENIED")
    failures = []
    candidates = [Candidate("b1", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.8, -122.27))]

    DistanceEnricher(GeoDistanceResolver("key")).enrich(candidates, ORIGIN, on_failure=failures.append)

    assert len(failures) == 1
    assert isinstance(failures[0], ProviderError)
    assert candidates[0].distance_miles == UNKNOWN_DISTANCE


def test_enricher_with_no_time_left_skips_provider(matrix):
    failures = []
    candidates = [Candidate("b1", SourceKind.EMBEDDING_MATCH, coordinates=Coordinates(37.8, -122.27))]

    DistanceEnricher(GeoDistanceResolver("key")).enrich(candidates, ORIGIN, timeout=0.0, on_failure=failures.append)

    assert matrix.calls == []
    assert isinstance(failures[0], ProviderTimeout)
    assert candidates[0].distance_fallback is True
