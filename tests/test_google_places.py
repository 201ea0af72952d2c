import pytest
import requests

from vibesearch.core.errors import ProviderTimeout
from vibesearch.core.models import Coordinates
from vibesearch.vendors import google_places


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError("http error")

    def json(self):
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []
        self.response = None
        self.error = None

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_places, "_SESSION", session)
    return session


def test_text_search_success(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "results": []})
    payload = google_places.text_search("pizza", "key")
    assert payload["status"] == "OK"
    url, params, timeout = patch_session.calls[0]
    assert "textsearch" in url
    assert params["query"] == "pizza"
    assert "location" not in params
    assert timeout == 10


def test_text_search_sends_location_and_radius(patch_session):
    patch_session.response = DummyResponse(payload={"status": "ZERO_RESULTS", "results": []})
    google_places.text_search(
        "coffee", "key", location=Coordinates(37.77, -122.42), radius_meters=16093, timeout=4
    )
    _, params, timeout = patch_session.calls[0]
    assert params["location"] == "37.77,-122.42"
    assert params["radius"] == 16093
    assert timeout == 4


def test_text_search_error_status(patch_session):
    patch_session.response = DummyResponse(payload={"status": "INVALID_REQUEST", "error_message": "bad"})
    with pytest.raises(google_places.GooglePlacesError) as excinfo:
        google_places.text_search("pizza", "key")
    assert excinfo.value.provider == "google_places"


def test_text_search_http_error(patch_session):
    patch_session.response = DummyResponse(status_code=500)
    with pytest.raises(google_places.GooglePlacesError):
        google_places.text_search("pizza", "key")


def test_text_search_timeout(patch_session):
    patch_session.error = requests.Timeout("slow")
    with pytest.raises(ProviderTimeout):
        google_places.text_search("pizza", "key")


def test_photo_url():
    url = google_places.photo_url("ref123", "key", max_width=200)
    assert "photoreference=ref123" in url
    assert "maxwidth=200" in url
