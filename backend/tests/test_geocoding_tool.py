"""Reverse geocoding for cluster names."""

import pytest
import requests

import config
from modules.tool_usage.geocoding_tool import GeocodingTool
from schemas.planning import Coordinate

PANIER = Coordinate(43.2990, 5.3690)


class FakeResponse:
    def __init__(self, body, status_code=200):
        self.body = body
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(str(self.status_code))

    def json(self):
        return self.body


class FakeSession:
    def __init__(self, outcome):
        self.outcome = outcome
        self.params = None

    def get(self, url, params=None, timeout=None):
        self.params = params
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def live(monkeypatch):
    monkeypatch.setattr(config, "GOOGLE_MAPS_API_KEY", "test-key")


def component(name, *types):
    return {"long_name": name, "types": list(types)}


def test_stub_mode_makes_no_call():
    session = FakeSession(AssertionError("no HTTP in stub mode"))
    assert GeocodingTool(session=session).reverse_geocode_area(PANIER) is None
    assert session.params is None


def test_most_local_component_wins(live):
    body = {"status": "OK", "results": [{"address_components": [
        component("Marseille", "locality", "political"),
        component("Le Panier", "neighborhood", "political"),
    ]}]}
    session = FakeSession(FakeResponse(body))
    assert GeocodingTool(use_stub=False, session=session).reverse_geocode_area(PANIER) == "Le Panier"
    assert session.params["latlng"] == "43.299,5.369"
    assert session.params["key"] == "test-key"


@pytest.mark.parametrize("outcome", [
    requests.Timeout("slow"),
    FakeResponse({}, status_code=500),
    FakeResponse({"status": "REQUEST_DENIED", "error_message": "bad key"}),
])
def test_failures_return_none(live, caplog, outcome):
    tool = GeocodingTool(use_stub=False, session=FakeSession(outcome))
    assert tool.reverse_geocode_area(PANIER) is None
    assert "Geocoding" in caplog.text or "geocoding" in caplog.text
