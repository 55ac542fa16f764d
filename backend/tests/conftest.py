"""
Shared fixtures: a handful of Marseille places at known offsets.

All places share longitude 5.3740 and differ only in latitude, so distances
are easy to reason about: 0.001° of latitude ≈ 0.111 km ≈ 1.6 walking
minutes.  The clustering threshold (15 min) is crossed at ≈ 0.0096°.
"""

from datetime import date

import pytest

import config
from schemas.planning import CityRef, CityPlan, Coordinate, Day, Place, TripPlan

LNG = 5.3740


def make_place(place_id, lat, duration=60, category="activity", lng=LNG, area="", rating=None, price_level=None):
    return Place(
        place_id=place_id,
        name=place_id.replace("_", " ").title(),
        category=category,
        location=Coordinate(lat, lng),
        duration_minutes=duration,
        rating=rating,
        price_level=price_level,
        area=area,
    )


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    """JSONL logs into a temp dir; no autosave; stubbed geocoding."""
    monkeypatch.setattr(config, "LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setattr(config, "SYNC_AUTOSAVE", False)
    monkeypatch.setattr(config, "USE_STUB_GEOCODING", True)


@pytest.fixture
def marseille():
    return CityRef(city_id="marseille", name="Marseille", country="FR", coordinates=Coordinate(43.2965, 5.3698))


@pytest.fixture
def lyon():
    return CityRef(city_id="lyon", name="Lyon", country="FR", coordinates=Coordinate(45.7640, 4.8357))


@pytest.fixture
def places():
    return {
        "vieux_port": make_place("vieux_port", 43.2950, 60, area="Vieux Port"),
        "panier":     make_place("panier", 43.2990, 45, area="Le Panier"),
        "garde":      make_place("garde", 43.2840, 90, area="Notre-Dame"),
        "calanques":  make_place("calanques", 43.2100, 180, lng=5.4500, area="Calanques"),
        "bistro":     make_place("bistro", 43.2960, 75, category="restaurant", area="Vieux Port"),
    }


@pytest.fixture
def empty_plan(marseille):
    days = (
        Day.empty(0, date(2026, 5, 1), marseille),
        Day.empty(1, date(2026, 5, 2), marseille),
    )
    return TripPlan(plan_id="plan-test", days=days, city_plans={"marseille": CityPlan(city=marseille)})
