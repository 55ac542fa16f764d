"""
modules/tool_usage/geocoding_tool.py
--------------------------------------
Reverse geocoding for cluster names ("Le Panier", "Vieux Port").

Endpoint:
    GET https://maps.googleapis.com/maps/api/geocode/json
        ?latlng={lat},{lng}&result_type=neighborhood|sublocality&key={key}

Stub mode (config.USE_STUB_GEOCODING, the default) makes no HTTP call and
returns None, so callers keep the provisional name they already have.
"""

from __future__ import annotations
import logging
from typing import Optional

import requests

import config
from schemas.planning import Coordinate

logger = logging.getLogger(__name__)

# Address-component types tried in order, most local first.
_AREA_TYPES: tuple[str, ...] = ("neighborhood", "sublocality_level_1", "sublocality", "locality")


def _area_from_response(data: dict) -> Optional[str]:
    for wanted in _AREA_TYPES:
        for result in data.get("results", []):
            for component in result.get("address_components", []):
                if wanted in component.get("types", []):
                    return component.get("long_name") or None
    return None


class GeocodingTool:
    """Looks up the neighbourhood name for a coordinate."""

    def __init__(self, use_stub: Optional[bool] = None, session: Optional[requests.Session] = None) -> None:
        self._use_stub = config.USE_STUB_GEOCODING if use_stub is None else use_stub
        self._session = session or requests.Session()

    def reverse_geocode_area(self, location: Coordinate) -> Optional[str]:
        """
        Return the most local area name for ``location``, or None.

        Network and API errors are logged and reported as None: a missing
        name only means the provisional cluster name stays.
        """
        if self._use_stub or not config.GOOGLE_MAPS_API_KEY:
            return None

        params = {
            "latlng": f"{location.lat},{location.lng}",
            "result_type": "|".join(_AREA_TYPES),
            "key": config.GOOGLE_MAPS_API_KEY,
        }
        try:
            res = self._session.get(config.GEOCODING_URL, params=params, timeout=config.GEOCODING_TIMEOUT)
            res.raise_for_status()
            data = res.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Reverse geocoding failed for %s: %s", location, exc)
            return None

        if data.get("status") not in ("OK", "ZERO_RESULTS"):
            logger.warning("Geocoding API status %s: %s", data.get("status"), data.get("error_message", ""))
            return None
        return _area_from_response(data)
