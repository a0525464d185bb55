"""Geometry helpers."""

from __future__ import annotations

import math
from typing import Mapping

from unlocode_coords.common.constants import EARTH_RADIUS_KM

SUBDIVISION_ADDRESS_KEYS = ("ISO3166-2-lvl6", "ISO3166-2-lvl4")


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points using the haversine formula."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def subdivision_code(address: Mapping[str, str] | None) -> str | None:
    """Subdivision part of the most specific ISO 3166-2 code in a Nominatim address.

    ``{"ISO3166-2-lvl4": "IT-25", "ISO3166-2-lvl6": "IT-MI"}`` gives ``"MI"``.
    """
    if not address:
        return None
    for key in SUBDIVISION_ADDRESS_KEYS:
        value = address.get(key)
        if value:
            _country, _sep, code = str(value).partition("-")
            return code or None
    return None
