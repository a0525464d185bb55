"""Conversion between UN/LOCODE coordinate strings and decimal degrees.

UN/LOCODE writes coordinates as ``DDMM[N|S] DDDMM[E|W]``, e.g. ``4230N 00131E``.
"""

from __future__ import annotations

import re

from unlocode_coords.common.models import DecimalCoordinates

UNLOCODE_COORDINATES_RE = re.compile(r"^(\d{2})(\d{2})([NS])\s+(\d{3})(\d{2})([EW])$")


def convert_to_decimal(raw: str | None) -> DecimalCoordinates | None:
    if not raw:
        return None
    match = UNLOCODE_COORDINATES_RE.match(raw.strip())
    if match is None:
        return None
    lat_deg, lat_min, lat_hemi, lon_deg, lon_min, lon_hemi = match.groups()
    if int(lat_min) >= 60 or int(lon_min) >= 60:
        return None

    latitude = int(lat_deg) + int(lat_min) / 60
    longitude = int(lon_deg) + int(lon_min) / 60
    if latitude > 90 or longitude > 180:
        return None
    if lat_hemi == "S":
        latitude = -latitude
    if lon_hemi == "W":
        longitude = -longitude
    return DecimalCoordinates(latitude=round(latitude, 5), longitude=round(longitude, 5))


def _degrees_minutes(value: float) -> tuple[int, int]:
    degrees = int(abs(value))
    minutes = round((abs(value) - degrees) * 60)
    if minutes == 60:
        degrees += 1
        minutes = 0
    return degrees, minutes


def convert_to_unlocode(latitude: float, longitude: float) -> str:
    lat_deg, lat_min = _degrees_minutes(latitude)
    lon_deg, lon_min = _degrees_minutes(longitude)
    lat_hemi = "N" if latitude >= 0 else "S"
    lon_hemi = "E" if longitude >= 0 else "W"
    return f"{lat_deg:02d}{lat_min:02d}{lat_hemi} {lon_deg:03d}{lon_min:02d}{lon_hemi}"
