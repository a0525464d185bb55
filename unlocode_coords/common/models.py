"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from unlocode_coords.common.constants import SCRAPE_BY_REGION, SCRAPE_TYPES


class Provenance(str, Enum):
    WIKIDATA = "Wikidata"
    UNLOCODE = "UN/LOCODE"
    NOMINATIM = "Nominatim"


@dataclass(frozen=True)
class DecimalCoordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Entry:
    """A single UN/LOCODE registry row."""

    locode: str
    country: str
    city: str
    coordinates: str | None = None
    subdivision_code: str | None = None
    subdivision_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "locode": self.locode,
            "country": self.country,
            "city": self.city,
            "coordinates": self.coordinates,
            "subdivision_code": self.subdivision_code,
            "subdivision_name": self.subdivision_name,
        }


@dataclass(frozen=True)
class GeocodingResult:
    latitude: float
    longitude: float
    name: str
    display_name: str = ""
    subdivision_code: str | None = None
    source_url: str | None = None
    place_rank: int = 0
    address: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lat": self.latitude,
            "lon": self.longitude,
            "name": self.name,
            "display_name": self.display_name,
            "subdivision_code": self.subdivision_code,
            "source_url": self.source_url,
            "place_rank": self.place_rank,
        }


@dataclass(frozen=True)
class GeocodingResponse:
    scrape_type: str
    results: tuple[GeocodingResult, ...]

    def __post_init__(self) -> None:
        if self.scrape_type not in SCRAPE_TYPES:
            raise ValueError(f"Unknown scrape type: {self.scrape_type}")
        if not self.results:
            raise ValueError("A geocoding response needs at least one result")

    @property
    def first(self) -> GeocodingResult:
        return self.results[0]

    @property
    def by_region(self) -> bool:
        return self.scrape_type == SCRAPE_BY_REGION


@dataclass(frozen=True)
class ReconciledResult:
    locode: str
    type: Provenance
    coordinates: DecimalCoordinates | None
    source: GeocodingResult | None = None
    alternatives: tuple[GeocodingResult, ...] | None = None

    def __post_init__(self) -> None:
        if self.alternatives is not None and not self.alternatives:
            raise ValueError("alternatives must be None or non-empty")

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "locode": self.locode,
            "type": self.type.value,
            "lat": self.coordinates.latitude if self.coordinates else None,
            "lon": self.coordinates.longitude if self.coordinates else None,
            "source": self.source.to_dict() if self.source else None,
        }
        if self.alternatives is not None:
            payload["alternatives"] = [alternative.to_dict() for alternative in self.alternatives]
        return payload
