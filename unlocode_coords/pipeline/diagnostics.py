"""Structured validation findings and their rendering to operator text."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from unlocode_coords.common.constants import REGISTRY_URL_TEMPLATE
from unlocode_coords.common.errors import ContractError
from unlocode_coords.common.models import DecimalCoordinates


class DiagnosticKind(str, Enum):
    AMBIGUOUS_CITY = "AMBIGUOUS_CITY"
    INVALID_SUBDIVISION = "INVALID_SUBDIVISION"
    CITY_IN_OTHER_SUBDIVISION = "CITY_IN_OTHER_SUBDIVISION"
    NO_CITY_IN_SUBDIVISION = "NO_CITY_IN_SUBDIVISION"
    COORDINATES_IN_OTHER_SUBDIVISION = "COORDINATES_IN_OTHER_SUBDIVISION"
    INCORRECT_LOCATION = "INCORRECT_LOCATION"
    REGION_QUERY_MISMATCH = "REGION_QUERY_MISMATCH"
    CONTRADICTION = "CONTRADICTION"
    UNEXPECTED_STATUS = "UNEXPECTED_STATUS"


FATAL_KINDS = frozenset(
    {
        DiagnosticKind.REGION_QUERY_MISMATCH,
        DiagnosticKind.CONTRADICTION,
        DiagnosticKind.UNEXPECTED_STATUS,
    }
)


@dataclass(frozen=True)
class Candidate:
    """A geocoding result as seen from the declared coordinates."""

    name: str
    subdivision_code: str | None
    latitude: float
    longitude: float
    unlocode_coordinates: str
    distance_km: float | None = None
    source_url: str | None = None
    small_village: bool = False
    far: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "subdivision_code": self.subdivision_code,
            "lat": self.latitude,
            "lon": self.longitude,
            "coordinates": self.unlocode_coordinates,
            "distance_km": None if self.distance_km is None else round(self.distance_km),
            "source_url": self.source_url,
            "small_village": self.small_village,
            "far": self.far,
        }


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    locode: str
    city: str
    country: str
    scrape_type: str
    result_count: int
    declared_subdivision: str | None = None
    declared_coordinates: str | None = None
    declared_decimal: DecimalCoordinates | None = None
    suggested_subdivisions: tuple[str, ...] = ()
    matched: Candidate | None = None
    candidates: tuple[Candidate, ...] = ()
    alternatives: tuple[Candidate, ...] = ()
    source_url: str | None = None
    query_url: str | None = None

    @property
    def fatal(self) -> bool:
        return self.kind in FATAL_KINDS

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "fatal": self.fatal,
            "locode": self.locode,
            "city": self.city,
            "country": self.country,
            "scrape_type": self.scrape_type,
            "result_count": self.result_count,
            "declared_subdivision": self.declared_subdivision,
            "declared_coordinates": self.declared_coordinates,
            "suggested_subdivisions": list(self.suggested_subdivisions),
            "matched": self.matched.to_dict() if self.matched else None,
            "candidates": [candidate.to_dict() for candidate in self.candidates],
            "alternatives": [candidate.to_dict() for candidate in self.alternatives],
            "source_url": self.source_url,
            "query_url": self.query_url,
        }


class InvariantViolation(ContractError):
    """Raised when a validation outcome contradicts how the query was built."""

    error_code = "INVARIANT_VIOLATION"

    def __init__(self, diagnostic: Diagnostic, url_template: str = REGISTRY_URL_TEMPLATE) -> None:
        self.diagnostic = diagnostic
        super().__init__(render_diagnostic(diagnostic, url_template=url_template))


def _or(values) -> str:
    return " or ".join(values)


def _where(candidate: Candidate, city: str, *, with_region: bool = False) -> str:
    if candidate.name == city:
        return ""
    if with_region:
        return f" where {candidate.name} (in {candidate.subdivision_code}) is located"
    return f" where {candidate.name} is located"


def _render_option(candidate: Candidate, city: str) -> str:
    before = "maybe " if candidate.small_village else ""
    distance = round(candidate.distance_km or 0)
    warn = " (WARN: small village)" if candidate.small_village else ""
    return (
        f"{before}{candidate.unlocode_coordinates} ({candidate.latitude}, {candidate.longitude}) = "
        f"{distance} km{'(!)' if candidate.far else ''} away{_where(candidate, city)}{warn}; "
        f"source: {candidate.source_url}"
    )


def _render_body(d: Diagnostic) -> str:
    kind = d.kind
    matched = d.matched

    if kind is DiagnosticKind.AMBIGUOUS_CITY:
        message = (
            f"There are {d.result_count} different results for {d.city} in {d.country}. "
            f"Let's set the region to {_or(d.suggested_subdivisions)} to avoid the confusion."
        )
        if d.source_url:
            message += f" Source: {d.source_url}"
        return message

    if kind in (DiagnosticKind.INVALID_SUBDIVISION, DiagnosticKind.CITY_IN_OTHER_SUBDIVISION):
        if kind is DiagnosticKind.INVALID_SUBDIVISION:
            message = (
                f"Invalid subdivision code {d.declared_subdivision}! "
                f"Please change the region to {matched.subdivision_code}."
            )
        else:
            message = (
                f"No {d.city} found in {d.declared_subdivision}! {matched.name} ({matched.subdivision_code}) "
                f"does exist at the provided coordinates, so the region should probably be changed to "
                f"{matched.subdivision_code}."
            )
        if d.alternatives:
            others = _or(f"{alt.name} in {alt.subdivision_code}" for alt in d.alternatives)
            message += f" It could also be that {others} is meant."
        return message

    if kind is DiagnosticKind.NO_CITY_IN_SUBDIVISION:
        return (
            f"No {d.city} found in {d.declared_subdivision}! The subdivision code and coordinates should "
            f"probably be updated to {d.city} in {_or(d.suggested_subdivisions)}"
        )

    if kind is DiagnosticKind.COORDINATES_IN_OTHER_SUBDIVISION:
        message = (
            f"This entry has the subdivision code {d.declared_subdivision}, but the coordinates point to "
            f"{matched.name} in {matched.subdivision_code}! Either change the region to "
            f"{matched.subdivision_code} or change the coordinates to "
        )
        if len(d.candidates) == 1:
            only = d.candidates[0]
            message += f"{only.unlocode_coordinates} ({only.source_url})"
            message += _where(only, d.city, with_region=True)
            if only.small_village:
                message += " (WARN: small village)"
            return message + "."
        return message + f"any of the {d.result_count} locations in {d.declared_subdivision}."

    if kind is DiagnosticKind.INCORRECT_LOCATION:
        declared = d.declared_decimal
        options = _or(_render_option(candidate, d.city) for candidate in d.candidates)
        return (
            f"Coordinates {d.declared_coordinates} ({declared.latitude}, {declared.longitude}) "
            f"should be changed to {options}"
        )

    if kind is DiagnosticKind.REGION_QUERY_MISMATCH:
        return (
            f"Query restricted to {d.declared_subdivision} returned {matched.name} in "
            f"{matched.subdivision_code} as best match. {d.query_url}"
        )

    if kind is DiagnosticKind.CONTRADICTION:
        return (
            f"Nothing close found in any region, yet the best {d.scrape_type} match lies outside "
            f"{d.declared_subdivision}. {d.query_url}"
        )

    return f"Unexpected status encountered for a {d.scrape_type} response. {d.query_url}"


def render_diagnostic(diagnostic: Diagnostic, *, url_template: str = REGISTRY_URL_TEMPLATE) -> str:
    prefix = url_template.format(locode=diagnostic.locode)
    return f"{prefix}: ({diagnostic.city}): {_render_body(diagnostic)}"
