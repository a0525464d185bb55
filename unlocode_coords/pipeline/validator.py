"""Validation of registry coordinates against Nominatim.

A mismatch is not necessarily a coordinate problem: the subdivision may be the
wrong part. The validator narrows this down with wider searches and a by-city
re-query, and reports the most specific finding it can.
"""

from __future__ import annotations

import math
from typing import Iterable, NoReturn

from unlocode_coords.common.constants import (
    CLOSE_DISTANCE_KM,
    FAR_DISTANCE_KM,
    REGISTRY_URL_TEMPLATE,
    SCRAPE_BY_CITY,
    SMALL_VILLAGE_PLACE_RANK,
    VALIDATED_DISTANCE_KM,
)
from unlocode_coords.common.coordinates import convert_to_decimal, convert_to_unlocode
from unlocode_coords.common.models import DecimalCoordinates, Entry, GeocodingResponse, GeocodingResult
from unlocode_coords.pipeline.diagnostics import Candidate, Diagnostic, DiagnosticKind, InvariantViolation
from unlocode_coords.pipeline.selector import GeocodingLookup, distance_to


def _unique_codes(results: Iterable[GeocodingResult]) -> tuple[str, ...]:
    seen: list[str] = []
    for result in results:
        if result.subdivision_code and result.subdivision_code not in seen:
            seen.append(result.subdivision_code)
    return tuple(seen)


class CoordinateValidator:
    def __init__(
        self,
        lookup: GeocodingLookup,
        *,
        validated_km: float = VALIDATED_DISTANCE_KM,
        close_km: float = CLOSE_DISTANCE_KM,
        far_km: float = FAR_DISTANCE_KM,
        small_village_rank: int = SMALL_VILLAGE_PLACE_RANK,
        url_template: str = REGISTRY_URL_TEMPLATE,
    ) -> None:
        self.lookup = lookup
        self.validated_km = validated_km
        self.close_km = close_km
        self.far_km = far_km
        self.small_village_rank = small_village_rank
        self.url_template = url_template

    @classmethod
    def from_settings(cls, lookup: GeocodingLookup, settings: dict) -> "CoordinateValidator":
        thresholds = settings["thresholds"]
        return cls(
            lookup,
            validated_km=float(thresholds["validated_km"]),
            close_km=float(thresholds["close_km"]),
            far_km=float(thresholds["far_km"]),
            small_village_rank=int(thresholds["small_village_rank"]),
            url_template=settings["registry"]["url_template"],
        )

    def validate(self, entry: Entry, response: GeocodingResponse | None) -> Diagnostic | None:
        """Return None when the coordinates check out, else the most specific finding.

        Raises InvariantViolation when the response contradicts the query it came from.
        """
        declared = convert_to_decimal(entry.coordinates)
        if declared is None or response is None:
            return None

        results = response.results
        first = response.first
        if distance_to(declared, first) < self.validated_km:
            return None

        if response.by_region and first.subdivision_code != entry.subdivision_code:
            self._fail(DiagnosticKind.REGION_QUERY_MISMATCH, entry, declared, response, matched=first)

        if not entry.subdivision_code:
            close = self._close_results(declared, results)
            suggested = _unique_codes(close)
            # Without an ISO code on any close result there is no region to suggest.
            if suggested:
                return self._diagnostic(
                    DiagnosticKind.AMBIGUOUS_CITY,
                    entry,
                    declared,
                    response,
                    suggested_subdivisions=suggested,
                    source_url=close[0].source_url if len(close) == 1 else None,
                )
            return self._incorrect_location(entry, declared, response)

        if response.scrape_type == SCRAPE_BY_CITY and first.subdivision_code != entry.subdivision_code:
            return self._wrong_subdivision(entry, declared, response)

        # The best match is elsewhere but another one is close: a ranking quirk, not an error.
        if any(distance_to(declared, result) < self.validated_km for result in results):
            return None

        all_in_declared = all(result.subdivision_code == entry.subdivision_code for result in results)
        if response.by_region and all_in_declared:
            return self._check_other_subdivisions(entry, declared, response)

        self._fail(DiagnosticKind.UNEXPECTED_STATUS, entry, declared, response)

    def _close_results(self, declared: DecimalCoordinates, results: Iterable[GeocodingResult]) -> list[GeocodingResult]:
        return [result for result in results if distance_to(declared, result) < self.close_km]

    def _wrong_subdivision(
        self,
        entry: Entry,
        declared: DecimalCoordinates,
        response: GeocodingResponse,
    ) -> Diagnostic:
        close_ids = {
            id(result) for result in self._close_results(declared, response.results) if result.subdivision_code
        }
        if not close_ids:
            suggested = _unique_codes(response.results)
            if not suggested:
                return self._incorrect_location(entry, declared, response)
            return self._diagnostic(
                DiagnosticKind.NO_CITY_IN_SUBDIVISION,
                entry,
                declared,
                response,
                suggested_subdivisions=suggested,
            )

        close = [result for result in response.results if id(result) in close_ids]
        others = [
            result for result in response.results if id(result) not in close_ids and result.subdivision_code
        ]
        # A subdivision code without a name is not a real subdivision of the country.
        kind = DiagnosticKind.CITY_IN_OTHER_SUBDIVISION if entry.subdivision_name else DiagnosticKind.INVALID_SUBDIVISION
        return self._diagnostic(
            kind,
            entry,
            declared,
            response,
            suggested_subdivisions=_unique_codes(close[:1]),
            matched=self._candidate(declared, close[0]),
            alternatives=tuple(self._candidate(declared, result) for result in others),
        )

    def _check_other_subdivisions(
        self,
        entry: Entry,
        declared: DecimalCoordinates,
        response: GeocodingResponse,
    ) -> Diagnostic:
        by_city = self.lookup.get_response_by_city(entry)

        closest: GeocodingResult | None = None
        closest_distance = math.inf
        for result in by_city.results if by_city is not None else ():
            distance = distance_to(declared, result)
            if distance < closest_distance:
                closest = result
                closest_distance = distance

        if closest is not None and closest_distance < self.close_km:
            only = response.results if len(response.results) == 1 else ()
            return self._diagnostic(
                DiagnosticKind.COORDINATES_IN_OTHER_SUBDIVISION,
                entry,
                declared,
                response,
                suggested_subdivisions=_unique_codes([closest]),
                matched=self._candidate(declared, closest),
                candidates=tuple(self._candidate(declared, result) for result in only),
            )

        if response.first.subdivision_code != entry.subdivision_code:
            self._fail(DiagnosticKind.CONTRADICTION, entry, declared, response, matched=response.first)
        return self._incorrect_location(entry, declared, response)

    def _incorrect_location(
        self,
        entry: Entry,
        declared: DecimalCoordinates,
        response: GeocodingResponse,
    ) -> Diagnostic:
        return self._diagnostic(
            DiagnosticKind.INCORRECT_LOCATION,
            entry,
            declared,
            response,
            candidates=tuple(self._candidate(declared, result) for result in response.results),
        )

    def _candidate(self, declared: DecimalCoordinates, result: GeocodingResult) -> Candidate:
        distance = distance_to(declared, result)
        return Candidate(
            name=result.name,
            subdivision_code=result.subdivision_code,
            latitude=result.latitude,
            longitude=result.longitude,
            unlocode_coordinates=convert_to_unlocode(result.latitude, result.longitude),
            distance_km=distance,
            source_url=result.source_url,
            small_village=result.place_rank >= self.small_village_rank,
            far=round(distance) > self.far_km,
        )

    def _diagnostic(
        self,
        kind: DiagnosticKind,
        entry: Entry,
        declared: DecimalCoordinates,
        response: GeocodingResponse,
        **fields,
    ) -> Diagnostic:
        return Diagnostic(
            kind=kind,
            locode=entry.locode,
            city=entry.city,
            country=entry.country,
            scrape_type=response.scrape_type,
            result_count=len(response.results),
            declared_subdivision=entry.subdivision_code,
            declared_coordinates=entry.coordinates,
            declared_decimal=declared,
            **fields,
        )

    def _fail(
        self,
        kind: DiagnosticKind,
        entry: Entry,
        declared: DecimalCoordinates,
        response: GeocodingResponse,
        matched: GeocodingResult | None = None,
    ) -> NoReturn:
        diagnostic = self._diagnostic(
            kind,
            entry,
            declared,
            response,
            matched=self._candidate(declared, matched) if matched is not None else None,
            query_url=self.lookup.query_url(entry, response.scrape_type),
        )
        raise InvariantViolation(diagnostic, url_template=self.url_template)
