"""Selection of the most trustworthy coordinate source for a registry entry."""

from __future__ import annotations

from typing import Iterable, Protocol

from unlocode_coords.common.constants import CLOSE_DISTANCE_KM, DEFAULT_MAX_DISTANCE_KM
from unlocode_coords.common.coordinates import convert_to_decimal
from unlocode_coords.common.geometry import distance_km
from unlocode_coords.common.models import (
    DecimalCoordinates,
    Entry,
    GeocodingResponse,
    GeocodingResult,
    Provenance,
    ReconciledResult,
)


class GeocodingLookup(Protocol):
    def get_response_by_city(self, entry: Entry) -> GeocodingResponse | None: ...

    def query_url(self, entry: Entry, scrape_type: str) -> str: ...


def distance_to(coordinates: DecimalCoordinates, result: GeocodingResult) -> float:
    return distance_km(coordinates.latitude, coordinates.longitude, result.latitude, result.longitude)


def first_within(
    coordinates: DecimalCoordinates,
    results: Iterable[GeocodingResult],
    max_km: float,
) -> GeocodingResult | None:
    for result in results:
        if distance_to(coordinates, result) < max_km:
            return result
    return None


class CoordinateSelector:
    """Picks Wikidata, registry or Nominatim coordinates for one entry.

    Registry coordinates win whenever a Nominatim result confirms them, because
    the registry is usually more precise than a place centroid. A ``byRegion``
    response may hide the right place in another subdivision, so a by-city
    lookup is consulted before giving up on the registry coordinates.
    """

    def __init__(
        self,
        lookup: GeocodingLookup,
        *,
        prefer_wikidata: Iterable[str] = (),
        prefer_unlocode: Iterable[str] = (),
        close_km: float = CLOSE_DISTANCE_KM,
    ) -> None:
        self.lookup = lookup
        self.prefer_wikidata = frozenset(prefer_wikidata)
        self.prefer_unlocode = frozenset(prefer_unlocode)
        self.close_km = close_km

    def select(
        self,
        entry: Entry,
        response: GeocodingResponse | None,
        wikidata_result: GeocodingResult | None,
        max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
    ) -> ReconciledResult | None:
        decimal = convert_to_decimal(entry.coordinates)

        if wikidata_result is not None and (entry.locode in self.prefer_wikidata or response is None):
            return ReconciledResult(
                locode=entry.locode,
                type=Provenance.WIKIDATA,
                coordinates=DecimalCoordinates(wikidata_result.latitude, wikidata_result.longitude),
                source=wikidata_result,
            )

        if response is None or entry.locode in self.prefer_unlocode:
            # Nominatim usually misses non-standard names such as "Mondello, Palermo".
            return self._unlocode_result(entry, decimal)

        if decimal is not None:
            first = response.first
            if distance_to(decimal, first) < max_distance_km:
                return self._unlocode_result(entry, decimal, first)

            close = self._find_close_result(entry, decimal, response, min(self.close_km, max_distance_km))
            if close is not None:
                return self._unlocode_result(entry, decimal, close)

        alternatives = list(response.results[1:])
        if wikidata_result is not None:
            alternatives.append(wikidata_result)
        first = response.first
        return ReconciledResult(
            locode=entry.locode,
            type=Provenance.NOMINATIM,
            coordinates=DecimalCoordinates(first.latitude, first.longitude),
            source=first,
            alternatives=tuple(alternatives) or None,
        )

    def _find_close_result(
        self,
        entry: Entry,
        decimal: DecimalCoordinates,
        response: GeocodingResponse,
        close_km: float,
    ) -> GeocodingResult | None:
        close = first_within(decimal, response.results[1:], close_km)
        if close is not None or not response.by_region:
            return close

        by_city = self.lookup.get_response_by_city(entry)
        if by_city is None:
            return None
        return first_within(decimal, by_city.results, close_km)

    @staticmethod
    def _unlocode_result(
        entry: Entry,
        decimal: DecimalCoordinates | None,
        source: GeocodingResult | None = None,
    ) -> ReconciledResult | None:
        if decimal is None:
            return None
        return ReconciledResult(locode=entry.locode, type=Provenance.UNLOCODE, coordinates=decimal, source=source)
