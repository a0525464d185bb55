"""Wikidata lookup of items carrying a UN/LOCODE and coordinates."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from unlocode_coords.common.constants import WIKIDATA_SPARQL_URL
from unlocode_coords.common.errors import ContractError
from unlocode_coords.common.fs import read_json, write_json
from unlocode_coords.common.http import HttpClient
from unlocode_coords.common.models import Entry, GeocodingResult

# P1937 = UN/LOCODE, P625 = coordinate location.
SPARQL_TEMPLATE = """SELECT ?item ?itemLabel ?locode ?coord WHERE {{
  ?item wdt:P1937 ?locode ;
        wdt:P625 ?coord .
  FILTER(STRSTARTS(?locode, "{country}"))
  SERVICE wikibase:label {{ bd:serviceParam wikibase:language "en". }}
}}"""
POINT_RE = re.compile(r"^Point\(\s*([-+\d.eE]+)\s+([-+\d.eE]+)\s*\)$")


def build_sparql_query(country: str) -> str:
    return SPARQL_TEMPLATE.format(country=country.upper())


def parse_point(value: str) -> tuple[float, float] | None:
    match = POINT_RE.match(value.strip())
    if match is None:
        return None
    longitude, latitude = (float(part) for part in match.groups())
    return latitude, longitude


def parse_bindings(payload: Any) -> dict[str, GeocodingResult]:
    try:
        bindings = payload["results"]["bindings"]
    except (KeyError, TypeError) as exc:
        raise ContractError("Wikidata SPARQL payload without results.bindings") from exc

    results: dict[str, GeocodingResult] = {}
    for binding in bindings:
        locode = binding.get("locode", {}).get("value", "").replace(" ", "").upper()
        point = parse_point(binding.get("coord", {}).get("value", ""))
        if not locode or point is None or locode in results:
            continue
        item_url = binding.get("item", {}).get("value")
        label = binding.get("itemLabel", {}).get("value", locode)
        results[locode] = GeocodingResult(
            latitude=point[0],
            longitude=point[1],
            name=label,
            display_name=label,
            source_url=item_url.replace("http://", "https://", 1) if item_url else None,
        )
    return results


class WikidataIndex:
    """Per-country cached index of Wikidata coordinates keyed by location code."""

    def __init__(
        self,
        data_dir: Path,
        wikidata_config: dict | None = None,
        *,
        http_client: HttpClient | None = None,
        offline: bool = False,
    ) -> None:
        self.cache_dir = data_dir / "cache" / "wikidata"
        self.config = wikidata_config or {"enabled": True, "endpoint": WIKIDATA_SPARQL_URL}
        self.http_client = http_client
        self.offline = offline
        self._by_country: dict[str, dict[str, GeocodingResult]] = {}

    def _client(self) -> HttpClient:
        if self.http_client is None:
            self.http_client = HttpClient()
        return self.http_client

    def _load_payload(self, country: str) -> Any:
        path = self.cache_dir / f"{country.lower()}.json"
        if path.exists():
            try:
                return read_json(path)
            except ValueError as exc:
                raise ContractError(f"Unreadable wikidata cache file: {path}") from exc
        if self.offline:
            return None
        payload = self._client().get_json(
            self.config.get("endpoint", WIKIDATA_SPARQL_URL),
            source_type="wikidata",
            params={"query": build_sparql_query(country), "format": "json"},
            headers={"Accept": "application/sparql-results+json"},
        )
        write_json(path, payload)
        return payload

    def for_country(self, country: str) -> dict[str, GeocodingResult]:
        country = country.upper()
        if country not in self._by_country:
            if not self.config.get("enabled", True):
                self._by_country[country] = {}
            else:
                payload = self._load_payload(country)
                self._by_country[country] = parse_bindings(payload) if payload is not None else {}
        return self._by_country[country]

    def get(self, entry: Entry) -> GeocodingResult | None:
        return self.for_country(entry.country).get(entry.locode)
