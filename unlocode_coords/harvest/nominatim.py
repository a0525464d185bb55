"""Nominatim search with a read-through on-disk response cache."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

from unlocode_coords.common.constants import (
    NOMINATIM_SEARCH_URL,
    OSM_BROWSE_URL,
    SCRAPE_BY_CITY,
    SCRAPE_BY_REGION,
)
from unlocode_coords.common.errors import ContractError
from unlocode_coords.common.fs import read_json, write_json
from unlocode_coords.common.geometry import subdivision_code
from unlocode_coords.common.http import HttpClient
from unlocode_coords.common.logging import log_event
from unlocode_coords.common.models import Entry, GeocodingResponse, GeocodingResult

DEFAULT_NOMINATIM_CONFIG = {
    "endpoint": NOMINATIM_SEARCH_URL,
    "limit": 20,
    "accept_language": "en",
}


def build_search_params(entry: Entry, scrape_type: str, nominatim_config: dict) -> dict[str, Any]:
    params: dict[str, Any] = {
        "format": "jsonv2",
        "accept-language": nominatim_config.get("accept_language", "en"),
        "addressdetails": 1,
        "limit": int(nominatim_config.get("limit", 20)),
        "city": entry.city,
        "country": entry.country,
    }
    if scrape_type == SCRAPE_BY_REGION:
        params["state"] = f"{entry.country}-{entry.subdivision_code}"
    return params


def build_query_url(entry: Entry, scrape_type: str, nominatim_config: dict | None = None) -> str:
    cfg = nominatim_config or DEFAULT_NOMINATIM_CONFIG
    params = build_search_params(entry, scrape_type, cfg)
    return f"{cfg.get('endpoint', NOMINATIM_SEARCH_URL)}?{urlencode(params)}"


def _source_url(item: dict) -> str | None:
    osm_type = item.get("osm_type")
    osm_id = item.get("osm_id")
    if not osm_type or osm_id is None:
        return None
    return f"{OSM_BROWSE_URL}/{osm_type}/{osm_id}"


def parse_result(item: Any) -> GeocodingResult:
    if not isinstance(item, dict):
        raise ContractError(f"Malformed Nominatim result: {item!r}")
    try:
        latitude = float(item["lat"])
        longitude = float(item["lon"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ContractError(f"Nominatim result without usable lat/lon: {item!r}") from exc

    address = item.get("address") or {}
    display_name = item.get("display_name") or ""
    name = item.get("name") or display_name.split(",")[0].strip()
    return GeocodingResult(
        latitude=latitude,
        longitude=longitude,
        name=name,
        display_name=display_name,
        subdivision_code=subdivision_code(address),
        source_url=_source_url(item),
        place_rank=int(item.get("place_rank") or 0),
        address=dict(address),
    )


def parse_response(scrape_type: str, payload: Any) -> GeocodingResponse | None:
    if payload is None:
        return None
    if not isinstance(payload, list):
        raise ContractError(f"Nominatim {scrape_type} payload must be a list")
    if not payload:
        return None
    return GeocodingResponse(scrape_type=scrape_type, results=tuple(parse_result(item) for item in payload))


class NominatimLookup:
    """Lazily downloads and caches Nominatim responses per location code.

    Responses live under ``<data_dir>/cache/nominatim/<scrapeType>/<locode>.json``.
    Empty responses are cached as well so that misses are not re-queried.
    """

    def __init__(
        self,
        data_dir: Path,
        nominatim_config: dict | None = None,
        *,
        http_client: HttpClient | None = None,
        logger: logging.Logger | None = None,
        offline: bool = False,
    ) -> None:
        self.cache_dir = data_dir / "cache" / "nominatim"
        self.config = nominatim_config or DEFAULT_NOMINATIM_CONFIG
        self.http_client = http_client
        self.logger = logger
        self.offline = offline

    def _cache_path(self, scrape_type: str, locode: str) -> Path:
        return self.cache_dir / scrape_type / f"{locode}.json"

    def _client(self) -> HttpClient:
        if self.http_client is None:
            self.http_client = HttpClient()
        return self.http_client

    def close(self) -> None:
        if self.http_client is not None:
            self.http_client.close()

    def query_url(self, entry: Entry, scrape_type: str) -> str:
        return build_query_url(entry, scrape_type, self.config)

    def _download_if_needed(self, entry: Entry, scrape_type: str) -> list | None:
        path = self._cache_path(scrape_type, entry.locode)
        if path.exists():
            try:
                cached = read_json(path)
            except ValueError as exc:
                raise ContractError(f"Unreadable nominatim cache file: {path}") from exc
            if not isinstance(cached, dict):
                raise ContractError(f"Unexpected nominatim cache layout: {path}")
            return cached.get("result")
        if self.offline:
            return None

        payload = self._client().get_json(
            self.config.get("endpoint", NOMINATIM_SEARCH_URL),
            source_type="nominatim",
            params=build_search_params(entry, scrape_type, self.config),
        )
        write_json(path, {"locode": entry.locode, "scrapeType": scrape_type, "result": payload})
        if self.logger is not None:
            log_event(
                self.logger,
                "nominatim response cached",
                stage="harvest",
                locode=entry.locode,
                country=entry.country,
                event="NOMINATIM_DOWNLOAD",
                status="ok",
                scrape_type=scrape_type,
            )
        return payload

    def get_response(self, entry: Entry) -> GeocodingResponse | None:
        if entry.subdivision_code and entry.subdivision_name:
            response = parse_response(SCRAPE_BY_REGION, self._download_if_needed(entry, SCRAPE_BY_REGION))
            if response is not None:
                return response
        return self.get_response_by_city(entry)

    def get_response_by_city(self, entry: Entry) -> GeocodingResponse | None:
        return parse_response(SCRAPE_BY_CITY, self._download_if_needed(entry, SCRAPE_BY_CITY))
