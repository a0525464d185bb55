"""Detect stage: pick a coordinate source for every registry entry."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable

from unlocode_coords.common.constants import DEFAULT_MAX_DISTANCE_KM
from unlocode_coords.common.errors import PipelineError
from unlocode_coords.common.fs import write_json
from unlocode_coords.common.logging import log_event, log_warning
from unlocode_coords.common.models import Entry, ReconciledResult
from unlocode_coords.harvest.nominatim import NominatimLookup
from unlocode_coords.harvest.wikidata import WikidataIndex
from unlocode_coords.pipeline.export import write_detected_coordinates
from unlocode_coords.pipeline.selector import CoordinateSelector


def run_detect(
    entries: Iterable[Entry],
    selector: CoordinateSelector,
    lookup: NominatimLookup,
    wikidata: WikidataIndex | None,
    data_dir: Path,
    *,
    run_id: str,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
    logger: logging.Logger | None = None,
    strict: bool = False,
) -> dict:
    results: list[ReconciledResult] = []
    unresolved: list[str] = []
    failed: list[str] = []

    def _log_failure(entry: Entry, exc: Exception, error_code: str) -> None:
        failed.append(entry.locode)
        if logger is None:
            return
        log_warning(
            logger,
            f"lookup failed: {exc}",
            run_id=run_id,
            stage="detect",
            locode=entry.locode,
            country=entry.country,
            event="LOOKUP_FAIL",
            status="error",
            error_code=error_code,
        )

    for entry in entries:
        try:
            response = lookup.get_response(entry)
            wikidata_result = wikidata.get(entry) if wikidata is not None else None
            result = selector.select(entry, response, wikidata_result, max_distance_km)
        except PipelineError as exc:
            _log_failure(entry, exc, exc.error_code)
            if strict:
                raise
            continue
        except Exception as exc:
            _log_failure(entry, exc, "UNEXPECTED_ERROR")
            if strict:
                raise
            continue

        if result is None:
            unresolved.append(entry.locode)
            continue
        results.append(result)
        if logger is not None:
            log_event(
                logger,
                f"{entry.locode} resolved from {result.type.value}",
                run_id=run_id,
                stage="detect",
                locode=entry.locode,
                country=entry.country,
                event="COORDINATES_SELECTED",
                status="ok",
                scrape_type=response.scrape_type if response is not None else None,
            )

    write_detected_coordinates(data_dir, results)
    report = {
        "run_id": run_id,
        "counts": {
            "resolved": len(results),
            "unresolved": len(unresolved),
            "failed": len(failed),
            "with_alternatives": sum(1 for result in results if result.alternatives),
        },
        "by_type": dict(sorted(Counter(result.type.value for result in results).items())),
        "unresolved": sorted(unresolved),
        "failed": sorted(failed),
    }
    write_json(data_dir / "out" / "reports" / "detect_report.json", report)
    return report
