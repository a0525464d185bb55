"""Validate stage: report registry coordinates that disagree with Nominatim."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import Iterable

from unlocode_coords.common.coordinates import convert_to_decimal
from unlocode_coords.common.errors import PipelineError
from unlocode_coords.common.fs import write_json
from unlocode_coords.common.logging import log_event, log_warning
from unlocode_coords.common.models import Entry
from unlocode_coords.harvest.nominatim import NominatimLookup
from unlocode_coords.pipeline.diagnostics import Diagnostic, InvariantViolation, render_diagnostic
from unlocode_coords.pipeline.selector import distance_to
from unlocode_coords.pipeline.validator import CoordinateValidator


def run_validate(
    entries: Iterable[Entry],
    validator: CoordinateValidator,
    lookup: NominatimLookup,
    data_dir: Path,
    *,
    run_id: str,
    run_date: str,
    logger: logging.Logger | None = None,
    strict: bool = False,
) -> Path:
    diagnostics: list[Diagnostic] = []
    counts = Counter()

    def _log(
        diagnostic: Diagnostic,
        message: str,
        distance_km: float | None,
        error_code: str | None = None,
    ) -> None:
        if logger is None:
            return
        log_warning(
            logger,
            message,
            run_id=run_id,
            stage="validate",
            locode=diagnostic.locode,
            country=diagnostic.country,
            event=diagnostic.kind.value,
            status="error" if diagnostic.fatal else "warning",
            scrape_type=diagnostic.scrape_type,
            distance_km=distance_km,
            error_code=error_code,
        )

    def _log_failure(entry: Entry, exc: Exception, error_code: str) -> None:
        counts["failed"] += 1
        if logger is None:
            return
        log_warning(
            logger,
            f"lookup failed: {exc}",
            run_id=run_id,
            stage="validate",
            locode=entry.locode,
            country=entry.country,
            event="LOOKUP_FAIL",
            status="error",
            error_code=error_code,
        )

    for entry in entries:
        declared = convert_to_decimal(entry.coordinates)
        if declared is None:
            counts["skipped_no_coordinates"] += 1
            continue

        first_distance: float | None = None
        try:
            response = lookup.get_response(entry)
            if response is None:
                # Usually a non-standard name Nominatim cannot resolve.
                counts["skipped_no_response"] += 1
                continue
            counts["checked"] += 1
            first_distance = round(distance_to(declared, response.first), 1)
            diagnostic = validator.validate(entry, response)
        except InvariantViolation as exc:
            counts["fatal"] += 1
            diagnostics.append(exc.diagnostic)
            _log(exc.diagnostic, str(exc), first_distance, error_code=exc.error_code)
            if strict:
                raise
            continue
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

        if diagnostic is None:
            counts["validated"] += 1
            if logger is not None:
                log_event(
                    logger,
                    f"{entry.locode} coordinates validated",
                    run_id=run_id,
                    stage="validate",
                    locode=entry.locode,
                    country=entry.country,
                    event="VALIDATED",
                    status="ok",
                    scrape_type=response.scrape_type,
                    distance_km=first_distance,
                )
            continue

        diagnostics.append(diagnostic)
        _log(diagnostic, render_diagnostic(diagnostic, url_template=validator.url_template), first_distance)

    report_payload = {
        "run_id": run_id,
        "run_date": run_date,
        "counts": {
            "checked": counts["checked"],
            "validated": counts["validated"],
            "diagnostics": sum(1 for diagnostic in diagnostics if not diagnostic.fatal),
            "fatal": counts["fatal"],
            "failed": counts["failed"],
            "skipped_no_coordinates": counts["skipped_no_coordinates"],
            "skipped_no_response": counts["skipped_no_response"],
        },
        "by_kind": dict(sorted(Counter(diagnostic.kind.value for diagnostic in diagnostics).items())),
        "diagnostics": [
            {
                **diagnostic.to_dict(),
                "message": render_diagnostic(diagnostic, url_template=validator.url_template),
            }
            for diagnostic in sorted(diagnostics, key=lambda d: d.locode)
        ],
    }
    report_path = data_dir / "out" / "reports" / "validation_report.json"
    write_json(report_path, report_payload)
    return report_path
