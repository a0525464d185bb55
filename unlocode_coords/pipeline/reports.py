"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from unlocode_coords.common.fs import read_json, write_json


def write_run_summary(data_dir: Path, run_id: str, run_date: str, countries: list[str], stages: list[str]) -> Path:
    reports_dir = data_dir / "out" / "reports"
    stage_reports = {}
    warning_count = 0
    error_count = 0

    for stage, filename in (("detect", "detect_report.json"), ("validate", "validation_report.json")):
        if stage not in stages:
            continue
        report_path = reports_dir / filename
        if not report_path.exists():
            stage_reports[stage] = {"status": "missing_report"}
            error_count += 1
            continue

        report = read_json(report_path)
        counts = report.get("counts", {})
        stage_reports[stage] = {"counts": counts}
        if stage == "detect":
            stage_reports[stage]["by_type"] = report.get("by_type", {})
            error_count += int(counts.get("failed", 0))
        else:
            stage_reports[stage]["by_kind"] = report.get("by_kind", {})
            warning_count += int(counts.get("diagnostics", 0))
            error_count += int(counts.get("fatal", 0)) + int(counts.get("failed", 0))

    status = "success"
    if error_count > 0:
        status = "error"
    elif warning_count > 0:
        status = "partial"

    summary_path = reports_dir / "run_summary.json"
    payload = {
        "run_id": run_id,
        "run_date": run_date,
        "status": status,
        "countries": countries,
        "warning_count": warning_count,
        "error_count": error_count,
        "stage_reports": stage_reports,
    }
    write_json(summary_path, payload)
    return summary_path
