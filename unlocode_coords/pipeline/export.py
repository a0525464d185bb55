"""Detected coordinates export."""

from __future__ import annotations

from pathlib import Path

from unlocode_coords.common.coordinates import convert_to_unlocode
from unlocode_coords.common.fs import write_csv, write_json
from unlocode_coords.common.models import ReconciledResult

DETECTED_HEADERS = [
    "locode",
    "type",
    "lat",
    "lon",
    "coordinates",
    "source_name",
    "source_url",
    "alternative_count",
]


def _serialize_row(result: ReconciledResult) -> dict:
    coordinates = result.coordinates
    return {
        "locode": result.locode,
        "type": result.type.value,
        "lat": "" if coordinates is None else coordinates.latitude,
        "lon": "" if coordinates is None else coordinates.longitude,
        "coordinates": "" if coordinates is None else convert_to_unlocode(coordinates.latitude, coordinates.longitude),
        "source_name": result.source.name if result.source else "",
        "source_url": (result.source.source_url or "") if result.source else "",
        "alternative_count": len(result.alternatives or ()),
    }


def write_detected_coordinates(data_dir: Path, results: list[ReconciledResult]) -> Path:
    out_dir = data_dir / "out"
    sorted_results = sorted(results, key=lambda result: result.locode)
    csv_path = out_dir / "detected_coordinates.csv"
    write_csv(csv_path, DETECTED_HEADERS, [_serialize_row(result) for result in sorted_results])
    write_json(out_dir / "detected_coordinates.json", {result.locode: result.to_dict() for result in sorted_results})
    return csv_path
