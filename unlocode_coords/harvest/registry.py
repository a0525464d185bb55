"""UN/LOCODE code list and subdivision CSV loading."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from unlocode_coords.common.errors import StageError
from unlocode_coords.common.fs import read_csv_rows
from unlocode_coords.common.models import Entry

# Column order of the official headerless code list CSV.
CODE_LIST_COLUMNS = (
    "change",
    "country",
    "location",
    "name",
    "name_wo_diacritics",
    "subdivision",
    "function",
    "status",
    "date",
    "iata",
    "coordinates",
    "remarks",
)
REMOVED_CHANGE_MARKER = "X"


def _cell(row: list[str], column: str) -> str:
    idx = CODE_LIST_COLUMNS.index(column)
    if idx >= len(row):
        return ""
    return row[idx].strip()


def load_subdivisions(path: Path, *, encoding: str = "utf-8") -> dict[tuple[str, str], str]:
    if not path.exists():
        raise StageError(f"Missing subdivision CSV: {path}")
    subdivisions: dict[tuple[str, str], str] = {}
    for row in read_csv_rows(path, encoding=encoding):
        if len(row) < 3:
            continue
        country, code, name = (value.strip() for value in row[:3])
        if not country or not code or country.upper() == "SUCOUNTRY":
            continue
        subdivisions[(country, code)] = name
    return subdivisions


def parse_code_list_row(row: list[str], subdivisions: dict[tuple[str, str], str]) -> Entry | None:
    country = _cell(row, "country")
    location = _cell(row, "location")
    if not country or not location or country == "ISO 3166-1":
        return None
    if _cell(row, "change") == REMOVED_CHANGE_MARKER:
        return None

    subdivision_code = _cell(row, "subdivision") or None
    subdivision_name = subdivisions.get((country, subdivision_code)) if subdivision_code else None
    return Entry(
        locode=f"{country}{location}",
        country=country,
        city=_cell(row, "name"),
        coordinates=_cell(row, "coordinates") or None,
        subdivision_code=subdivision_code,
        subdivision_name=subdivision_name,
    )


def load_registry(
    code_list_paths: Iterable[Path],
    subdivision_path: Path,
    *,
    countries: Iterable[str] | None = None,
    encoding: str = "utf-8",
) -> dict[str, Entry]:
    wanted = {country.upper() for country in countries or []}
    subdivisions = load_subdivisions(subdivision_path, encoding=encoding)

    entries: dict[str, Entry] = {}
    for path in code_list_paths:
        if not path.exists():
            raise StageError(f"Missing code list CSV: {path}")
        for row in read_csv_rows(path, encoding=encoding):
            entry = parse_code_list_row(row, subdivisions)
            if entry is None:
                continue
            if wanted and entry.country not in wanted:
                continue
            entries[entry.locode] = entry
    return dict(sorted(entries.items()))


def load_registry_from_config(data_dir: Path, registry_config: dict, countries: Iterable[str] | None = None) -> dict[str, Entry]:
    return load_registry(
        [data_dir / name for name in registry_config["code_list_files"]],
        data_dir / registry_config["subdivision_file"],
        countries=countries,
        encoding=registry_config.get("encoding", "utf-8"),
    )
