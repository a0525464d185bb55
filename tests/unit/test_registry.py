import csv
from pathlib import Path

import pytest

from unlocode_coords.common.errors import StageError
from unlocode_coords.harvest.registry import load_registry, load_registry_from_config, parse_code_list_row


def _write_rows(path: Path, rows: list[list[str]]):
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        csv.writer(f).writerows(rows)


def _fixture(tmp_path: Path) -> tuple[Path, Path]:
    code_list = tmp_path / "registry" / "code-list.csv"
    subdivisions = tmp_path / "registry" / "subdivision-codes.csv"
    _write_rows(
        code_list,
        [
            ["", "IT", "", ".ITALY", "", "", "", "", "", "", "", ""],
            ["", "IT", "MIL", "Milano", "Milano", "MI", "12345---", "AI", "0601", "", "4528N 00911E", ""],
            ["", "IT", "MND", "Mondello, Palermo", "Mondello, Palermo", "PA", "--3-----", "RL", "0901", "", "3812N 01319E", ""],
            ["", "IT", "XYZ", "Nowhere", "Nowhere", "ZZ", "--3-----", "RL", "0901", "", "", ""],
            ["X", "IT", "OLD", "Removed", "Removed", "", "--3-----", "RL", "0901", "", "", ""],
            ["", "FR", "PAR", "Paris", "Paris", "75", "12345---", "AI", "0601", "", "4852N 00220E", ""],
        ],
    )
    _write_rows(
        subdivisions,
        [
            ["IT", "MI", "Milano", "Metropolitan city"],
            ["IT", "PA", "Palermo", "Free municipal consortium"],
            ["FR", "75", "Paris", "Metropolitan department"],
        ],
    )
    return code_list, subdivisions


def test_load_registry_builds_entries(tmp_path: Path):
    code_list, subdivisions = _fixture(tmp_path)

    entries = load_registry([code_list], subdivisions)

    assert list(entries) == ["FRPAR", "ITMIL", "ITMND", "ITXYZ"]
    milano = entries["ITMIL"]
    assert milano.city == "Milano"
    assert milano.coordinates == "4528N 00911E"
    assert milano.subdivision_code == "MI"
    assert milano.subdivision_name == "Milano"


def test_unknown_subdivision_has_no_name(tmp_path: Path):
    code_list, subdivisions = _fixture(tmp_path)

    entry = load_registry([code_list], subdivisions)["ITXYZ"]

    assert entry.subdivision_code == "ZZ"
    assert entry.subdivision_name is None
    assert entry.coordinates is None


def test_country_filter(tmp_path: Path):
    code_list, subdivisions = _fixture(tmp_path)

    entries = load_registry([code_list], subdivisions, countries=["fr"])

    assert list(entries) == ["FRPAR"]


def test_load_registry_from_config_resolves_against_data_dir(tmp_path: Path):
    _fixture(tmp_path)
    registry_config = {
        "code_list_files": ["registry/code-list.csv"],
        "subdivision_file": "registry/subdivision-codes.csv",
        "url_template": "https://unlocode.info/{locode}",
    }

    assert "ITMND" in load_registry_from_config(tmp_path, registry_config, ["IT"])


def test_missing_files_raise_stage_error(tmp_path: Path):
    code_list, subdivisions = _fixture(tmp_path)
    with pytest.raises(StageError):
        load_registry([tmp_path / "missing.csv"], subdivisions)
    with pytest.raises(StageError):
        load_registry([code_list], tmp_path / "missing.csv")


def test_short_rows_are_padded():
    assert parse_code_list_row(["", "IT", "ABC", "Abc"], {}).coordinates is None
