from pathlib import Path

import pytest

from unlocode_coords.common.config_loader import load_all_configs, resolve_countries
from unlocode_coords.common.errors import ConfigError

SETTINGS_YAML = """countries: [IT]
registry:
  code_list_files: [registry/code-list.csv]
  subdivision_file: registry/subdivision-codes.csv
  url_template: "https://unlocode.info/{locode}"
nominatim:
  endpoint: "https://nominatim.example.test/search"
  limit: 20
  accept_language: en
wikidata:
  enabled: false
  endpoint: "https://query.wikidata.example.test/sparql"
thresholds:
  max_distance_km: 100
  validated_km: 100
  close_km: 25
  far_km: 1000
  small_village_rank: 19
"""


def _base(tmp_path: Path, overrides: str = "prefer_unlocode: [ITMND]\n") -> Path:
    base = tmp_path / "base"
    base.mkdir()
    (base / "settings.yml").write_text(SETTINGS_YAML, encoding="utf-8")
    (base / "overrides.yml").write_text(overrides, encoding="utf-8")
    return base


def test_load_all_configs_from_repo_config_dir():
    bundle = load_all_configs(Path("config"))
    assert bundle.thresholds["close_km"] == 25
    assert "ITMND" in bundle.overrides.prefer_unlocode
    assert resolve_countries(bundle, None) == ["IT"]


def test_resolve_countries_cli_value_wins(tmp_path: Path):
    bundle = load_all_configs(_base(tmp_path))
    assert resolve_countries(bundle, "fr") == ["FR"]
    assert resolve_countries(bundle, "all") == []


def test_overlay_values_are_deep_merged(tmp_path: Path):
    base = _base(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text("thresholds:\n  close_km: 10\n", encoding="utf-8")
    (overlay / "overrides.yml").write_text("prefer_wikidata: [ITAN2]\n", encoding="utf-8")

    bundle = load_all_configs(base, overlay_config_dir=overlay)

    assert bundle.thresholds["close_km"] == 10
    assert bundle.thresholds["far_km"] == 1000
    assert bundle.overrides.prefer_wikidata == frozenset({"ITAN2"})
    assert bundle.overrides.prefer_unlocode == frozenset({"ITMND"})


def test_empty_overlay_file_is_ignored(tmp_path: Path):
    base = _base(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text("", encoding="utf-8")

    bundle = load_all_configs(base, overlay_config_dir=overlay)

    assert bundle.thresholds["close_km"] == 25


def test_non_mapping_overlay_is_rejected(tmp_path: Path):
    base = _base(tmp_path)
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "settings.yml").write_text("- not\n- a\n- mapping\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_all_configs(base, overlay_config_dir=overlay)


def test_empty_overrides_file_means_no_overrides(tmp_path: Path):
    bundle = load_all_configs(_base(tmp_path, overrides=""))
    assert bundle.overrides.prefer_unlocode == frozenset()


def test_code_in_both_override_lists_is_rejected(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_all_configs(_base(tmp_path, overrides="prefer_wikidata: [ITMND]\nprefer_unlocode: [ITMND]\n"))


def test_invalid_threshold_is_rejected(tmp_path: Path):
    base = _base(tmp_path)
    (base / "settings.yml").write_text(SETTINGS_YAML.replace("close_km: 25", "close_km: -1"), encoding="utf-8")

    with pytest.raises(ConfigError):
        load_all_configs(base)


def test_unknown_settings_key_is_rejected_unless_allowed(tmp_path: Path):
    base = _base(tmp_path)
    (base / "settings.yml").write_text(SETTINGS_YAML + "surprise: true\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_all_configs(base)
    assert load_all_configs(base, allow_unknown=True).settings["surprise"] is True


def test_missing_config_file_is_reported(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_all_configs(tmp_path)
