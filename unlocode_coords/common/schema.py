"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from unlocode_coords.common.errors import ConfigError

THRESHOLD_KEYS = {"max_distance_km", "validated_km", "close_km", "far_km", "small_village_rank"}


def _assert_mapping(obj, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def validate_settings_config(cfg, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "settings")
    top_required = {"registry", "nominatim", "wikidata", "thresholds"}
    top_known = top_required | {"countries"}
    _assert_required_keys(cfg, top_required, "settings")
    _assert_no_unknown_keys(cfg, top_known, "settings", allow_unknown)

    _assert_required_keys(
        _assert_mapping(cfg["registry"], "registry"),
        {"code_list_files", "subdivision_file", "url_template"},
        "registry",
    )
    if "{locode}" not in cfg["registry"]["url_template"]:
        raise ConfigError("registry.url_template must contain {locode}")
    _assert_required_keys(
        _assert_mapping(cfg["nominatim"], "nominatim"),
        {"endpoint", "limit", "accept_language"},
        "nominatim",
    )
    _assert_required_keys(_assert_mapping(cfg["wikidata"], "wikidata"), {"enabled", "endpoint"}, "wikidata")

    thresholds = _assert_mapping(cfg["thresholds"], "thresholds")
    _assert_required_keys(thresholds, THRESHOLD_KEYS, "thresholds")
    for key in THRESHOLD_KEYS:
        value = thresholds[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ConfigError(f"thresholds.{key} must be a positive number")

    countries = cfg.get("countries") or []
    if not isinstance(countries, list):
        raise ConfigError("countries must be a list of ISO 3166-1 codes")
    return cfg


def validate_overrides_config(cfg) -> dict:
    if cfg is None:
        cfg = {}
    cfg = _assert_mapping(cfg, "overrides")
    _assert_no_unknown_keys(cfg, {"prefer_wikidata", "prefer_unlocode"}, "overrides", allow_unknown=False)
    for key in ("prefer_wikidata", "prefer_unlocode"):
        values = cfg.get(key) or []
        if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
            raise ConfigError(f"overrides.{key} must be a list of location codes")

    both = set(cfg.get("prefer_wikidata") or []) & set(cfg.get("prefer_unlocode") or [])
    if both:
        raise ConfigError(f"Codes listed in both override lists: {', '.join(sorted(both))}")
    return cfg
