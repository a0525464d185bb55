"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from unlocode_coords.common.errors import ConfigError
from unlocode_coords.common.fs import read_yaml
from unlocode_coords.common.schema import validate_overrides_config, validate_settings_config


@dataclass(frozen=True)
class Overrides:
    prefer_wikidata: frozenset[str] = frozenset()
    prefer_unlocode: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ConfigBundle:
    settings: dict
    overrides: Overrides

    @property
    def thresholds(self) -> dict:
        return self.settings["thresholds"]


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> Any:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base or {}, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    def _overlay(name: str) -> Path | None:
        return (overlay_config_dir / name) if overlay_config_dir is not None else None

    settings = validate_settings_config(
        _load_yaml_with_overlay(config_dir / "settings.yml", _overlay("settings.yml")),
        allow_unknown=allow_unknown,
    )
    overrides_cfg = validate_overrides_config(
        _load_yaml_with_overlay(config_dir / "overrides.yml", _overlay("overrides.yml"))
    )
    overrides = Overrides(
        prefer_wikidata=frozenset(overrides_cfg.get("prefer_wikidata") or []),
        prefer_unlocode=frozenset(overrides_cfg.get("prefer_unlocode") or []),
    )
    return ConfigBundle(settings=settings, overrides=overrides)


def resolve_countries(bundle: ConfigBundle, target: str | None) -> list[str]:
    if target == "all":
        return []
    if target:
        return [target.upper()]
    return [country.upper() for country in bundle.settings.get("countries") or []]
