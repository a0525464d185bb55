"""CLI entrypoint for UN/LOCODE coordinate reconciliation."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from unlocode_coords.common.config_loader import ConfigBundle, load_all_configs, resolve_countries
from unlocode_coords.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGES
from unlocode_coords.common.errors import PipelineError
from unlocode_coords.common.http import HttpClient
from unlocode_coords.common.ids import generate_run_id
from unlocode_coords.common.logging import build_logger, log_event
from unlocode_coords.common.models import Entry
from unlocode_coords.common.time_utils import parse_run_date
from unlocode_coords.harvest.nominatim import NominatimLookup
from unlocode_coords.harvest.registry import load_registry_from_config
from unlocode_coords.harvest.wikidata import WikidataIndex
from unlocode_coords.pipeline.detect import run_detect
from unlocode_coords.pipeline.reports import write_run_summary
from unlocode_coords.pipeline.selector import CoordinateSelector
from unlocode_coords.pipeline.validate import run_validate
from unlocode_coords.pipeline.validator import CoordinateValidator


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=[*STAGES, "all"])
    parser.add_argument("--country", default=None, help="ISO 3166-1 code, or 'all' for every country")
    parser.add_argument("--locode", action="append", default=[], help="restrict to these location codes")
    parser.add_argument("--run-date", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--offline", action="store_true", help="only use cached geocoding responses")
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def _select_entries(entries: dict[str, Entry], locodes: list[str]) -> list[Entry]:
    if not locodes:
        return list(entries.values())
    wanted = {locode.upper() for locode in locodes}
    return [entry for locode, entry in entries.items() if locode in wanted]


def execute_stage(
    stage: str,
    entries: list[Entry],
    bundle: ConfigBundle,
    lookup: NominatimLookup,
    wikidata: WikidataIndex,
    data_dir: Path,
    run_id: str,
    run_date: str,
    *,
    logger,
    strict: bool,
):
    if stage == "detect":
        selector = CoordinateSelector(
            lookup,
            prefer_wikidata=bundle.overrides.prefer_wikidata,
            prefer_unlocode=bundle.overrides.prefer_unlocode,
            close_km=float(bundle.thresholds["close_km"]),
        )
        return run_detect(
            entries,
            selector,
            lookup,
            wikidata,
            data_dir,
            run_id=run_id,
            max_distance_km=float(bundle.thresholds["max_distance_km"]),
            logger=logger,
            strict=strict,
        )
    if stage == "validate":
        validator = CoordinateValidator.from_settings(lookup, bundle.settings)
        return run_validate(
            entries,
            validator,
            lookup,
            data_dir,
            run_id=run_id,
            run_date=run_date,
            logger=logger,
            strict=strict,
        )
    raise ValueError(f"Unknown stage: {stage}")


def run_command(args: argparse.Namespace, http_client: HttpClient | None = None) -> int:
    run_id = args.run_id or generate_run_id()
    run_date = parse_run_date(args.run_date)
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    bundle = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)
    countries = resolve_countries(bundle, args.country)
    registry = load_registry_from_config(data_dir, bundle.settings["registry"], countries)
    entries = _select_entries(registry, args.locode)
    stages = list(STAGES) if args.command == "all" else [args.command]

    had_partial_failure = False
    owns_client = http_client is None
    client = http_client or HttpClient()
    lookup = NominatimLookup(
        data_dir,
        bundle.settings["nominatim"],
        http_client=client,
        logger=logger,
        offline=args.offline,
    )
    wikidata = WikidataIndex(data_dir, bundle.settings["wikidata"], http_client=client, offline=args.offline)

    try:
        for stage in stages:
            log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
            try:
                execute_stage(
                    stage,
                    entries,
                    bundle,
                    lookup,
                    wikidata,
                    data_dir,
                    run_id,
                    run_date,
                    logger=logger,
                    strict=args.strict,
                )
            except PipelineError as exc:
                had_partial_failure = True
                log_event(
                    logger,
                    f"stage {stage} failed: {exc}",
                    run_id=run_id,
                    stage=stage,
                    event="STAGE_FAIL",
                    status="error",
                    error_code=exc.error_code,
                )
                if args.strict:
                    return EXIT_HARD_FAIL
            except Exception:
                had_partial_failure = True
                log_event(
                    logger,
                    f"unexpected failure in stage {stage}",
                    run_id=run_id,
                    stage=stage,
                    event="STAGE_FAIL",
                    status="error",
                    error_code="UNEXPECTED_ERROR",
                )
                if args.strict:
                    return EXIT_HARD_FAIL
            log_event(logger, "stage end", run_id=run_id, stage=stage, event="STAGE_END", status="ok")
    finally:
        if owns_client:
            client.close()

    write_run_summary(data_dir, run_id=run_id, run_date=run_date, countries=countries, stages=stages)
    if had_partial_failure:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
