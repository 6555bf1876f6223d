"""
Command line entry point.

    audiencescout agreement --signals signals.csv --threshold 2
    audiencescout confidence --signals signals.parquet --segment home_movers --candidate-segment new_parents --threshold 0.6
    audiencescout hex --signals signals.csv --mode validation --threshold 2 --res 5 --out hexes.parquet
    audiencescout battle-zones --stores stores.csv --adjacency neighbours.csv --base-brand Acme --competitor Rival --rings 1
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from . import __version__, config
from .battle_zones import classify_battle_zones
from .errors import AudienceScoutError
from .geo.coords import RegionBounds
from .geo.h3_utils import bounds_of_cells
from .ingest import load_adjacency, load_district_catalog, load_stores, signals_from_frame
from .overlay.hex_binner import bin_report_to_hex, hex_cells_to_frame, hex_cells_to_geojson
from .scoring import AggregationContext, ConstructionMode, compute_agreement, compute_confidence
from .scoring.schema import SIGNAL_COLUMNS, ProviderSignal
from .validation import check_frames, validate_overlay_output

logger = logging.getLogger(__name__)

HEX_FRAME_COLUMNS = {"h3_id", "res", "aggregate_value", "member_count", "members"}


def _add_scoring_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--signals",
        required=True,
        action="append",
        help="Signal table (.csv or .parquet). Repeat to combine provider files.",
    )
    parser.add_argument("--districts", help="Optional district catalog (.geojson, .csv or .parquet).")
    parser.add_argument(
        "--anchor",
        default=config.ANCHOR_PROVIDER,
        help=f"Anchor provider that defines the district universe (default: {config.ANCHOR_PROVIDER}).",
    )
    parser.add_argument("--segment", help="Segment key to score (default: every row).")
    parser.add_argument(
        "--candidate-segment",
        action="append",
        default=[],
        help="Extension mode: additional segment to pull districts from (can repeat).",
    )
    parser.add_argument("--providers", nargs="*", help="Restrict to these providers (anchor always kept).")
    parser.add_argument(
        "--region",
        default=config.DEPLOYMENT_REGION,
        choices=sorted(config.REGION_BOUNDING_BOXES),
        help="Deployment region: fixes [lng, lat] centroid pairs and bounds-checks the hex pass.",
    )
    parser.add_argument("--out", help="Output path (.json; hex also accepts .parquet/.geojson). Default: stdout.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="audiencescout",
        description="Score multi-provider audience signals by postcode district.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ...).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    agreement = sub.add_parser("agreement", help="Validation mode: provider agreement per district.")
    _add_scoring_args(agreement)
    agreement.add_argument("--threshold", type=int, default=1, help="Minimum agreeing providers (default: 1).")

    confidence = sub.add_parser("confidence", help="Extension mode: average confidence per district.")
    _add_scoring_args(confidence)
    confidence.add_argument(
        "--threshold",
        type=float,
        default=config.CONFIDENCE_THRESHOLD_DEFAULT,
        help=f"Minimum average confidence (default: {config.CONFIDENCE_THRESHOLD_DEFAULT}).",
    )

    hexes = sub.add_parser("hex", help="Bin the included districts into H3 cells.")
    _add_scoring_args(hexes)
    hexes.add_argument("--mode", choices=[m.value for m in ConstructionMode], default="validation")
    hexes.add_argument("--threshold", type=float, help="Agreement count or average confidence threshold.")
    hexes.add_argument(
        "--res",
        type=int,
        default=config.H3_RES_DEFAULT,
        help=f"H3 resolution {config.H3_RES_MIN}-{config.H3_RES_MAX} (default: {config.H3_RES_DEFAULT}).",
    )

    zones = sub.add_parser("battle-zones", help="Classify a brand's catchment into battle zones.")
    zones.add_argument("--stores", required=True, help="Store table with store_id, brand, district.")
    zones.add_argument("--adjacency", help="District adjacency table with district, neighbor_district.")
    zones.add_argument("--base-brand", required=True)
    zones.add_argument("--competitor", action="append", default=[], help="Competitor brand (can repeat).")
    zones.add_argument("--rings", type=int, default=0, help="Catchment rings (default: 0).")
    zones.add_argument("--region-districts", nargs="*", help="Optional allowed district ids.")
    zones.add_argument("--top", type=int, default=config.BATTLE_ZONE_TOP_CONTESTED)
    zones.add_argument("--out", help="Output .json path. Default: stdout.")
    return parser


def _load_all_signals(paths: Sequence[str], region: RegionBounds) -> List[ProviderSignal]:
    """Every file is schema-checked before any row is converted."""
    frames = check_frames(list(paths), SIGNAL_COLUMNS)
    signals: List[ProviderSignal] = []
    for path, df in zip(paths, frames):
        signals.extend(signals_from_frame(df, source_path=path, region=region))
    return signals


def _context(args, mode: ConstructionMode, region: RegionBounds) -> AggregationContext:
    districts = load_district_catalog(args.districts, region=region) if args.districts else ()
    return AggregationContext.build(
        mode=mode,
        anchor_provider=args.anchor,
        segment=args.segment,
        candidate_segments=args.candidate_segment,
        providers=args.providers,
        districts=districts,
    )


def _write_json(payload: dict, out: Optional[str]) -> None:
    text = json.dumps(payload, indent=2, sort_keys=False)
    if out is None:
        print(text)
        return
    Path(out).parent.mkdir(parents=True, exist_ok=True)
    Path(out).write_text(text + "\n")
    logger.info(f"Wrote {out}")


def _score(args, mode: ConstructionMode, threshold):
    region = RegionBounds.named(args.region)
    signals = _load_all_signals(args.signals, region)
    context = _context(args, mode, region)
    if mode is ConstructionMode.VALIDATION:
        return compute_agreement(signals, threshold, context)
    return compute_confidence(signals, threshold, context)


def run_agreement(args) -> int:
    report = _score(args, ConstructionMode.VALIDATION, args.threshold)
    _write_json(report.to_dict(), args.out)
    return 0


def run_confidence(args) -> int:
    report = _score(args, ConstructionMode.EXTENSION, args.threshold)
    _write_json(report.to_dict(), args.out)
    return 0


def run_hex(args) -> int:
    mode = ConstructionMode(args.mode)
    threshold = args.threshold
    if threshold is None:
        threshold = 1 if mode is ConstructionMode.VALIDATION else config.CONFIDENCE_THRESHOLD_DEFAULT
    report = _score(args, mode, threshold)
    cells = bin_report_to_hex(report, args.res, region=RegionBounds.named(args.region))

    out = args.out
    if out and out.endswith(".parquet"):
        df = hex_cells_to_frame(cells, args.res)
        validate_overlay_output(df, HEX_FRAME_COLUMNS)
        Path(out).parent.mkdir(parents=True, exist_ok=True)
        df.to_parquet(out, index=False)
        logger.info(f"Wrote {out} ({len(df)} cells)")
        return 0
    if out and out.endswith(".geojson"):
        _write_json(hex_cells_to_geojson(cells), out)
        return 0
    payload = {
        "summary": report.summary(),
        "res": args.res,
        "bounds": bounds_of_cells(c.h3_index for c in cells),
        "cells": [c.to_dict() for c in cells],
    }
    _write_json(payload, out)
    return 0


def run_battle_zones(args) -> int:
    stores = load_stores(args.stores)
    adjacency = load_adjacency(args.adjacency) if args.adjacency else None
    report = classify_battle_zones(
        stores,
        ring_radius=args.rings,
        base_brand=args.base_brand,
        competitor_brands=args.competitor,
        adjacency=adjacency,
        region_filter=args.region_districts,
        top_n=args.top,
    )
    _write_json(report.to_dict(), args.out)
    return 0


COMMANDS = {
    "agreement": run_agreement,
    "confidence": run_confidence,
    "hex": run_hex,
    "battle-zones": run_battle_zones,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO))
    try:
        return COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\n[cli] Interrupted.")
        return 130
    except (AudienceScoutError, ValueError, OSError) as exc:
        print(f"[error] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
