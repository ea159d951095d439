#!/usr/bin/env python3
"""
Core BuildingsExporter class: select one image, export its bands.
"""

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import ee
from loguru import logger

from .config import DESTINATIONS, RunConfig, load_config
from .dispatcher import BandExportDispatcher
from .earth_engine import init_ee
from .errors import BuildingsExportError, SelectionNotFound
from .models import NotFound, RunReport
from .selector import ImageSelector
from .spatial_utils import AreaOfInterest, load_aoi

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 2


class BuildingsExporter:
    """Select the latest image for a year and AOI and export its bands"""

    def __init__(
        self,
        selector: Optional[ImageSelector] = None,
        dispatcher: Optional[BandExportDispatcher] = None,
    ):
        self.selector = selector or ImageSelector()
        self.dispatcher = dispatcher or BandExportDispatcher()

    def run(self, config: RunConfig, aoi: AreaOfInterest) -> RunReport:
        """Run selection then dispatch; raises before any submission if nothing matches"""
        logger.info(
            f"Selecting image from {config.collection} for {config.year} over {aoi.name}"
        )
        selection = self.selector.select(config.collection, config.year, aoi)
        if isinstance(selection, NotFound):
            raise SelectionNotFound(selection.collection_id, selection.year, selection.reason)

        results = self.dispatcher.dispatch(
            selection, config.bands, aoi, config.year, config.export
        )
        report = RunReport(
            collection_id=config.collection,
            year=config.year,
            image=selection,
            results=results,
        )
        logger.info(
            f"Run completed: {len(report.submitted)} submitted, {len(report.failed)} failed"
        )
        return report

    def export_report(self, report: RunReport, filename: Union[str, Path]) -> None:
        """Write the per-band status report as JSON"""
        with open(filename, "w") as f:
            json.dump(report.to_dict(), f, indent=2)
        logger.info(f"Run report saved to {filename}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildings-export",
        description="Export Open Buildings 2.5D bands for a year and area of interest",
    )
    parser.add_argument("--config", help="YAML configuration file")
    aoi_group = parser.add_mutually_exclusive_group()
    aoi_group.add_argument("--aoi", help="GeoJSON file with the area of interest")
    aoi_group.add_argument(
        "--bbox",
        nargs=4,
        type=float,
        metavar=("WEST", "SOUTH", "EAST", "NORTH"),
        help="Area of interest as a lon/lat bounding box, instead of --aoi",
    )
    parser.add_argument("--year", type=int, help="Calendar year to select")
    parser.add_argument("--collection", help="Earth Engine image collection id")
    parser.add_argument("--bands", nargs="+", help="Band names to export, in order")
    parser.add_argument("--destination", choices=DESTINATIONS)
    parser.add_argument("--folder", help="Drive folder or bucket key prefix")
    parser.add_argument("--bucket", help="Cloud Storage bucket (destination gcs)")
    parser.add_argument("--scale", type=float, help="Output pixel size in metres")
    parser.add_argument("--max-pixels", type=float, help="Pixel ceiling per export")
    parser.add_argument("--project", help="Google Cloud project for Earth Engine")
    parser.add_argument("--report", help="Write the per-band report to this JSON file")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ...)")
    return parser


def apply_overrides(config: RunConfig, args: argparse.Namespace) -> RunConfig:
    """Apply command line options on top of the file configuration"""
    export_overrides: Dict[str, Any] = {}
    for option in ("destination", "folder", "bucket", "scale"):
        value = getattr(args, option)
        if value is not None:
            export_overrides[option] = value
    if args.max_pixels is not None:
        export_overrides["max_pixels"] = int(args.max_pixels)

    run_overrides: Dict[str, Any] = {}
    if export_overrides:
        run_overrides["export"] = replace(config.export, **export_overrides)
    if args.year is not None:
        run_overrides["year"] = args.year
    if args.collection:
        run_overrides["collection"] = args.collection
    if args.bands:
        run_overrides["bands"] = tuple(args.bands)
    if args.aoi:
        run_overrides["aoi_path"] = Path(args.aoi)
    if args.project:
        run_overrides["project"] = args.project
    if args.log_level:
        run_overrides["log_level"] = args.log_level.upper()

    return replace(config, **run_overrides) if run_overrides else config


def main(argv: Optional[List[str]] = None) -> int:
    """Main function for command line usage"""
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(load_config(args.config), args)
    except BuildingsExportError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_FATAL

    logger.remove()  # Remove default handler
    logger.add(sys.stderr, level=config.log_level, format=LOG_FORMAT)
    logger.info("=== Starting Open Buildings band export ===")

    if args.bbox is None and config.aoi_path is None:
        logger.error(
            "No area of interest given (use --aoi, --bbox or 'aoi' in the config)"
        )
        return EXIT_FATAL

    try:
        if args.bbox is not None:
            aoi = AreaOfInterest.from_bbox(args.bbox, name="bbox")
        else:
            aoi = load_aoi(config.aoi_path)
        init_ee(config.project)
        exporter = BuildingsExporter(ImageSelector(max_candidates=config.max_candidates))
        report = exporter.run(config, aoi)
    except BuildingsExportError as e:
        logger.error(str(e))
        return EXIT_FATAL
    except ee.EEException as e:
        logger.error(f"Earth Engine request failed: {e}")
        return EXIT_FATAL

    print("\n=== Export Submission Summary ===")
    print(f"Image: {report.image.asset_id} ({report.image.time_start.date()})")
    for result in report.results:
        if result.ok:
            print(f"  [submitted] {result.filename_prefix} (task {result.task_id})")
        else:
            print(f"  [error]     {result.band_name}: {result.error_detail}")

    if args.report:
        exporter.export_report(report, args.report)

    logger.info("=== Open Buildings band export completed ===")
    return EXIT_PARTIAL if report.failed else EXIT_OK


def cli() -> None:
    sys.exit(main())
