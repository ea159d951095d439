#!/usr/bin/env python3
"""
Band export dispatch: one Earth Engine export task per requested band.
"""

from typing import Any, Callable, List, Sequence

import ee
from loguru import logger

from .config import ExportConfig, check_bands
from .errors import (
    BandNotFound,
    BuildingsExportError,
    SelectionNotFound,
    SubmissionFailure,
)
from .models import BandExportResult, NotFound, SelectedImage, SelectionResult
from .spatial_utils import AreaOfInterest

# (band image, description, filename prefix, region, export config) -> ee.batch.Task
TaskFactory = Callable[[Any, str, str, Any, ExportConfig], Any]


def export_description(band_name: str, year: int) -> str:
    return f"export_{band_name}_{year}"


def export_filename_prefix(band_name: str, year: int) -> str:
    return f"{band_name}_{year}"


def create_export_task(
    image: "ee.Image",
    description: str,
    filename_prefix: str,
    region: "ee.Geometry",
    export_config: ExportConfig,
) -> "ee.batch.Task":
    """Build an unstarted Earth Engine export task for one band image"""
    params = {
        "image": image,
        "description": description,
        "scale": export_config.scale,
        "region": region,
        "maxPixels": export_config.max_pixels,
        "fileFormat": export_config.file_format,
    }
    if export_config.crs:
        params["crs"] = export_config.crs

    if export_config.destination == "gcs":
        return ee.batch.Export.image.toCloudStorage(
            bucket=export_config.bucket,
            fileNamePrefix=f"{export_config.folder}/{filename_prefix}",
            **params,
        )

    return ee.batch.Export.image.toDrive(
        folder=export_config.folder,
        fileNamePrefix=filename_prefix,
        **params,
    )


class BandExportDispatcher:
    """Submit per-band export tasks for a selected image, best effort"""

    def __init__(self, task_factory: TaskFactory = create_export_task):
        self.task_factory = task_factory

    def dispatch(
        self,
        selection: SelectionResult,
        bands: Sequence[str],
        aoi: AreaOfInterest,
        year: int,
        export_config: ExportConfig,
    ) -> List[BandExportResult]:
        """Submit one export per band and return per-band outcomes in band order.

        A NotFound selection raises SelectionNotFound before anything is
        submitted. Missing bands and rejected submissions are recorded against
        their band and do not stop the remaining bands.
        """
        if isinstance(selection, NotFound):
            raise SelectionNotFound(selection.collection_id, selection.year, selection.reason)
        if not isinstance(selection, SelectedImage):
            raise TypeError(
                f"selection expected SelectedImage, got {type(selection).__name__}"
            )
        check_bands(bands)

        region = aoi.ee_geometry
        logger.info(
            f"Dispatching {len(bands)} band export(s) for {selection.asset_id} "
            f"to {export_config.destination}:{export_config.folder} "
            f"(scale={export_config.scale}, maxPixels={export_config.max_pixels:.0e})"
        )

        results = []
        for band_name in bands:
            result = self._submit_band(selection, band_name, region, year, export_config)
            results.append(result)

        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Submitted {len(results) - failed}/{len(results)} band export(s)")
        return results

    def _submit_band(
        self,
        selection: SelectedImage,
        band_name: str,
        region: Any,
        year: int,
        export_config: ExportConfig,
    ) -> BandExportResult:
        description = export_description(band_name, year)
        filename_prefix = export_filename_prefix(band_name, year)

        try:
            if band_name not in selection.band_names:
                raise BandNotFound(band_name, selection.band_names)

            try:
                band_image = selection.image.select([band_name]).clip(region)
                task = self.task_factory(
                    band_image, description, filename_prefix, region, export_config
                )
                task.start()
            except Exception as e:
                raise SubmissionFailure(band_name, str(e)) from e

        except BuildingsExportError as e:
            logger.warning(f"Band {band_name}: {e}")
            return BandExportResult.failed(band_name, description, filename_prefix, e)

        task_id = getattr(task, "id", None)
        logger.info(f"Submitted {description} (task {task_id}) -> {filename_prefix}")
        return BandExportResult.submitted(band_name, description, filename_prefix, task_id)

