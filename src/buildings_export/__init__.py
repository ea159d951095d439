#!/usr/bin/env python3
"""
Open Buildings Band Exporter

Selects the most recent Open Buildings 2.5D Temporal image for a year and
area of interest and submits one Earth Engine export task per band.
"""

from .config import BANDS, COLLECTIONS, EXPORT, ExportConfig, RunConfig, load_config
from .core import BuildingsExporter
from .dispatcher import BandExportDispatcher
from .errors import (
    BandNotFound,
    BuildingsExportError,
    ConfigurationError,
    InvalidGeometry,
    SelectionNotFound,
    SubmissionFailure,
)
from .models import BandExportResult, NotFound, RunReport, SelectedImage
from .selector import ImageSelector
from .spatial_utils import AreaOfInterest, load_aoi

__version__ = "1.0.0"

__all__ = [
    "AreaOfInterest",
    "BANDS",
    "BandExportDispatcher",
    "BandExportResult",
    "BandNotFound",
    "BuildingsExportError",
    "BuildingsExporter",
    "COLLECTIONS",
    "ConfigurationError",
    "EXPORT",
    "ExportConfig",
    "ImageSelector",
    "InvalidGeometry",
    "NotFound",
    "RunConfig",
    "RunReport",
    "SelectedImage",
    "SelectionNotFound",
    "SubmissionFailure",
    "load_aoi",
    "load_config",
]
