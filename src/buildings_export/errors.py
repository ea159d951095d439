#!/usr/bin/env python3
"""
Error types raised while selecting and exporting building rasters.
"""


class BuildingsExportError(Exception):
    """Base class for all export pipeline errors"""


class ConfigurationError(BuildingsExportError):
    """Configuration file or option is malformed"""


class InvalidGeometry(BuildingsExportError):
    """Area of interest is missing, empty or geometrically invalid"""


class SelectionNotFound(BuildingsExportError):
    """No image in the collection matches the year and area of interest"""

    def __init__(self, collection_id: str, year: int, reason: str = ""):
        self.collection_id = collection_id
        self.year = year
        self.reason = reason
        message = f"No image in {collection_id} for year {year}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class BandNotFound(BuildingsExportError):
    """Requested band is not present on the selected image"""

    def __init__(self, band_name: str, available=()):
        self.band_name = band_name
        self.available = tuple(available)
        super().__init__(
            f"Band '{band_name}' not found on image "
            f"(available: {', '.join(self.available) or 'none'})"
        )


class SubmissionFailure(BuildingsExportError):
    """Earth Engine rejected an export task submission"""

    def __init__(self, band_name: str, detail: str):
        self.band_name = band_name
        self.detail = detail
        super().__init__(f"Export submission for band '{band_name}' failed: {detail}")
