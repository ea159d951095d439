#!/usr/bin/env python3
"""
Pytest configuration and fixtures for buildings_export tests.
"""

import itertools
import json
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from unittest.mock import Mock, patch

import ee
import pytest

from buildings_export.config import ExportConfig
from buildings_export.models import ImageCandidate, SelectedImage
from buildings_export.spatial_utils import AreaOfInterest

OPEN_BUILDINGS = "GOOGLE/Research/open-buildings-temporal/v1"


def to_millis(year: int, month: int, day: int) -> int:
    """Epoch milliseconds, as Earth Engine reports system:time_start"""
    return int(datetime(year, month, day, tzinfo=timezone.utc).timestamp() * 1000)


def make_candidate(
    index: str,
    year: int,
    month: int,
    day: int = 30,
    band_names=("building_fractional_count", "building_height", "building_presence"),
) -> ImageCandidate:
    return ImageCandidate(
        asset_id=f"{OPEN_BUILDINGS}/{index}",
        index=index,
        time_start=datetime(year, month, day, tzinfo=timezone.utc),
        band_names=tuple(band_names),
    )


class FakeTask:
    """Stands in for ee.batch.Task; the id is assigned when started"""

    _ids = itertools.count(1)

    def __init__(self, description: str, fail_on_start: bool = False):
        self.description = description
        self.fail_on_start = fail_on_start
        self.id: Optional[str] = None
        self.started = False

    def start(self):
        if self.fail_on_start:
            raise ee.EEException("Quota exceeded")
        self.started = True
        self.id = f"TASK{next(self._ids):04d}"


class FakeTaskFactory:
    """Records every task request instead of talking to Earth Engine"""

    def __init__(self, reject: tuple = (), fail_on_start: tuple = ()):
        self.reject = reject
        self.fail_on_start = fail_on_start
        self.calls: List[dict] = []
        self.tasks: List[FakeTask] = []

    def __call__(self, image, description, filename_prefix, region, export_config):
        self.calls.append(
            {
                "image": image,
                "description": description,
                "filename_prefix": filename_prefix,
                "region": region,
                "export_config": export_config,
            }
        )
        if any(band in description for band in self.reject):
            raise ee.EEException("Invalid region")
        task = FakeTask(
            description,
            fail_on_start=any(band in description for band in self.fail_on_start),
        )
        self.tasks.append(task)
        return task


@pytest.fixture
def temp_dir():
    """Create temporary working directory"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def nairobi_polygon():
    """Small polygon over central Nairobi (lon, lat)"""
    return {
        "type": "Polygon",
        "coordinates": [
            [
                [36.80, -1.30],
                [36.84, -1.30],
                [36.84, -1.27],
                [36.80, -1.27],
                [36.80, -1.30],
            ]
        ],
    }


@pytest.fixture
def nairobi_geojson_file(temp_dir, nairobi_polygon):
    path = temp_dir / "nairobi.geojson"
    with open(path, "w") as f:
        json.dump({"type": "Feature", "properties": {}, "geometry": nairobi_polygon}, f)
    return path


@pytest.fixture
def mock_ee_geometry():
    """Patch ee.Geometry so AOIs can be used without an Earth Engine session"""
    with patch("buildings_export.spatial_utils.ee") as mock_ee:
        mock_ee.Geometry.return_value = Mock(name="ee_geometry")
        yield mock_ee.Geometry.return_value


@pytest.fixture
def aoi(nairobi_polygon, mock_ee_geometry):
    return AreaOfInterest(nairobi_polygon, name="nairobi")


@pytest.fixture
def selected_image():
    """Selected 2022 image exposing 'height' and 'count' bands"""
    candidate = make_candidate("2022_03", 2022, 3, band_names=("height", "count"))
    image = Mock(name="ee_image")
    return SelectedImage(candidate=candidate, image=image)


@pytest.fixture
def export_config():
    return ExportConfig(folder="X", scale=0.5, max_pixels=int(1e12))


@pytest.fixture
def task_factory():
    return FakeTaskFactory()
