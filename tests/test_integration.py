#!/usr/bin/env python3
"""
Integration tests for the select-and-export workflow and the command line.
"""

import json
from unittest.mock import Mock, patch

import ee
import pytest

from buildings_export.config import ExportConfig, RunConfig
from buildings_export.core import (
    EXIT_FATAL,
    EXIT_OK,
    EXIT_PARTIAL,
    BuildingsExporter,
    main,
)
from buildings_export.dispatcher import BandExportDispatcher
from buildings_export.errors import SelectionNotFound
from buildings_export.models import NotFound

from conftest import OPEN_BUILDINGS, FakeTaskFactory


@pytest.fixture
def run_config(export_config):
    return RunConfig(year=2022, bands=("height", "count", "bogus"), export=export_config)


@pytest.fixture
def mock_selector(selected_image):
    selector = Mock()
    selector.select.return_value = selected_image
    return selector


class TestBuildingsExporter:
    """Test the orchestrated workflow"""

    def test_run_reports_every_band(self, mock_selector, aoi, run_config, task_factory):
        exporter = BuildingsExporter(
            selector=mock_selector,
            dispatcher=BandExportDispatcher(task_factory=task_factory),
        )

        report = exporter.run(run_config, aoi)

        mock_selector.select.assert_called_once_with(OPEN_BUILDINGS, 2022, aoi)
        assert [r.band_name for r in report.results] == ["height", "count", "bogus"]
        assert len(report.submitted) == 2
        assert len(report.failed) == 1
        assert report.failed[0].error_type == "BandNotFound"

    def test_not_found_halts_before_dispatch(self, aoi, run_config):
        selector = Mock()
        selector.select.return_value = NotFound(OPEN_BUILDINGS, 2022)
        dispatcher = Mock()
        exporter = BuildingsExporter(selector=selector, dispatcher=dispatcher)

        with pytest.raises(SelectionNotFound):
            exporter.run(run_config, aoi)

        dispatcher.dispatch.assert_not_called()

    def test_export_report(self, mock_selector, aoi, run_config, task_factory, temp_dir):
        exporter = BuildingsExporter(
            selector=mock_selector,
            dispatcher=BandExportDispatcher(task_factory=task_factory),
        )
        report = exporter.run(run_config, aoi)

        path = temp_dir / "report.json"
        exporter.export_report(report, path)

        with open(path) as f:
            data = json.load(f)
        assert data["year"] == 2022
        assert data["image"]["index"] == "2022_03"
        assert data["submitted_count"] == 2
        assert data["failed_count"] == 1
        assert [r["status"] for r in data["results"]] == ["submitted", "submitted", "error"]


class TestCommandLine:
    """Test main() exit codes with Earth Engine mocked out"""

    @pytest.fixture
    def cli_env(self, mock_selector, mock_ee_geometry):
        factory = FakeTaskFactory()
        with patch("buildings_export.core.init_ee") as mock_init, patch(
            "buildings_export.core.ImageSelector", return_value=mock_selector
        ), patch(
            "buildings_export.core.BandExportDispatcher",
            side_effect=lambda: BandExportDispatcher(task_factory=factory),
        ):
            yield mock_init, factory

    def test_all_bands_submitted(self, cli_env, nairobi_geojson_file, temp_dir):
        mock_init, factory = cli_env
        report_path = temp_dir / "report.json"

        code = main(
            [
                "--aoi", str(nairobi_geojson_file),
                "--year", "2022",
                "--bands", "height", "count",
                "--folder", "X",
                "--project", "buildings-project",
                "--report", str(report_path),
            ]
        )

        assert code == EXIT_OK
        mock_init.assert_called_once_with("buildings-project")
        assert [c["filename_prefix"] for c in factory.calls] == ["height_2022", "count_2022"]
        assert factory.calls[0]["export_config"].folder == "X"
        assert report_path.exists()

    def test_partial_failure(self, cli_env, nairobi_geojson_file):
        code = main(
            ["--aoi", str(nairobi_geojson_file), "--bands", "height", "count", "bogus"]
        )
        assert code == EXIT_PARTIAL

    def test_not_found_is_fatal(self, cli_env, mock_selector, nairobi_geojson_file):
        _, factory = cli_env
        mock_selector.select.return_value = NotFound(OPEN_BUILDINGS, 2020)

        code = main(["--aoi", str(nairobi_geojson_file), "--year", "2020"])

        assert code == EXIT_FATAL
        assert factory.calls == []

    def test_earth_engine_error_is_fatal(self, cli_env, mock_selector, nairobi_geojson_file):
        mock_selector.select.side_effect = ee.EEException("Collection not found")
        assert main(["--aoi", str(nairobi_geojson_file)]) == EXIT_FATAL

    def test_missing_aoi_is_fatal(self, cli_env):
        mock_init, _ = cli_env
        assert main([]) == EXIT_FATAL
        mock_init.assert_not_called()

    def test_invalid_aoi_is_fatal(self, cli_env, temp_dir):
        mock_init, _ = cli_env
        path = temp_dir / "point.geojson"
        path.write_text(json.dumps({"type": "Point", "coordinates": [36.8, -1.3]}))

        assert main(["--aoi", str(path)]) == EXIT_FATAL
        mock_init.assert_not_called()

    def test_invalid_override_is_fatal(self, cli_env, nairobi_geojson_file):
        code = main(["--aoi", str(nairobi_geojson_file), "--destination", "gcs"])
        assert code == EXIT_FATAL

    def test_config_file(self, cli_env, nairobi_geojson_file, temp_dir):
        _, factory = cli_env
        config_path = temp_dir / "config.yaml"
        config_path.write_text(
            "year: 2022\n"
            f"aoi: {nairobi_geojson_file.name}\n"
            "bands: [count]\n"
            "export:\n  folder: from_file\n  scale: 1.0\n"
        )

        assert main(["--config", str(config_path), "--scale", "0.5"]) == EXIT_OK
        export_config = factory.calls[0]["export_config"]
        assert isinstance(export_config, ExportConfig)
        assert export_config.folder == "from_file"
        assert export_config.scale == 0.5

    def test_duplicate_bands_are_fatal(self, cli_env, nairobi_geojson_file):
        mock_init, factory = cli_env
        code = main(["--aoi", str(nairobi_geojson_file), "--bands", "count", "count"])
        assert code == EXIT_FATAL
        mock_init.assert_not_called()
        assert factory.calls == []

    def test_unknown_log_level_is_fatal(self, cli_env, nairobi_geojson_file):
        mock_init, _ = cli_env
        code = main(["--aoi", str(nairobi_geojson_file), "--log-level", "verbose"])
        assert code == EXIT_FATAL
        mock_init.assert_not_called()

    def test_bbox_area_of_interest(self, cli_env, mock_selector):
        _, factory = cli_env

        code = main(["--bbox", "36.80", "-1.30", "36.84", "-1.27", "--bands", "count"])

        assert code == EXIT_OK
        aoi = mock_selector.select.call_args.args[2]
        assert aoi.name == "bbox"
        assert aoi.bounds == pytest.approx([36.80, -1.30, 36.84, -1.27])
        assert [c["filename_prefix"] for c in factory.calls] == ["count_2022"]

    def test_inverted_bbox_is_fatal(self, cli_env):
        mock_init, _ = cli_env
        assert main(["--bbox", "36.84", "-1.30", "36.80", "-1.27"]) == EXIT_FATAL
        mock_init.assert_not_called()

    def test_aoi_and_bbox_are_exclusive(self, cli_env, nairobi_geojson_file):
        with pytest.raises(SystemExit):
            main(["--aoi", str(nairobi_geojson_file), "--bbox", "0", "0", "1", "1"])
