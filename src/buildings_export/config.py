#!/usr/bin/env python3
"""
Configuration for the Open Buildings band exporter
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml  # type: ignore
from loguru import logger

from .errors import ConfigurationError

COLLECTIONS: Dict[str, str] = {
    "open_buildings_temporal": "GOOGLE/Research/open-buildings-temporal/v1",
}

BANDS: List[str] = [
    "building_fractional_count",
    "building_height",
    "building_presence",
]

DEFAULT_YEAR: int = 2022

EXPORT: Dict[str, Union[str, float, int, None]] = {
    "destination": "drive",  # "drive" or "gcs"
    "folder": "GEE_Assets",
    "bucket": None,  # Required for gcs
    "scale": 0.5,  # Native resolution of the 2.5D dataset (metres)
    "max_pixels": 1_000_000_000_000,
    "file_format": "GeoTIFF",
    "crs": None,
}

EARTH_ENGINE: Dict[str, Optional[str]] = {
    "project": None,
}

SELECTION: Dict[str, int] = {
    "max_candidates": 500,
}

LOGGING: Dict[str, str] = {
    "level": "INFO",
}

DESTINATIONS: Tuple[str, ...] = ("drive", "gcs")

TOP_LEVEL_KEYS: Tuple[str, ...] = (
    "year",
    "collection",
    "aoi",
    "bands",
    "export",
    "earth_engine",
    "selection",
    "logging",
)


def _get_int(section: Dict[str, Any], key: str) -> int:
    """Get integer config value with type safety"""
    value = section[key]
    # bool is an int subclass
    if isinstance(value, bool):
        raise ConfigurationError(f"Config {key} expected int, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise ConfigurationError(f"Config {key} expected int, got {type(value).__name__}")


def _get_float(section: Dict[str, Any], key: str) -> float:
    """Get float config value with type safety"""
    value = section[key]
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    raise ConfigurationError(
        f"Config {key} expected float, got {type(value).__name__}"
    )


def _get_optional_str(section: Dict[str, Any], key: str) -> Optional[str]:
    """Get optional string config value with type safety"""
    value = section.get(key)
    if value is None or isinstance(value, str):
        return value
    raise ConfigurationError(f"Config {key} expected str, got {type(value).__name__}")


def _get_list_str(value: Any, key: str) -> List[str]:
    """Get list of str config value with type safety"""
    if isinstance(value, list) and all(isinstance(x, str) for x in value):
        return list(value)
    raise ConfigurationError(f"Config {key} expected List[str], got {value!r}")


@dataclass(frozen=True)
class ExportConfig:
    """Parameters shared by every export task of a run"""

    folder: str
    scale: float
    max_pixels: int
    destination: str = "drive"
    bucket: Optional[str] = None
    file_format: str = "GeoTIFF"
    crs: Optional[str] = None

    def __post_init__(self):
        if not self.folder:
            raise ConfigurationError("Export folder must not be empty")
        if self.scale <= 0:
            raise ConfigurationError(f"Export scale must be positive, got {self.scale}")
        if self.max_pixels <= 0:
            raise ConfigurationError(
                f"Export max_pixels must be positive, got {self.max_pixels}"
            )
        if self.destination not in DESTINATIONS:
            raise ConfigurationError(
                f"Export destination must be one of {DESTINATIONS}, "
                f"got '{self.destination}'"
            )
        if self.destination == "gcs" and not self.bucket:
            raise ConfigurationError("Export destination 'gcs' requires a bucket")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "ExportConfig":
        """Build export settings from a mapping merged over EXPORT defaults"""
        unknown = set(values) - set(EXPORT)
        if unknown:
            raise ConfigurationError(
                f"Unknown export option(s): {', '.join(sorted(unknown))}"
            )
        merged = {**EXPORT, **values}
        return cls(
            folder=_get_optional_str(merged, "folder") or "",
            scale=_get_float(merged, "scale"),
            max_pixels=_get_int(merged, "max_pixels"),
            destination=_get_optional_str(merged, "destination") or "drive",
            bucket=_get_optional_str(merged, "bucket"),
            file_format=_get_optional_str(merged, "file_format") or "GeoTIFF",
            crs=_get_optional_str(merged, "crs"),
        )


@dataclass(frozen=True)
class RunConfig:
    """Everything needed for one select-and-export run"""

    year: int = DEFAULT_YEAR
    collection: str = COLLECTIONS["open_buildings_temporal"]
    bands: Tuple[str, ...] = tuple(BANDS)
    export: ExportConfig = field(default_factory=lambda: ExportConfig.from_dict({}))
    aoi_path: Optional[Path] = None
    project: Optional[str] = EARTH_ENGINE["project"]
    max_candidates: int = SELECTION["max_candidates"]
    log_level: str = LOGGING["level"]

    def __post_init__(self):
        check_bands(self.bands)
        check_log_level(self.log_level)
        if self.max_candidates <= 0:
            raise ConfigurationError("Config selection.max_candidates must be positive")


def check_bands(bands: Sequence[str]) -> None:
    """Reject empty, duplicated or non-string band lists"""
    if isinstance(bands, str):
        raise ConfigurationError("bands must be a sequence of band names, not a string")
    if not bands:
        raise ConfigurationError("At least one band must be requested")
    seen = set()
    for band_name in bands:
        if not isinstance(band_name, str) or not band_name:
            raise ConfigurationError(
                f"Band names must be non-empty strings, got {band_name!r}"
            )
        if band_name in seen:
            raise ConfigurationError(f"Band '{band_name}' requested more than once")
        seen.add(band_name)


def check_log_level(level: str) -> None:
    """Reject levels loguru does not know"""
    try:
        logger.level(level)
    except (ValueError, TypeError):
        raise ConfigurationError(f"Unknown log level '{level}'")


def load_config(path: Optional[Union[str, Path]] = None) -> RunConfig:
    """Load run configuration from YAML, falling back to module defaults"""
    raw: Dict[str, Any] = {}
    base_dir = Path.cwd()
    if path is not None:
        config_path = Path(path)
        try:
            with open(config_path, "r") as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Config file {config_path} is not valid YAML: {e}")
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        base_dir = config_path.resolve().parent

    return config_from_dict(raw, base_dir=base_dir)


def _get_section(
    raw: Dict[str, Any], key: str, defaults: Dict[str, Any]
) -> Dict[str, Any]:
    """Get a mapping section merged over its defaults, rejecting unknown keys"""
    section = raw.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config {key} must be a mapping")
    unknown = set(section) - set(defaults)
    if unknown:
        raise ConfigurationError(
            f"Unknown {key} option(s): {', '.join(sorted(map(str, unknown)))}"
        )
    return {**defaults, **section}


def config_from_dict(raw: Dict[str, Any], base_dir: Optional[Path] = None) -> RunConfig:
    """Build a RunConfig from an already parsed mapping"""
    unknown = set(raw) - set(TOP_LEVEL_KEYS)
    if unknown:
        raise ConfigurationError(
            f"Unknown config key(s): {', '.join(sorted(map(str, unknown)))}"
        )

    year = _get_int({"year": raw.get("year", DEFAULT_YEAR)}, "year")

    collection = raw.get("collection", COLLECTIONS["open_buildings_temporal"])
    if not isinstance(collection, str) or not collection:
        raise ConfigurationError("Config collection must be a non-empty string")

    bands = _get_list_str(raw.get("bands", BANDS), "bands")

    export_section = raw.get("export") or {}
    if not isinstance(export_section, dict):
        raise ConfigurationError("Config export must be a mapping")

    ee_section = _get_section(raw, "earth_engine", EARTH_ENGINE)
    selection_section = _get_section(raw, "selection", SELECTION)
    logging_section = _get_section(raw, "logging", LOGGING)

    aoi_path = None
    if raw.get("aoi") is not None:
        aoi_value = raw["aoi"]
        if not isinstance(aoi_value, str):
            raise ConfigurationError("Config aoi must be a path to a GeoJSON file")
        aoi_path = Path(aoi_value)
        if not aoi_path.is_absolute() and base_dir is not None:
            aoi_path = base_dir / aoi_path

    level = logging_section["level"]
    if not isinstance(level, str):
        raise ConfigurationError(f"Config logging.level expected str, got {level!r}")

    return RunConfig(
        year=year,
        collection=collection,
        bands=tuple(bands),
        export=ExportConfig.from_dict(export_section),
        aoi_path=aoi_path,
        project=_get_optional_str(ee_section, "project"),
        max_candidates=_get_int(selection_section, "max_candidates"),
        log_level=level.upper(),
    )
