#!/usr/bin/env python3
"""
Spatial utilities for loading and validating the area of interest.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple, Union

import ee
from shapely.geometry import mapping, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union
from shapely.validation import explain_validity

from .errors import InvalidGeometry

AOI_TYPES: Tuple[str, ...] = ("Polygon", "MultiPolygon")


def validate_coordinates(lat: float, lon: float) -> bool:
    """Validate coordinate ranges"""
    return -90 <= lat <= 90 and -180 <= lon <= 180


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _iter_rings(geometry: Dict[str, Any]) -> List[Sequence[Sequence[float]]]:
    """Return every linear ring of a Polygon or MultiPolygon mapping"""
    coordinates = geometry.get("coordinates")
    if not coordinates:
        raise InvalidGeometry(f"{geometry.get('type')} has no coordinates")
    if not isinstance(coordinates, (list, tuple)):
        raise InvalidGeometry(f"{geometry['type']} coordinates must be an array")
    polygons = [coordinates] if geometry["type"] == "Polygon" else list(coordinates)

    rings = []
    for polygon in polygons:
        if not isinstance(polygon, (list, tuple)) or not polygon:
            raise InvalidGeometry(
                f"Polygon must be a non-empty array of rings, got {polygon!r}"
            )
        for ring in polygon:
            if not isinstance(ring, (list, tuple)):
                raise InvalidGeometry(f"Ring must be an array of positions, got {ring!r}")
            rings.append(ring)
    return rings


def _check_rings(geometry: Dict[str, Any]) -> None:
    """Check ring closure and lon/lat ranges before handing off to shapely"""
    for ring in _iter_rings(geometry):
        for position in ring:
            if (
                not isinstance(position, (list, tuple))
                or len(position) < 2
                or not all(_is_number(v) for v in position)
            ):
                raise InvalidGeometry(
                    f"Position must be an array of at least 2 numbers, got {position!r}"
                )
        if len(ring) < 4:
            raise InvalidGeometry(
                f"Ring has {len(ring)} positions, at least 4 are required"
            )
        if list(ring[0][:2]) != list(ring[-1][:2]):
            raise InvalidGeometry(f"Ring is not closed: {ring[0]} != {ring[-1]}")
        for position in ring:
            lon, lat = position[0], position[1]
            if not validate_coordinates(lat, lon):
                raise InvalidGeometry(
                    f"Coordinate out of range (lon={lon}, lat={lat}); "
                    "expected [lon, lat] in EPSG:4326"
                )


def _extract_geometry(geojson: Dict[str, Any]) -> Dict[str, Any]:
    """Pull a single geometry out of a Geometry, Feature or FeatureCollection"""
    if not isinstance(geojson, dict) or "type" not in geojson:
        raise InvalidGeometry("AOI must be a GeoJSON object with a 'type'")

    geo_type = geojson["type"]
    if geo_type == "Feature":
        geometry = geojson.get("geometry")
        if not geometry:
            raise InvalidGeometry("AOI feature has no geometry")
        return _extract_geometry(geometry)

    if geo_type == "FeatureCollection":
        features = geojson.get("features") or []
        if not features:
            raise InvalidGeometry("AOI feature collection is empty")
        geometries = [_extract_geometry(f) for f in features]
        if len(geometries) == 1:
            return geometries[0]
        for geometry in geometries:
            _check_rings(geometry)
        merged = unary_union([shape(g) for g in geometries])
        return json.loads(json.dumps(mapping(merged)))

    if geo_type not in AOI_TYPES:
        raise InvalidGeometry(
            f"AOI geometry must be one of {AOI_TYPES}, got '{geo_type}'"
        )
    return geojson


@dataclass(frozen=True)
class AreaOfInterest:
    """Validated polygonal area bounding both image selection and export"""

    geometry: Dict[str, Any]
    name: str = "aoi"
    geom: BaseGeometry = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        geometry = _extract_geometry(self.geometry)
        _check_rings(geometry)

        try:
            geom = shape(geometry)
        except (ValueError, TypeError, IndexError) as e:
            raise InvalidGeometry(f"AOI could not be parsed: {e}")

        if geom.is_empty:
            raise InvalidGeometry("AOI geometry is empty")
        if not geom.is_valid:
            raise InvalidGeometry(f"AOI geometry is invalid: {explain_validity(geom)}")
        if geom.area <= 0:
            raise InvalidGeometry("AOI area must be positive")

        object.__setattr__(self, "geometry", geometry)
        object.__setattr__(self, "geom", geom)

    @property
    def bounds(self) -> List[float]:
        """Return [west, south, east, north]"""
        return list(self.geom.bounds)

    @property
    def ee_geometry(self) -> "ee.Geometry":
        """Earth Engine view of the AOI, used for filtering, clipping and export region"""
        return ee.Geometry(self.geometry)

    @classmethod
    def from_bbox(cls, bbox: Sequence[float], name: str = "aoi") -> "AreaOfInterest":
        """Create an AOI from [west, south, east, north]"""
        if len(bbox) != 4:
            raise InvalidGeometry("bbox must contain exactly 4 values [west, south, east, north]")
        west, south, east, north = bbox
        if west >= east or south >= north:
            raise InvalidGeometry(f"bbox is inverted or degenerate: {list(bbox)}")
        ring = [[west, south], [east, south], [east, north], [west, north], [west, south]]
        return cls({"type": "Polygon", "coordinates": [ring]}, name=name)


def load_aoi(path: Union[str, Path]) -> AreaOfInterest:
    """Load an AOI from a GeoJSON file"""
    aoi_path = Path(path)
    try:
        with open(aoi_path, "r") as f:
            geojson = json.load(f)
    except FileNotFoundError:
        raise InvalidGeometry(f"AOI file not found: {aoi_path}")
    except json.JSONDecodeError as e:
        raise InvalidGeometry(f"AOI file {aoi_path} is not valid JSON: {e}")

    return AreaOfInterest(geojson, name=aoi_path.stem)
