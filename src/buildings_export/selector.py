#!/usr/bin/env python3
"""
Image selection: pick the single most recent image for a year and AOI.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import ee
from loguru import logger

from .config import SELECTION
from .errors import InvalidGeometry
from .models import ImageCandidate, NotFound, SelectedImage, SelectionResult
from .spatial_utils import AreaOfInterest


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    """Inclusive UTC bounds of a calendar year"""
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year, 12, 31, 23, 59, 59, 999999, tzinfo=timezone.utc),
    )


def choose_latest(
    candidates: Sequence[ImageCandidate], year: int
) -> Optional[ImageCandidate]:
    """Return the most recent candidate captured within the year, or None.

    Candidates sharing a timestamp keep their incoming order, so the first one
    the descending sort yields wins.
    """
    start, end = year_bounds(year)
    in_year = [c for c in candidates if start <= c.time_start <= end]
    if not in_year:
        return None
    return sorted(in_year, key=lambda c: c.time_start, reverse=True)[0]


class ImageSelector:
    """Select one image from an Earth Engine collection for a year and AOI"""

    def __init__(self, max_candidates: Optional[int] = None):
        if max_candidates is None:
            max_candidates = SELECTION["max_candidates"]
        self.max_candidates = max_candidates

    def select(
        self,
        collection_id: str,
        year: int,
        aoi: Union[AreaOfInterest, Mapping[str, Any]],
    ) -> SelectionResult:
        """Return the latest image intersecting the AOI in the year, or NotFound.

        A GeoJSON mapping is accepted in place of an AreaOfInterest and is
        validated before any query runs.
        """
        if not isinstance(collection_id, str) or not collection_id:
            raise ValueError("collection_id must be a non-empty string")
        if isinstance(year, bool) or not isinstance(year, int):
            raise TypeError(f"year expected int, got {type(year).__name__}")
        if not 1 <= year <= 9999:
            raise ValueError(f"year out of range: {year}")
        if isinstance(aoi, Mapping):
            aoi = AreaOfInterest(dict(aoi))
        elif not isinstance(aoi, AreaOfInterest):
            raise InvalidGeometry(
                f"aoi expected AreaOfInterest or GeoJSON mapping, got {type(aoi).__name__}"
            )
        logger.debug(f"Selecting from {collection_id} for {year} within {aoi.bounds}")

        candidates = self.fetch_candidates(collection_id, year, aoi)
        logger.debug(
            f"{len(candidates)} candidate image(s) in {collection_id} "
            f"for {year} intersecting {aoi.name}"
        )

        chosen = choose_latest(candidates, year)
        if chosen is None:
            logger.warning(f"No image in {collection_id} for {year} over {aoi.name}")
            return NotFound(collection_id=collection_id, year=year)

        logger.info(
            f"Selected {chosen.asset_id} ({chosen.time_start.date()}) "
            f"from {len(candidates)} candidate(s)"
        )
        return SelectedImage(candidate=chosen, image=ee.Image(chosen.asset_id))

    def fetch_candidates(
        self, collection_id: str, year: int, aoi: AreaOfInterest
    ) -> List[ImageCandidate]:
        """Query candidate metadata, most recent first, in a single round trip"""
        collection = (
            ee.ImageCollection(collection_id)
            .filterBounds(aoi.ee_geometry)
            .filter(ee.Filter.calendarRange(year, year, "year"))
            .sort("system:time_start", False)
            .limit(self.max_candidates)
        )

        features = collection.map(
            lambda img: ee.Feature(
                None,
                {
                    "asset_id": img.get("system:id"),
                    "index": img.get("system:index"),
                    "time_start": img.get("system:time_start"),
                    "band_names": img.bandNames(),
                },
            )
        ).getInfo()["features"]

        return self._parse_features(features)

    @staticmethod
    def _parse_features(features: List[Dict]) -> List[ImageCandidate]:
        candidates = []
        for feature in features:
            properties = feature.get("properties", {})
            if not properties.get("asset_id") or properties.get("time_start") is None:
                logger.debug(f"Skipping image without id or timestamp: {properties}")
                continue
            candidates.append(ImageCandidate.from_properties(properties))
        return candidates
