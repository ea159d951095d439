#!/usr/bin/env python3
"""
Result types passed between selection, dispatch and reporting.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import BuildingsExportError

SUBMITTED = "submitted"
ERROR = "error"


@dataclass(frozen=True)
class ImageCandidate:
    """Metadata for one collection image that passed the server-side filters"""

    asset_id: str
    index: str
    time_start: datetime
    band_names: Tuple[str, ...] = ()

    @classmethod
    def from_properties(cls, properties: Dict[str, Any]) -> "ImageCandidate":
        """Build from the properties of a mapped ee.Feature"""
        return cls(
            asset_id=properties["asset_id"],
            index=properties.get("index") or properties["asset_id"].rsplit("/", 1)[-1],
            time_start=datetime.fromtimestamp(
                properties["time_start"] / 1000, tz=timezone.utc
            ),
            band_names=tuple(properties.get("band_names") or ()),
        )


@dataclass(frozen=True)
class SelectedImage:
    """The single image chosen for a (year, AOI) pair"""

    candidate: ImageCandidate
    image: Any = field(repr=False, compare=False)  # ee.Image

    @property
    def asset_id(self) -> str:
        return self.candidate.asset_id

    @property
    def time_start(self) -> datetime:
        return self.candidate.time_start

    @property
    def band_names(self) -> Tuple[str, ...]:
        return self.candidate.band_names

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.candidate.asset_id,
            "index": self.candidate.index,
            "time_start": self.candidate.time_start.isoformat(),
            "band_names": list(self.candidate.band_names),
        }


@dataclass(frozen=True)
class NotFound:
    """Selection outcome when no image matches; callers must branch on it"""

    collection_id: str
    year: int
    reason: str = "no image intersects the AOI within the year"


SelectionResult = Union[SelectedImage, NotFound]


@dataclass(frozen=True)
class BandExportResult:
    """Outcome of submitting one band's export task"""

    band_name: str
    description: str
    filename_prefix: str
    status: str
    task_id: Optional[str] = None
    error_type: Optional[str] = None
    error_detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SUBMITTED

    @classmethod
    def submitted(
        cls, band_name: str, description: str, filename_prefix: str, task_id: Optional[str]
    ) -> "BandExportResult":
        return cls(band_name, description, filename_prefix, SUBMITTED, task_id=task_id)

    @classmethod
    def failed(
        cls,
        band_name: str,
        description: str,
        filename_prefix: str,
        error: BuildingsExportError,
    ) -> "BandExportResult":
        return cls(
            band_name,
            description,
            filename_prefix,
            ERROR,
            error_type=type(error).__name__,
            error_detail=str(error),
        )

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "band_name": self.band_name,
            "description": self.description,
            "filename_prefix": self.filename_prefix,
            "status": self.status,
        }
        if self.task_id is not None:
            record["task_id"] = self.task_id
        if self.status == ERROR:
            record["error_type"] = self.error_type
            record["error_detail"] = self.error_detail
        return record


@dataclass
class RunReport:
    """Per-band status report for one select-and-export run"""

    collection_id: str
    year: int
    image: SelectedImage
    results: List[BandExportResult] = field(default_factory=list)

    @property
    def submitted(self) -> List[BandExportResult]:
        return [r for r in self.results if r.ok]

    @property
    def failed(self) -> List[BandExportResult]:
        return [r for r in self.results if not r.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection": self.collection_id,
            "year": self.year,
            "image": self.image.to_dict(),
            "submitted_count": len(self.submitted),
            "failed_count": len(self.failed),
            "results": [r.to_dict() for r in self.results],
        }
