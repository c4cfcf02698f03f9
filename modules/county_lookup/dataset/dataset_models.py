"""Models for the county source dataset and the prepared region cache.

The source JSON is produced by the county boundary extraction tool: one
object per county with string-encoded ``bbox`` and ``poly`` coordinate
arrays in ``[lon, lat]`` order and a string ``geoid``.
"""

import json
from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field

from counties.exceptions import CountiesValidationError, InvalidGeometryError
from ..geometry import Polygon
from ..regions import Region
from ..searcher import SnapshotRegion

CACHE_FORMAT = "county-regions"
CACHE_VERSION = 1


class RawCountyRecord(BaseModel):
    """One county as it appears in the source JSON."""
    geoid: str = Field(..., description="Numeric GeoID as a string")
    fullname: str = Field("", description="Full county name")
    name: str = Field("", description="Short county name")
    state: str = Field("", description="Two letter state code")
    geotype: str = Field("", description="Geography type from the source")
    bbox: str = Field("", description="JSON-encoded bounding box ring")
    poly: str = Field(..., description="JSON-encoded boundary ring")

    def to_region(self, min_bbox_points: int = 5) -> Region:
        """Convert to a Region; the bounding box is recomputed from ``poly``.

        Raises:
            CountiesValidationError: If the geoid is not an integer
            InvalidGeometryError: If bbox or polygon cannot be decoded
        """
        try:
            geoid = int(self.geoid)
        except ValueError:
            raise CountiesValidationError("GeoID is not an integer", {"geoid": self.geoid})

        try:
            bbox_points = json.loads(self.bbox) if self.bbox else []
        except json.JSONDecodeError as e:
            raise InvalidGeometryError(f"Cannot decode bbox: {e}", {"geoid": self.geoid})
        if not isinstance(bbox_points, list):
            raise InvalidGeometryError("Bbox is not a coordinate array", {"geoid": self.geoid})
        if len(bbox_points) < min_bbox_points:
            raise InvalidGeometryError("Incomplete bbox",
                                       {"geoid": self.geoid, "points": len(bbox_points)})

        try:
            poly_points = json.loads(self.poly)
        except json.JSONDecodeError as e:
            raise InvalidGeometryError(f"Cannot decode poly: {e}", {"geoid": self.geoid})
        if not isinstance(poly_points, list):
            raise InvalidGeometryError("Poly is not a coordinate array", {"geoid": self.geoid})

        polygon = Polygon(poly_points)
        return Region(id=geoid, polygon=polygon, name=self.name,
                      full_name=self.fullname, state_code=self.state)


class PreparedRegionCache(BaseModel):
    """Prepared cache of parsed regions, written by ``prepare`` for fast startup."""
    format: Literal["county-regions"] = CACHE_FORMAT
    version: int = CACHE_VERSION
    created_at: datetime = Field(default_factory=datetime.now)
    source: str = Field("", description="Source file the cache was prepared from")
    regions: List[SnapshotRegion] = Field(default_factory=list)


class LoadReport(BaseModel):
    """Summary of one dataset load."""
    source: str
    records_read: int = Field(0, ge=0)
    regions_loaded: int = Field(0, ge=0)
    skipped_invalid: int = Field(0, ge=0)
    topology_warnings: int = Field(0, ge=0)
    load_duration: float = Field(0.0, ge=0)
    errors: List[str] = Field(default_factory=list)

    def get_summary(self) -> str:
        return (f"Loaded {self.regions_loaded}/{self.records_read} regions from {self.source} "
                f"in {self.load_duration:.2f}s ({self.skipped_invalid} skipped, "
                f"{self.topology_warnings} topology warnings)")
