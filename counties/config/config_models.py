"""Typed configuration models for the county lookup system.

Pydantic models validating the ``data`` and ``lookup`` sections of an
environment configuration.
"""

from enum import Enum
from pathlib import Path
from typing import List, Optional
import logging

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# American Samoa, Guam, Virgin Islands, Northern Mariana Islands
DEFAULT_EXCLUDED_STATES = ["AS", "GU", "VI", "MP"]


class InvalidGeometryPolicy(str, Enum):
    """What the dataset loader does with a record whose geometry is invalid."""
    SKIP = "skip"
    FAIL = "fail"


class DataPaths(BaseModel):
    """Locations of the county source data and its derived caches."""
    data_dir: str = Field(".", description="Directory holding all data files")
    json_file: str = Field("county_poly.json", description="Source county polygon JSON")
    cache_file: str = Field("county_geo.json.gz", description="Prepared region cache")
    searcher_file: str = Field("county_searcher.json.gz", description="Persisted frozen searcher")

    def json_path(self) -> Path:
        return Path(self.data_dir) / self.json_file

    def cache_path(self) -> Path:
        return Path(self.data_dir) / self.cache_file

    def searcher_path(self) -> Path:
        return Path(self.data_dir) / self.searcher_file


class LookupConfig(BaseModel):
    """Settings for dataset loading and index construction."""
    excluded_states: List[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_STATES),
        description="State codes whose regions are left out of the index"
    )
    on_invalid_geometry: InvalidGeometryPolicy = Field(
        InvalidGeometryPolicy.FAIL,
        description="Skip-and-log or fail-fast on an invalid region geometry"
    )
    validate_topology: bool = Field(False, description="Check polygon validity with shapely at load time")
    node_capacity: int = Field(16, ge=4, le=256, description="Maximum entries per R-tree node")
    min_bbox_points: int = Field(5, ge=0, description="Minimum points in a source bbox ring")
    weak_match_log_level: Optional[str] = Field("INFO", description="Level for weak-match events")

    @field_validator('excluded_states')
    @classmethod
    def normalize_states(cls, v: List[str]) -> List[str]:
        """Upper-case and de-duplicate state codes, keeping their order."""
        seen = []
        for code in v:
            code = code.strip().upper()
            if code and code not in seen:
                seen.append(code)
        return seen

    @field_validator('weak_match_log_level')
    @classmethod
    def validate_log_level(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING"):
            logger.warning(f"weak_match_log_level {v} is not DEBUG/INFO/WARNING, using INFO")
            return "INFO"
        return level
