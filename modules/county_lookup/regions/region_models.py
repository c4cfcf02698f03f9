"""Region records and the metadata returned to lookup callers."""

from dataclasses import dataclass, field
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from counties.exceptions import CountiesValidationError
from ..geometry import BoundingBox, Polygon


class RegionMeta(BaseModel):
    """Public description of a resolved county."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0, description="GeoID of the county")
    name: str = Field(..., description="Short county name, e.g. 'Alameda'")
    full_name: str = Field(..., description="Full county name, e.g. 'Alameda County'")
    state_code: str = Field(..., description="Two letter state code")


@dataclass(frozen=True)
class Region:
    """One county: id, outer boundary and metadata.

    The bounding box is always derived from the polygon's vertices.
    """
    id: int
    polygon: Polygon
    name: str = ""
    full_name: str = ""
    state_code: str = ""
    bbox: BoundingBox = field(init=False, compare=False)

    def __post_init__(self):
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id < 0:
            raise CountiesValidationError("Region id must be a non-negative integer",
                                          {"id": self.id})
        if not isinstance(self.polygon, Polygon):
            raise CountiesValidationError("Region polygon must be a Polygon",
                                          {"id": self.id})
        object.__setattr__(self, "bbox", BoundingBox.from_polygon(self.polygon))

    def meta(self) -> RegionMeta:
        return RegionMeta(id=self.id, name=self.name,
                          full_name=self.full_name, state_code=self.state_code)

    def to_record(self) -> Dict[str, Any]:
        """Plain JSON-ready form used by the dataset cache and searcher snapshots."""
        return {
            "id": self.id,
            "name": self.name,
            "full_name": self.full_name,
            "state_code": self.state_code,
            "polygon": [list(c) for c in self.polygon.coordinates],
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Region":
        return cls(
            id=record["id"],
            polygon=Polygon(record["polygon"]),
            name=record.get("name", ""),
            full_name=record.get("full_name", ""),
            state_code=record.get("state_code", ""),
        )
