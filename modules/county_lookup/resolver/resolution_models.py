"""Resolution result models for county lookup.

A point that no county contains is an ordinary outcome and is represented
by a ``Resolution`` whose ``found`` flag is False, never by an exception.
"""

from enum import Enum
from typing import Dict, Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..regions import RegionMeta


class MatchStatus(str, Enum):
    """How a point was resolved."""
    EXACT = "exact"
    WEAK = "weak"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"


class Resolution(BaseModel):
    """Outcome of resolving one point against the index.

    ``EXACT`` and ``WEAK`` carry a region id and a distance (0 for exact).
    ``AMBIGUOUS`` lists the candidate ids that were rejected.
    """
    model_config = ConfigDict(frozen=True)

    status: MatchStatus = Field(..., description="Resolution outcome")
    region_id: Optional[int] = Field(None, ge=0, description="Matched region id")
    distance: Optional[float] = Field(None, ge=0, description="Planar distance to the matched polygon")
    candidates: Tuple[int, ...] = Field(default_factory=tuple, description="Distinct candidate ids")

    @model_validator(mode='after')
    def check_match_fields(self) -> "Resolution":
        if self.status in (MatchStatus.EXACT, MatchStatus.WEAK):
            if self.region_id is None or self.distance is None:
                raise ValueError(f"{self.status.value} resolution needs region_id and distance")
        elif self.region_id is not None:
            raise ValueError(f"{self.status.value} resolution cannot carry a region_id")
        return self

    @classmethod
    def exact(cls, region_id: int) -> "Resolution":
        return cls(status=MatchStatus.EXACT, region_id=region_id, distance=0.0,
                   candidates=(region_id,))

    @classmethod
    def weak(cls, region_id: int, distance: float) -> "Resolution":
        return cls(status=MatchStatus.WEAK, region_id=region_id, distance=distance,
                   candidates=(region_id,))

    @classmethod
    def ambiguous(cls, candidates: Tuple[int, ...]) -> "Resolution":
        return cls(status=MatchStatus.AMBIGUOUS, candidates=tuple(candidates))

    @classmethod
    def not_found(cls) -> "Resolution":
        return cls(status=MatchStatus.NOT_FOUND)

    @property
    def found(self) -> bool:
        return self.region_id is not None

    def as_pair(self) -> Optional[Tuple[int, float]]:
        """``(id, distance)`` for a match, None otherwise."""
        if not self.found:
            return None
        return (self.region_id, self.distance)


class LookupResult(BaseModel):
    """Result of a ``(latitude, longitude)`` lookup through the service."""
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    status: MatchStatus
    distance: Optional[float] = Field(None, ge=0)
    region: Optional[RegionMeta] = None

    @property
    def found(self) -> bool:
        return self.region is not None


class ResolutionStats(BaseModel):
    """Counters for resolution outcomes, fed by a ``StatsObserver`` or a batch run."""
    exact_matches: int = Field(0, ge=0)
    weak_matches: int = Field(0, ge=0)
    ambiguous: int = Field(0, ge=0)
    not_found: int = Field(0, ge=0)
    invalid: int = Field(0, ge=0)
    max_weak_distance: float = Field(0.0, ge=0)

    def total(self) -> int:
        return self.exact_matches + self.weak_matches + self.ambiguous + self.not_found + self.invalid

    def get_match_rate(self) -> float:
        """Share of queries that produced a region."""
        total = self.total()
        return (self.exact_matches + self.weak_matches) / total if total > 0 else 0.0

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total": self.total(),
            "exact": self.exact_matches,
            "weak": self.weak_matches,
            "ambiguous": self.ambiguous,
            "not_found": self.not_found,
            "invalid": self.invalid,
            "match_rate": round(self.get_match_rate(), 4),
            "max_weak_distance": self.max_weak_distance,
        }
