"""Containment resolver: turns bounding-box candidates into one county.

Resolution policy:

1. Ask the index for every id whose bounding box contains the point.
2. Test each distinct candidate's polygon pieces, in candidate order; the
   first polygon containing the point wins with distance 0.
3. If no polygon contains it and only one distinct id was a candidate,
   accept that id as a weak match with its planar distance. This mostly
   happens on county borders where the query and the simplified polygons
   disagree by a few metres.
4. Several candidates and no containing polygon is ambiguous and resolves
   to nothing; picking the nearest edge is deliberately not attempted.
5. No candidates resolves to nothing.
"""

import logging
from typing import List, Optional, Protocol, Sequence

from ..geometry import Point, Polygon
from .observers import NullObserver, ResolutionObserver
from .resolution_models import Resolution

logger = logging.getLogger(__name__)


class CandidateIndex(Protocol):
    """What the resolver needs from an index: candidate ids and their polygons."""

    def query(self, point: Point) -> List[int]:
        ...

    def polygons(self, region_id: int) -> Sequence[Polygon]:
        ...


class ContainmentResolver:
    """Resolves points against any ``CandidateIndex``.

    Holds no mutable state of its own, so one resolver can serve many
    threads when the index is read-only.
    """

    def __init__(self, index: CandidateIndex, observer: Optional[ResolutionObserver] = None):
        self.index = index
        self.observer = observer or NullObserver()

    def resolve(self, point: Point) -> Resolution:
        candidates = self.index.query(point)
        if not candidates:
            resolution = Resolution.not_found()
            self._notify_not_found(point, resolution)
            return resolution

        distinct = []
        seen = set()
        for region_id in candidates:
            if region_id in seen:
                continue
            seen.add(region_id)
            distinct.append(region_id)
            for polygon in self.index.polygons(region_id):
                if polygon.contains(point):
                    return Resolution.exact(region_id)

        if len(distinct) == 1:
            region_id = distinct[0]
            distance = min(polygon.distance_to(point)
                           for polygon in self.index.polygons(region_id))
            resolution = Resolution.weak(region_id, distance)
            if distance > 0:
                self._notify_weak(point, region_id, distance)
            return resolution

        resolution = Resolution.ambiguous(tuple(distinct))
        self._notify_not_found(point, resolution)
        return resolution

    def _notify_weak(self, point: Point, region_id: int, distance: float) -> None:
        try:
            self.observer.on_weak_match(point, region_id, distance)
        except Exception as e:
            logger.warning(f"Resolution observer failed on weak match: {e}", exc_info=True)

    def _notify_not_found(self, point: Point, resolution: Resolution) -> None:
        try:
            self.observer.on_not_found(point, resolution)
        except Exception as e:
            logger.warning(f"Resolution observer failed on not-found: {e}", exc_info=True)
