"""Build-time bounding-box index over county polygons.

County lookup strategy: first the R-tree returns every county whose
bounding box contains the point (near a bay shore a point can fall in the
boxes of three or four counties), then the candidates' polygons decide
which one actually contains it. This module is the first half.
"""

import logging
from typing import Dict, List, Tuple

from counties.exceptions import IndexFrozenError, CountiesValidationError
from ..geometry import BoundingBox, Point, Polygon
from .rtree import RTree, DEFAULT_NODE_CAPACITY

logger = logging.getLogger(__name__)


class Finder:
    """Mutable index of ``(region id, polygon)`` pieces, keyed by bounding box.

    One id may be added several times, once per disjoint polygon piece of a
    region; queries may then return that id more than once. Single writer:
    do not query while another thread is still adding.
    """

    def __init__(self, node_capacity: int = DEFAULT_NODE_CAPACITY):
        self._tree = RTree(max_entries=node_capacity)
        self._pieces: Dict[int, List[Polygon]] = {}
        self._entries: List[Tuple[int, Polygon]] = []
        self._frozen = False

    @property
    def node_capacity(self) -> int:
        return self._tree.max_entries

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add(self, region_id: int, polygon: Polygon) -> BoundingBox:
        """Index one polygon piece under ``region_id`` and return its bounding box.

        Raises:
            IndexFrozenError: If the finder has been frozen
        """
        if self._frozen:
            raise IndexFrozenError("Cannot add to a frozen finder", {"id": region_id})
        if isinstance(region_id, bool) or not isinstance(region_id, int) or region_id < 0:
            raise CountiesValidationError("Region id must be a non-negative integer",
                                          {"id": region_id})

        bbox = BoundingBox.from_polygon(polygon)
        self._tree.insert(bbox, region_id)
        self._pieces.setdefault(region_id, []).append(polygon)
        self._entries.append((region_id, polygon))
        return bbox

    def size(self) -> int:
        """Number of bounding boxes indexed."""
        return len(self._tree)

    def __len__(self) -> int:
        return len(self._tree)

    def query(self, point: Point) -> List[int]:
        """Ids of every indexed box containing ``point``; may repeat, may be empty."""
        return self._tree.search(point.x, point.y)

    def polygons(self, region_id: int) -> Tuple[Polygon, ...]:
        return tuple(self._pieces.get(region_id, ()))

    def entries(self) -> List[Tuple[int, Polygon]]:
        """``(id, polygon)`` pieces in insertion order."""
        return list(self._entries)

    def region_ids(self) -> List[int]:
        return list(self._pieces.keys())

    def depth(self) -> int:
        return self._tree.depth()

    def freeze(self) -> None:
        if not self._frozen:
            self._frozen = True
            logger.debug(f"Finder frozen with {self.size()} boxes, tree depth {self.depth()}")
