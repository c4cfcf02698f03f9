"""Planar geometry primitives for county lookup.

Points are ``(x, y)`` = ``(longitude, latitude)`` throughout this package.
Distances are planar, in coordinate degrees; no geodesic correction is made.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence, Tuple, Union

from counties.exceptions import InvalidGeometryError, InvalidPointError

Coordinate = Tuple[float, float]


@dataclass(frozen=True)
class Point:
    """An immutable planar point, ``x`` is longitude and ``y`` is latitude."""
    x: float
    y: float

    def __post_init__(self):
        try:
            x, y = float(self.x), float(self.y)
        except (TypeError, ValueError):
            raise InvalidPointError(
                "Point coordinates must be numbers",
                {"x": self.x, "y": self.y}
            )
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidPointError(
                "Point coordinates must be finite",
                {"x": self.x, "y": self.y}
            )
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    @classmethod
    def from_lat_lon(cls, latitude: float, longitude: float) -> "Point":
        """Build a point from the ``(latitude, longitude)`` order callers usually hold."""
        return cls(longitude, latitude)

    @property
    def latitude(self) -> float:
        return self.y

    @property
    def longitude(self) -> float:
        return self.x

    def as_tuple(self) -> Coordinate:
        return (self.x, self.y)


def _segment_distance(px: float, py: float,
                      x1: float, y1: float, x2: float, y2: float) -> float:
    """Distance from ``(px, py)`` to the closed segment ``(x1, y1)-(x2, y2)``."""
    dx = x2 - x1
    dy = y2 - y1
    if dx == 0.0 and dy == 0.0:
        return math.hypot(px - x1, py - y1)
    t = ((px - x1) * dx + (py - y1) * dy) / (dx * dx + dy * dy)
    if t <= 0.0:
        return math.hypot(px - x1, py - y1)
    if t >= 1.0:
        return math.hypot(px - x2, py - y2)
    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy))


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned envelope, inclusive on every edge."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self):
        values = (self.min_x, self.min_y, self.max_x, self.max_y)
        if not all(math.isfinite(v) for v in values):
            raise InvalidGeometryError("Bounding box coordinates must be finite",
                                       {"bbox": values})
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise InvalidGeometryError("Bounding box min exceeds max",
                                       {"bbox": values})

    @classmethod
    def from_points(cls, min_point: Point, max_point: Point) -> "BoundingBox":
        return cls(min_point.x, min_point.y, max_point.x, max_point.y)

    @classmethod
    def from_coordinates(cls, coordinates: Iterable[Coordinate]) -> "BoundingBox":
        """Envelope of a non-empty coordinate sequence.

        Extrema start from the first coordinate, so all-negative data works.
        """
        iterator = iter(coordinates)
        try:
            min_x, min_y = next(iterator)
        except StopIteration:
            raise InvalidGeometryError("Cannot compute bounding box of no coordinates")
        max_x, max_y = min_x, min_y
        for x, y in iterator:
            if x < min_x:
                min_x = x
            elif x > max_x:
                max_x = x
            if y < min_y:
                min_y = y
            elif y > max_y:
                max_y = y
        return cls(min_x, min_y, max_x, max_y)

    @classmethod
    def from_polygon(cls, polygon: "Polygon") -> "BoundingBox":
        return cls.from_coordinates(polygon.coordinates)

    @property
    def min(self) -> Point:
        return Point(self.min_x, self.min_y)

    @property
    def max(self) -> Point:
        return Point(self.max_x, self.max_y)

    def contains(self, point: Point) -> bool:
        return self.contains_xy(point.x, point.y)

    def contains_xy(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def intersects(self, other: "BoundingBox") -> bool:
        return (self.min_x <= other.max_x and other.min_x <= self.max_x and
                self.min_y <= other.max_y and other.min_y <= self.max_y)

    def union(self, other: "BoundingBox") -> "BoundingBox":
        return BoundingBox(min(self.min_x, other.min_x), min(self.min_y, other.min_y),
                           max(self.max_x, other.max_x), max(self.max_y, other.max_y))

    def area(self) -> float:
        return (self.max_x - self.min_x) * (self.max_y - self.min_y)

    def enlargement(self, other: "BoundingBox") -> float:
        """Area this box would gain by growing to cover ``other``."""
        return self.union(other).area() - self.area()

    def center(self) -> Coordinate:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def distance_to(self, point: Point) -> float:
        dx = max(self.min_x - point.x, 0.0, point.x - self.max_x)
        dy = max(self.min_y - point.y, 0.0, point.y - self.max_y)
        return math.hypot(dx, dy)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)


class Polygon:
    """Immutable closed ring of ``(lon, lat)`` vertices.

    An open ring is closed by repeating its first vertex. A closed ring
    needs at least four points, i.e. three distinct corners.
    """

    MIN_CLOSED_POINTS = 4

    __slots__ = ("_ring", "_bbox")

    def __init__(self, coordinates: Iterable[Sequence[float]]):
        ring = []
        for position, pair in enumerate(coordinates):
            try:
                x, y = float(pair[0]), float(pair[1])
            except (TypeError, ValueError, IndexError):
                raise InvalidGeometryError("Polygon vertex is not a coordinate pair",
                                           {"position": position, "vertex": pair})
            if not (math.isfinite(x) and math.isfinite(y)):
                raise InvalidGeometryError("Polygon vertex is not finite",
                                           {"position": position, "vertex": pair})
            ring.append((x, y))

        if ring and ring[0] != ring[-1]:
            ring.append(ring[0])
        if len(ring) < self.MIN_CLOSED_POINTS:
            raise InvalidGeometryError(
                f"Polygon needs at least {self.MIN_CLOSED_POINTS} points in a closed ring",
                {"points": len(ring)}
            )

        object.__setattr__(self, "_ring", tuple(ring))
        object.__setattr__(self, "_bbox", BoundingBox.from_coordinates(ring))

    def __setattr__(self, name, value):
        raise AttributeError("Polygon is immutable")

    @property
    def coordinates(self) -> Tuple[Coordinate, ...]:
        """Closed ring, first coordinate repeated at the end."""
        return self._ring

    @property
    def bbox(self) -> BoundingBox:
        return self._bbox

    def vertices(self) -> Iterator[Point]:
        for x, y in self._ring:
            yield Point(x, y)

    def contains(self, point: Point) -> bool:
        """Crossing-number test with a ray cast towards +x.

        An edge counts when it straddles the point's y with one endpoint
        strictly above, so horizontal edges never count and a shared
        vertical edge belongs only to the polygon lying to its right.
        """
        x, y = point.x, point.y
        if not self._bbox.contains_xy(x, y):
            return False
        ring = self._ring
        inside = False
        x1, y1 = ring[0]
        for x2, y2 in ring[1:]:
            if (y1 > y) != (y2 > y):
                x_cross = x1 + (y - y1) * (x2 - x1) / (y2 - y1)
                if x < x_cross:
                    inside = not inside
            x1, y1 = x2, y2
        return inside

    def boundary_distance(self, point: Point) -> float:
        """Distance from ``point`` to the nearest edge, ignoring containment."""
        px, py = point.x, point.y
        ring = self._ring
        best = math.inf
        x1, y1 = ring[0]
        for x2, y2 in ring[1:]:
            d = _segment_distance(px, py, x1, y1, x2, y2)
            if d < best:
                best = d
                if best == 0.0:
                    break
            x1, y1 = x2, y2
        return best

    def distance_to(self, point: Point) -> float:
        if self.contains(point):
            return 0.0
        return self.boundary_distance(point)

    def __len__(self) -> int:
        return len(self._ring)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Polygon):
            return NotImplemented
        return self._ring == other._ring

    def __hash__(self) -> int:
        return hash(self._ring)

    def __repr__(self) -> str:
        return f"Polygon(points={len(self._ring)}, bbox={self._bbox.as_tuple()})"

    def __reduce__(self):
        return (Polygon, (self._ring,))


def distance(point: Point, shape: Union[BoundingBox, Polygon]) -> float:
    """Planar distance from ``point`` to a box or polygon; 0 inside or on the boundary."""
    return shape.distance_to(point)
