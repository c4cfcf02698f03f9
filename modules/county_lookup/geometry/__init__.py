"""Planar geometry primitives: points, bounding boxes and polygons."""

from .shapes import Point, BoundingBox, Polygon, Coordinate, distance

__all__ = ['Point', 'BoundingBox', 'Polygon', 'Coordinate', 'distance']
