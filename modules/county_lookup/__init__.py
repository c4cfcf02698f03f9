"""County Lookup Module

This module resolves a geographic point to the county containing it. County
bounding boxes are indexed in an R-tree, candidate polygons decide
containment, and the finished index is frozen into an immutable searcher
that can be persisted and shared between threads.
"""

from .geometry import Point, BoundingBox, Polygon, distance
from .regions import Region, RegionMeta, RegionStore
from .spatial_index import Finder
from .resolver import MatchStatus, Resolution, LookupResult, ResolutionStats
from .searcher import FrozenSearcher
from .processor import CountyLookupService

__all__ = [
    'Point',
    'BoundingBox',
    'Polygon',
    'distance',
    'Region',
    'RegionMeta',
    'RegionStore',
    'Finder',
    'MatchStatus',
    'Resolution',
    'LookupResult',
    'ResolutionStats',
    'FrozenSearcher',
    'CountyLookupService',
]
