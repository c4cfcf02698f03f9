"""Spatial index over county bounding boxes.

The Finder is built incrementally and answers "which boxes contain this
point" through an R-tree; frozen searchers use the packed variant.
"""

from .rtree import RTree, PackedRTree, DEFAULT_NODE_CAPACITY
from .finder import Finder

__all__ = ['RTree', 'PackedRTree', 'DEFAULT_NODE_CAPACITY', 'Finder']
