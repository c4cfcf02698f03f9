"""R-tree structures over bounding boxes.

``RTree`` is the build-time tree: Guttman insertion with the quadratic split.
``PackedRTree`` is the read-only tree used by frozen searchers: bulk loaded
with Sort-Tile-Recursive packing and stored as nested tuples so it can be
shared between threads without locking.
"""

import math
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from ..geometry import BoundingBox

DEFAULT_NODE_CAPACITY = 16


class _Node:
    """Mutable R-tree node; ``entries`` holds ``(bbox, child_or_value)`` pairs."""

    __slots__ = ("leaf", "entries")

    def __init__(self, leaf: bool):
        self.leaf = leaf
        self.entries: List[Tuple[BoundingBox, Any]] = []

    def compute_bbox(self) -> BoundingBox:
        bbox = self.entries[0][0]
        for other, _ in self.entries[1:]:
            bbox = bbox.union(other)
        return bbox


class RTree:
    """Dynamic R-tree answering "which boxes contain this point" queries.

    Values are stored as given; the same value may be inserted any number
    of times.
    """

    def __init__(self, max_entries: int = DEFAULT_NODE_CAPACITY):
        if max_entries < 4:
            raise ValueError("R-tree nodes need room for at least 4 entries")
        self.max_entries = max_entries
        self.min_entries = max(2, (max_entries * 2) // 5)
        self._root = _Node(leaf=True)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def insert(self, bbox: BoundingBox, value: Any) -> None:
        split = self._insert(self._root, bbox, value)
        if split is not None:
            old_root = self._root
            self._root = _Node(leaf=False)
            self._root.entries = [(old_root.compute_bbox(), old_root),
                                  (split.compute_bbox(), split)]
        self._size += 1

    def _insert(self, node: _Node, bbox: BoundingBox, value: Any) -> Optional[_Node]:
        if node.leaf:
            node.entries.append((bbox, value))
        else:
            index = self._choose_subtree(node, bbox)
            child = node.entries[index][1]
            split = self._insert(child, bbox, value)
            node.entries[index] = (child.compute_bbox(), child)
            if split is not None:
                node.entries.append((split.compute_bbox(), split))

        if len(node.entries) > self.max_entries:
            return self._split(node)
        return None

    @staticmethod
    def _choose_subtree(node: _Node, bbox: BoundingBox) -> int:
        """Child needing least enlargement; ties go to the smaller child."""
        best_index = 0
        best_key = None
        for index, (child_bbox, _) in enumerate(node.entries):
            key = (child_bbox.enlargement(bbox), child_bbox.area())
            if best_key is None or key < best_key:
                best_index, best_key = index, key
        return best_index

    @staticmethod
    def _pick_seeds(entries: Sequence[Tuple[BoundingBox, Any]]) -> Tuple[int, int]:
        """Pair of entries wasting the most area if grouped together."""
        best = (0, 1)
        worst_waste = -math.inf
        for i in range(len(entries) - 1):
            box_i = entries[i][0]
            for j in range(i + 1, len(entries)):
                box_j = entries[j][0]
                waste = box_i.union(box_j).area() - box_i.area() - box_j.area()
                if waste > worst_waste:
                    worst_waste = waste
                    best = (i, j)
        return best

    def _split(self, node: _Node) -> _Node:
        """Quadratic split; ``node`` keeps one group, the returned sibling the other."""
        entries = node.entries
        seed_a, seed_b = self._pick_seeds(entries)
        group_a = [entries[seed_a]]
        group_b = [entries[seed_b]]
        bbox_a = entries[seed_a][0]
        bbox_b = entries[seed_b][0]
        remaining = [e for i, e in enumerate(entries) if i not in (seed_a, seed_b)]

        while remaining:
            # Top up a group that could otherwise end below the minimum fill
            if len(group_a) + len(remaining) <= self.min_entries:
                group_a.extend(remaining)
                break
            if len(group_b) + len(remaining) <= self.min_entries:
                group_b.extend(remaining)
                break

            pick = 0
            pick_diff = -1.0
            for i, (bbox, _) in enumerate(remaining):
                diff = abs(bbox_a.enlargement(bbox) - bbox_b.enlargement(bbox))
                if diff > pick_diff:
                    pick, pick_diff = i, diff
            entry = remaining.pop(pick)
            grow_a = bbox_a.enlargement(entry[0])
            grow_b = bbox_b.enlargement(entry[0])
            key_a = (grow_a, bbox_a.area(), len(group_a))
            key_b = (grow_b, bbox_b.area(), len(group_b))
            if key_a <= key_b:
                group_a.append(entry)
                bbox_a = bbox_a.union(entry[0])
            else:
                group_b.append(entry)
                bbox_b = bbox_b.union(entry[0])

        node.entries = group_a
        sibling = _Node(leaf=node.leaf)
        sibling.entries = group_b
        return sibling

    def search(self, x: float, y: float) -> List[Any]:
        """Values of every box containing ``(x, y)``, edges inclusive."""
        results = []
        stack = [self._root]
        while stack:
            node = stack.pop()
            for bbox, item in node.entries:
                if bbox.contains_xy(x, y):
                    if node.leaf:
                        results.append(item)
                    else:
                        stack.append(item)
        return results

    def items(self) -> Iterator[Tuple[BoundingBox, Any]]:
        """All ``(bbox, value)`` pairs, in tree order."""
        stack = [self._root]
        while stack:
            node = stack.pop()
            if node.leaf:
                yield from node.entries
            else:
                stack.extend(child for _, child in node.entries)

    def depth(self) -> int:
        depth = 1
        node = self._root
        while not node.leaf:
            node = node.entries[0][1]
            depth += 1
        return depth


# Packed node layout: (is_leaf, ((min_x, min_y, max_x, max_y, child_or_value), ...))
PackedNode = Tuple[bool, Tuple[Tuple[float, float, float, float, Any], ...]]


class PackedRTree:
    """Immutable STR-packed R-tree.

    The layout depends only on the input order, so packing the same items
    twice gives identical trees and identical query result order.
    """

    __slots__ = ("_root", "_size", "_node_capacity")

    def __init__(self, root: PackedNode, size: int, node_capacity: int):
        object.__setattr__(self, "_root", root)
        object.__setattr__(self, "_size", size)
        object.__setattr__(self, "_node_capacity", node_capacity)

    def __setattr__(self, name, value):
        raise AttributeError("PackedRTree is immutable")

    def __reduce__(self):
        return (PackedRTree, (self._root, self._size, self._node_capacity))

    @classmethod
    def pack(cls, items: Sequence[Tuple[BoundingBox, Any]],
             node_capacity: int = DEFAULT_NODE_CAPACITY) -> "PackedRTree":
        if node_capacity < 2:
            raise ValueError("Packed nodes need room for at least 2 entries")
        level = [(bbox.as_tuple(), value) for bbox, value in items]
        if not level:
            return cls((True, ()), 0, node_capacity)

        leaf = True
        while True:
            groups = cls._tile(level, node_capacity)
            nodes = [
                (leaf, tuple(box + (value,) for box, value in group))
                for group in groups
            ]
            if len(nodes) == 1:
                return cls(nodes[0], len(items), node_capacity)
            level = [(cls._envelope(group), node) for group, node in zip(groups, nodes)]
            leaf = False

    @staticmethod
    def _tile(level, capacity: int) -> List[list]:
        """Sort-Tile-Recursive grouping of ``(box, value)`` pairs into nodes."""
        node_count = math.ceil(len(level) / capacity)
        slice_count = math.ceil(math.sqrt(node_count))
        slice_size = slice_count * capacity

        by_x = sorted(level, key=lambda e: e[0][0] + e[0][2])
        groups = []
        for start in range(0, len(by_x), slice_size):
            vertical_slice = sorted(by_x[start:start + slice_size],
                                    key=lambda e: e[0][1] + e[0][3])
            for offset in range(0, len(vertical_slice), capacity):
                groups.append(vertical_slice[offset:offset + capacity])
        return groups

    @staticmethod
    def _envelope(group) -> Tuple[float, float, float, float]:
        return (min(box[0] for box, _ in group), min(box[1] for box, _ in group),
                max(box[2] for box, _ in group), max(box[3] for box, _ in group))

    @property
    def node_capacity(self) -> int:
        return self._node_capacity

    def __len__(self) -> int:
        return self._size

    def search(self, x: float, y: float) -> List[Any]:
        """Values of every box containing ``(x, y)``, edges inclusive."""
        results = []
        stack = [self._root]
        while stack:
            leaf, entries = stack.pop()
            for min_x, min_y, max_x, max_y, item in entries:
                if min_x <= x <= max_x and min_y <= y <= max_y:
                    if leaf:
                        results.append(item)
                    else:
                        stack.append(item)
        return results
