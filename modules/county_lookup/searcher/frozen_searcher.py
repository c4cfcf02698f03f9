"""Frozen, shareable county searcher.

A ``FrozenSearcher`` is built once from a completed Finder and RegionStore.
All of its state is tuples and read-only mappings, so any number of threads
may call ``resolve`` on one instance without locking.
"""

import logging
from types import MappingProxyType
from typing import BinaryIO, Dict, List, Optional, Sequence, Tuple

from counties.exceptions import CountiesValidationError
from ..geometry import Point, Polygon
from ..regions import Region, RegionMeta, RegionStore
from ..resolver import ContainmentResolver, Resolution, ResolutionObserver
from ..spatial_index import DEFAULT_NODE_CAPACITY, Finder, PackedRTree
from . import persistence

logger = logging.getLogger(__name__)


class FrozenSearcher:
    """Immutable snapshot of an index plus the region metadata it answers with."""

    __slots__ = ("_tree", "_pieces", "_entries", "_regions", "_resolver")

    def __init__(self, entries: Sequence[Tuple[int, Polygon]], regions: RegionStore,
                 node_capacity: int = DEFAULT_NODE_CAPACITY,
                 observer: Optional[ResolutionObserver] = None):
        """
        Args:
            entries: ``(region id, polygon piece)`` pairs in insertion order
            regions: Region store holding metadata for every entry id
            node_capacity: Maximum entries per packed tree node
            observer: Receiver for weak-match and not-found events

        Raises:
            CountiesValidationError: If an entry id has no region record
        """
        entries = tuple(entries)
        missing = sorted({region_id for region_id, _ in entries if region_id not in regions})
        if missing:
            raise CountiesValidationError(
                "Indexed ids missing from the region store",
                {"missing": missing[:10], "count": len(missing)}
            )

        pieces: Dict[int, List[Polygon]] = {}
        for region_id, polygon in entries:
            pieces.setdefault(region_id, []).append(polygon)

        set_ = object.__setattr__
        set_(self, "_entries", entries)
        set_(self, "_regions", regions)
        set_(self, "_pieces", MappingProxyType({k: tuple(v) for k, v in pieces.items()}))
        set_(self, "_tree", PackedRTree.pack(
            [(polygon.bbox, region_id) for region_id, polygon in entries], node_capacity))
        set_(self, "_resolver", ContainmentResolver(self, observer))

    def __setattr__(self, name, value):
        raise AttributeError("FrozenSearcher is immutable")

    @classmethod
    def freeze(cls, finder: Finder, region_store: RegionStore,
               observer: Optional[ResolutionObserver] = None) -> "FrozenSearcher":
        """Snapshot a completed finder; the finder accepts no further ``add``."""
        searcher = cls(finder.entries(), region_store, finder.node_capacity, observer)
        finder.freeze()
        logger.info(f"Froze searcher with {searcher.size()} boxes over {len(region_store)} regions")
        return searcher

    @property
    def node_capacity(self) -> int:
        return self._tree.node_capacity

    @property
    def regions(self) -> RegionStore:
        return self._regions

    @property
    def observer(self) -> ResolutionObserver:
        return self._resolver.observer

    def size(self) -> int:
        """Number of bounding boxes indexed."""
        return len(self._tree)

    def __len__(self) -> int:
        return len(self._tree)

    def region_count(self) -> int:
        return len(self._regions)

    def query(self, point: Point) -> List[int]:
        return self._tree.search(point.x, point.y)

    def polygons(self, region_id: int) -> Tuple[Polygon, ...]:
        return self._pieces.get(region_id, ())

    def entries(self) -> Tuple[Tuple[int, Polygon], ...]:
        return self._entries

    def region(self, region_id: int) -> Optional[Region]:
        return self._regions.get(region_id)

    def resolve(self, point: Point) -> Resolution:
        return self._resolver.resolve(point)

    def resolve_meta(self, point: Point) -> Optional[RegionMeta]:
        """Metadata of the county resolved for ``point``, None when not found."""
        resolution = self.resolve(point)
        if not resolution.found:
            return None
        return self._regions.get(resolution.region_id).meta()

    def with_observer(self, observer: Optional[ResolutionObserver]) -> "FrozenSearcher":
        """Searcher over the same immutable data reporting to another observer."""
        clone = object.__new__(FrozenSearcher)
        set_ = object.__setattr__
        set_(clone, "_entries", self._entries)
        set_(clone, "_regions", self._regions)
        set_(clone, "_pieces", self._pieces)
        set_(clone, "_tree", self._tree)
        set_(clone, "_resolver", ContainmentResolver(clone, observer))
        return clone

    def duplicate(self, observer: Optional[ResolutionObserver] = None) -> "FrozenSearcher":
        """Independent copy, equivalent to deserializing this searcher's persisted form."""
        return self.loads(self.dumps(), observer=observer)

    def snapshot(self) -> persistence.SearcherSnapshot:
        return persistence.build_snapshot(list(self._entries), self._regions, self.node_capacity)

    def dumps(self) -> bytes:
        return persistence.encode_model(self.snapshot())

    def dump(self, stream: BinaryIO) -> None:
        stream.write(self.dumps())

    @classmethod
    def loads(cls, data: bytes, observer: Optional[ResolutionObserver] = None) -> "FrozenSearcher":
        """Rebuild a searcher from ``dumps`` output.

        Raises:
            DecodeError: If the data is truncated, corrupt or inconsistent
        """
        snapshot = persistence.decode_model(data, persistence.SearcherSnapshot)
        entries, store = persistence.restore_snapshot(snapshot)
        return cls(entries, store, snapshot.node_capacity, observer)

    @classmethod
    def load(cls, stream: BinaryIO, observer: Optional[ResolutionObserver] = None) -> "FrozenSearcher":
        return cls.loads(stream.read(), observer=observer)

    def save(self, path: persistence.PathLike) -> None:
        """Persist to ``path`` atomically."""
        persistence.write_atomic(path, self.dumps())
        logger.info(f"Saved searcher ({self.size()} boxes) to {path}")

    @classmethod
    def load_file(cls, path: persistence.PathLike,
                  observer: Optional[ResolutionObserver] = None) -> "FrozenSearcher":
        searcher = cls.loads(persistence.read_bytes(path), observer=observer)
        logger.info(f"Loaded searcher ({searcher.size()} boxes) from {path}")
        return searcher

    def __repr__(self) -> str:
        return f"FrozenSearcher(boxes={self.size()}, regions={self.region_count()})"
