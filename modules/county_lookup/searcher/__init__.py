"""Frozen searcher: read-only, duplicable and persistable county index."""

from .frozen_searcher import FrozenSearcher
from .persistence import (
    SearcherSnapshot,
    SnapshotEntry,
    SnapshotRegion,
    SNAPSHOT_VERSION,
    read_bytes,
    write_atomic,
)

__all__ = [
    'FrozenSearcher',
    'SearcherSnapshot',
    'SnapshotEntry',
    'SnapshotRegion',
    'SNAPSHOT_VERSION',
    'read_bytes',
    'write_atomic',
]
