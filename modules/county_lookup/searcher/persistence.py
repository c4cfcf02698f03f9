"""Persisted form of frozen searchers and shared file I/O helpers.

A snapshot is gzip-compressed JSON validated by ``SearcherSnapshot``. Index
entries whose polygon is the region's own boundary are written without a
polygon and point back to the region record.
"""

import gzip
import logging
import os
import tempfile
import zlib
from pathlib import Path
from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from counties.exceptions import (
    CountiesValidationError,
    DecodeError,
    DuplicateIDError,
    InvalidGeometryError,
)
from ..geometry import Polygon
from ..regions import Region, RegionStore

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = "county-searcher"
SNAPSHOT_VERSION = 1

PathLike = Union[str, os.PathLike]
Ring = List[Tuple[float, float]]

# Errors a local or network filesystem may raise and then succeed on retry
TRANSIENT_IO_ERRORS = (TimeoutError, InterruptedError, BlockingIOError)


class SnapshotRegion(BaseModel):
    """Region record inside a snapshot."""
    id: int = Field(..., ge=0)
    name: str = ""
    full_name: str = ""
    state_code: str = ""
    polygon: Ring = Field(..., min_length=4)


class SnapshotEntry(BaseModel):
    """One indexed polygon piece; ``polygon`` is None when it is the region's own."""
    id: int = Field(..., ge=0)
    polygon: Optional[Ring] = Field(None, min_length=4)


class SearcherSnapshot(BaseModel):
    """Complete persisted form of a frozen searcher."""
    format: Literal["county-searcher"] = SNAPSHOT_FORMAT
    version: int = SNAPSHOT_VERSION
    node_capacity: int = Field(..., ge=2)
    regions: List[SnapshotRegion] = Field(default_factory=list)
    entries: List[SnapshotEntry] = Field(default_factory=list)


def build_snapshot(entries: List[Tuple[int, Polygon]], regions: RegionStore,
                   node_capacity: int) -> SearcherSnapshot:
    snapshot_regions = [
        SnapshotRegion(id=r.id, name=r.name, full_name=r.full_name,
                       state_code=r.state_code, polygon=list(r.polygon.coordinates))
        for r in regions
    ]
    snapshot_entries = []
    for region_id, polygon in entries:
        region = regions.get(region_id)
        if region is not None and region.polygon == polygon:
            snapshot_entries.append(SnapshotEntry(id=region_id))
        else:
            snapshot_entries.append(SnapshotEntry(id=region_id, polygon=list(polygon.coordinates)))
    return SearcherSnapshot(node_capacity=node_capacity,
                            regions=snapshot_regions, entries=snapshot_entries)


def restore_snapshot(snapshot: SearcherSnapshot) -> Tuple[List[Tuple[int, Polygon]], RegionStore]:
    """Rebuild ``(entries, region store)`` from a validated snapshot.

    Raises:
        DecodeError: If the snapshot is structurally valid but inconsistent
    """
    if snapshot.version != SNAPSHOT_VERSION:
        raise DecodeError("Unsupported searcher snapshot version",
                          {"version": snapshot.version, "supported": SNAPSHOT_VERSION})
    try:
        store = RegionStore.build(
            Region(id=r.id, polygon=Polygon(r.polygon), name=r.name,
                   full_name=r.full_name, state_code=r.state_code)
            for r in snapshot.regions
        )
        entries = []
        for position, entry in enumerate(snapshot.entries):
            region = store.get(entry.id)
            if region is None:
                raise DecodeError("Snapshot entry refers to a missing region",
                                  {"id": entry.id, "position": position})
            if entry.polygon is not None:
                entries.append((entry.id, Polygon(entry.polygon)))
            else:
                entries.append((entry.id, region.polygon))
    except (InvalidGeometryError, DuplicateIDError, CountiesValidationError) as e:
        raise DecodeError(f"Inconsistent searcher snapshot: {e}") from e
    return entries, store


def encode_model(model: BaseModel) -> bytes:
    return gzip.compress(model.model_dump_json().encode("utf-8"), mtime=0)


def decode_model(data: bytes, model_type):
    """Decompress and validate ``data`` as ``model_type``.

    Raises:
        DecodeError: If the data is truncated, corrupt or fails validation
    """
    try:
        raw = gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeError(f"Cannot decompress {model_type.__name__}: {e}") from e
    try:
        return model_type.model_validate_json(raw)
    except ValidationError as e:
        raise DecodeError(f"Invalid {model_type.__name__}: {e.error_count()} validation errors",
                          {"first_error": e.errors()[0]["msg"] if e.errors() else ""}) from e


def write_atomic(path: PathLike, data: bytes) -> None:
    """Write ``data`` to ``path`` so readers see either the old or the new file."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    logger.debug(f"Wrote {len(data)} bytes to {target}")


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, max=2),
    retry=retry_if_exception_type(TRANSIENT_IO_ERRORS),
    reraise=True
)
def read_bytes(path: PathLike) -> bytes:
    with open(path, "rb") as f:
        return f.read()
