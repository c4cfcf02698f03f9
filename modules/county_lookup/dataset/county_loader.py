"""County dataset loading, prepared cache I/O and index construction."""

import json
import logging
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.validation import explain_validity

from counties.config import InvalidGeometryPolicy, LookupConfig
from counties.exceptions import CountiesValidationError, DecodeError, InvalidGeometryError
from counties.utils import log_performance
from ..regions import Region, RegionStore
from ..searcher import SnapshotRegion, read_bytes, write_atomic
from ..searcher.persistence import PathLike, decode_model, encode_model
from ..spatial_index import Finder
from .dataset_models import LoadReport, PreparedRegionCache, RawCountyRecord

logger = logging.getLogger(__name__)


class CountyDatasetLoader:
    """Parses the county source JSON into Regions.

    Invalid geometry is handled per ``LookupConfig.on_invalid_geometry``:
    ``skip`` logs and drops the record, ``fail`` raises with the record's
    position.
    """

    def __init__(self, config: Optional[LookupConfig] = None):
        self.config = config or LookupConfig()
        self.last_report: Optional[LoadReport] = None

    def load_json(self, path: PathLike) -> List[Region]:
        """Load and convert every record of a source JSON file.

        Raises:
            CountiesValidationError: If the file is not a JSON array of records
            InvalidGeometryError: On bad geometry when the policy is ``fail``
        """
        start_time = time.time()
        try:
            with open(path, "r") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise CountiesValidationError(f"Invalid JSON in county dataset: {e}", {"path": str(path)})
        if not isinstance(raw, list):
            raise CountiesValidationError("County dataset must be a JSON array", {"path": str(path)})

        report = LoadReport(source=str(path), records_read=len(raw))
        regions = []
        total = len(raw)

        for position, item in enumerate(raw, 1):
            try:
                record = RawCountyRecord.model_validate(item)
            except ValidationError as e:
                raise CountiesValidationError(
                    f"failed for ({position}/{total}): {e.error_count()} validation errors",
                    {"path": str(path)}
                )

            try:
                region = record.to_region(self.config.min_bbox_points)
            except InvalidGeometryError as e:
                if self.config.on_invalid_geometry == InvalidGeometryPolicy.FAIL:
                    e.context.update({"position": f"{position}/{total}"})
                    raise
                report.skipped_invalid += 1
                report.errors.append(f"{record.geoid}: {e}")
                logger.warning(f"Skipping geoid {record.geoid} ({position}/{total}): {e}")
                continue

            if self.config.validate_topology and not check_topology(region):
                report.topology_warnings += 1
            regions.append(region)

        report.regions_loaded = len(regions)
        report.load_duration = time.time() - start_time
        self.last_report = report
        logger.info(report.get_summary())
        return regions


def load_county_json(path: PathLike, config: Optional[LookupConfig] = None) -> List[Region]:
    """Load the regions of a source JSON file with a one-off loader."""
    return CountyDatasetLoader(config).load_json(path)


def check_topology(region: Region) -> bool:
    """Check a region's ring with shapely; invalid rings are logged, not rejected."""
    shape = ShapelyPolygon(region.polygon.coordinates)
    if shape.is_valid:
        return True
    logger.warning(f"geoid {region.id} ({region.full_name}, {region.state_code}) "
                   f"polygon is not valid: {explain_validity(shape)}")
    return False


def save_regions(path: PathLike, regions: Iterable[Region], source: str = "") -> None:
    """Write regions to a prepared cache file atomically."""
    cache = PreparedRegionCache(
        source=source,
        regions=[SnapshotRegion(**region.to_record()) for region in regions],
    )
    write_atomic(path, encode_model(cache))
    logger.info(f"Saved {len(cache.regions)} regions to {path}")


def load_regions(path: PathLike) -> List[Region]:
    """Read regions from a prepared cache file.

    Raises:
        DecodeError: If the cache is truncated, corrupt or invalid
    """
    start_time = time.time()
    cache = decode_model(read_bytes(path), PreparedRegionCache)
    try:
        regions = [Region.from_record(r.model_dump()) for r in cache.regions]
    except (InvalidGeometryError, CountiesValidationError) as e:
        raise DecodeError(f"Invalid region in prepared cache: {e}", {"path": str(path)}) from e
    logger.info(f"Loaded {len(regions)} cached regions from {path} in {time.time() - start_time:.2f}s")
    return regions


@log_performance
def process_json_data(source: PathLike, saved: PathLike,
                      config: Optional[LookupConfig] = None) -> LoadReport:
    """Convert the source JSON into a prepared cache for faster loading."""
    loader = CountyDatasetLoader(config)
    regions = loader.load_json(source)
    save_regions(saved, regions, source=Path(source).name)
    return loader.last_report


def build_index(regions: Iterable[Region],
                config: Optional[LookupConfig] = None) -> Tuple[Finder, RegionStore]:
    """Build the finder and region store together, leaving out excluded states.

    Raises:
        DuplicateIDError: If two kept regions share an id
    """
    config = config or LookupConfig()
    excluded = set(config.excluded_states)
    kept = []
    skipped = 0
    for region in regions:
        if region.state_code.upper() in excluded:
            skipped += 1
            continue
        kept.append(region)

    store = RegionStore.build(kept)
    finder = Finder(node_capacity=config.node_capacity)
    for region in kept:
        finder.add(region.id, region.polygon)

    logger.info(f"Indexed {finder.size()} regions ({skipped} excluded by state: {sorted(excluded)})")
    return finder, store
