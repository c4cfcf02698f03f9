"""County lookup service: the query entry point for applications.

The service owns the one shared ``FrozenSearcher`` for its dataset and
builds it at most once, on first use, under a double-checked lock. The
searcher comes from the first available of: a persisted searcher file, the
prepared region cache, the source JSON. A failed build or reload leaves
the previously active searcher in place.
"""

import logging
import math
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from counties.config import ConfigLoader, DataPaths, LookupConfig
from counties.exceptions import CountiesConfigurationError, InvalidPointError
from ..dataset import CountyDatasetLoader, build_index, load_regions, save_regions
from ..geometry import Point
from ..regions import Region, RegionMeta
from ..resolver import (
    CompositeObserver,
    LoggingObserver,
    LookupResult,
    MatchStatus,
    ResolutionObserver,
    ResolutionStats,
    StatsObserver,
)
from ..searcher import FrozenSearcher
from ..searcher.persistence import PathLike
from .performance_monitor import PerformanceMonitor, performance_timer

logger = logging.getLogger(__name__)

INVALID_STATUS = "invalid"


class CountyLookupService:
    """Resolves ``(latitude, longitude)`` pairs to county metadata."""

    def __init__(self, lookup_config: Optional[LookupConfig] = None,
                 data_paths: Optional[DataPaths] = None,
                 observer: Optional[ResolutionObserver] = None):
        """
        Args:
            lookup_config: Dataset loading and index settings
            data_paths: Locations of the source JSON and caches
            observer: Extra receiver for weak-match and not-found events
        """
        self.lookup_config = lookup_config or LookupConfig()
        self.data_paths = data_paths or DataPaths()
        self.stats = StatsObserver()
        observers: List[ResolutionObserver] = [self.stats]
        if self.lookup_config.weak_match_log_level:
            observers.append(LoggingObserver(self.lookup_config.weak_match_log_level))
        if observer is not None:
            observers.append(observer)
        self.observer = CompositeObserver(observers)
        self.performance = PerformanceMonitor()
        self._lock = threading.Lock()
        self._searcher: Optional[FrozenSearcher] = None

        logger.debug(f"CountyLookupService initialized (data dir: {self.data_paths.data_dir})")

    @classmethod
    def from_config(cls, config_loader: ConfigLoader, environment: str = "development",
                    observer: Optional[ResolutionObserver] = None) -> "CountyLookupService":
        return cls(lookup_config=config_loader.get_lookup_config(environment),
                   data_paths=config_loader.get_data_paths(environment),
                   observer=observer)

    @property
    def is_loaded(self) -> bool:
        return self._searcher is not None

    def get_searcher(self) -> FrozenSearcher:
        """Shared searcher, built on first call.

        Raises:
            CountiesConfigurationError: If no county data can be found
            DecodeError: If a persisted searcher or cache is corrupt
        """
        searcher = self._searcher
        if searcher is not None:
            return searcher
        with self._lock:
            if self._searcher is None:
                self._searcher = self._build_searcher()
            return self._searcher

    def install(self, searcher: FrozenSearcher) -> None:
        """Make ``searcher`` the active one, reporting to this service's observers."""
        with self._lock:
            self._searcher = searcher.with_observer(self.observer)

    def reload(self, path: Optional[PathLike] = None) -> FrozenSearcher:
        """Load a persisted searcher and swap it in only once it decoded cleanly."""
        path = path or self.data_paths.searcher_path()
        with self.performance.monitor_operation("reload_searcher") as op:
            searcher = FrozenSearcher.load_file(path, observer=self.observer)
            op.records = searcher.size()
        with self._lock:
            self._searcher = searcher
        return searcher

    def rebuild(self) -> FrozenSearcher:
        """Build a new searcher from the prepared cache or source JSON and make it active.

        Unlike first use, an existing searcher file is ignored.
        """
        with self.performance.monitor_operation("rebuild_searcher") as op:
            searcher = self._freeze_regions()
            op.records = searcher.size()
        with self._lock:
            self._searcher = searcher
        return searcher

    def _freeze_regions(self) -> FrozenSearcher:
        finder, store = build_index(self._load_regions(), self.lookup_config)
        return FrozenSearcher.freeze(finder, store, observer=self.observer)

    def _build_searcher(self) -> FrozenSearcher:
        searcher_path = self.data_paths.searcher_path()
        with self.performance.monitor_operation("build_searcher") as op:
            if searcher_path.exists():
                searcher = FrozenSearcher.load_file(searcher_path, observer=self.observer)
            else:
                searcher = self._freeze_regions()
            op.records = searcher.size()
        logger.info(f"County searcher ready: {searcher.size()} boxes, {searcher.region_count()} regions")
        return searcher

    def _load_regions(self) -> List[Region]:
        cache_path = self.data_paths.cache_path()
        if cache_path.exists():
            return load_regions(cache_path)

        json_path = self.data_paths.json_path()
        if not json_path.exists():
            raise CountiesConfigurationError(
                "No county data found",
                {"searcher": str(self.data_paths.searcher_path()),
                 "cache": str(cache_path), "json": str(json_path)}
            )
        regions = CountyDatasetLoader(self.lookup_config).load_json(json_path)
        try:
            save_regions(cache_path, regions, source=json_path.name)
        except OSError as e:
            logger.warning(f"Could not write prepared cache {cache_path}: {e}")
        return regions

    def save_searcher(self, path: Optional[PathLike] = None) -> Path:
        path = Path(path or self.data_paths.searcher_path())
        self.get_searcher().save(path)
        return path

    def region_count(self) -> int:
        return self.get_searcher().region_count()

    def lookup(self, latitude: float, longitude: float) -> LookupResult:
        """Resolve a point with its status and distance.

        Raises:
            InvalidPointError: If a coordinate is not a finite number
        """
        point = Point.from_lat_lon(latitude, longitude)
        searcher = self.get_searcher()
        resolution = searcher.resolve(point)
        region = searcher.region(resolution.region_id) if resolution.found else None
        return LookupResult(
            latitude=point.latitude,
            longitude=point.longitude,
            status=resolution.status,
            distance=resolution.distance,
            region=region.meta() if region is not None else None,
        )

    def resolve(self, latitude: float, longitude: float) -> Optional[RegionMeta]:
        """County containing the point, or None when it cannot be classified."""
        return self.lookup(latitude, longitude).region

    @performance_timer("resolve_batch")
    def resolve_batch(self, frame: pd.DataFrame, latitude_column: str = "latitude",
                      longitude_column: str = "longitude") -> pd.DataFrame:
        """Resolve every row of ``frame``; rows with bad coordinates get status ``invalid``.

        Returns:
            Copy of ``frame`` with geoid, county, fullname, state, status and distance columns
        """
        for column in (latitude_column, longitude_column):
            if column not in frame.columns:
                raise CountiesConfigurationError(f"Missing column '{column}' in batch input",
                                                 {"columns": list(frame.columns)})

        rows: List[Dict[str, Any]] = []
        with self.performance.monitor_operation("resolve_batch", len(frame)):
            for latitude, longitude in zip(frame[latitude_column], frame[longitude_column]):
                try:
                    result = self.lookup(latitude, longitude)
                except InvalidPointError:
                    rows.append({"status": INVALID_STATUS})
                    continue
                region = result.region
                rows.append({
                    "geoid": region.id if region else None,
                    "county": region.name if region else None,
                    "fullname": region.full_name if region else None,
                    "state": region.state_code if region else None,
                    "status": result.status.value,
                    "distance": result.distance,
                })

        out = frame.copy()
        out["geoid"] = pd.array([r.get("geoid") for r in rows], dtype="Int64")
        for column in ("county", "fullname", "state", "status"):
            out[column] = [r.get(column) for r in rows]
        out["distance"] = [r.get("distance") if r.get("distance") is not None else math.nan
                           for r in rows]
        return out

    def resolve_csv(self, input_path: PathLike, output_path: PathLike, **read_kwargs) -> ResolutionStats:
        """Resolve a CSV of points and write the annotated CSV."""
        frame = pd.read_csv(input_path, **read_kwargs)
        result = self.resolve_batch(frame)
        result.to_csv(output_path, index=False)
        stats = summarize_batch(result)
        logger.info(f"Resolved {len(result)} rows from {input_path}: {stats.get_summary()}")
        return stats

    def get_stats(self) -> ResolutionStats:
        """Weak-match and not-found counts seen by this service so far."""
        return self.stats.snapshot()


def summarize_batch(result: pd.DataFrame) -> ResolutionStats:
    """Outcome counts of a ``resolve_batch`` result frame."""
    counts = result["status"].value_counts()
    weak = result.loc[result["status"] == MatchStatus.WEAK.value, "distance"]
    return ResolutionStats(
        exact_matches=int(counts.get(MatchStatus.EXACT.value, 0)),
        weak_matches=int(counts.get(MatchStatus.WEAK.value, 0)),
        ambiguous=int(counts.get(MatchStatus.AMBIGUOUS.value, 0)),
        not_found=int(counts.get(MatchStatus.NOT_FOUND.value, 0)),
        invalid=int(counts.get(INVALID_STATUS, 0)),
        max_weak_distance=float(weak.max()) if len(weak) else 0.0,
    )
