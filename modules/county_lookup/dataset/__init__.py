"""County dataset loading and the prepared region cache."""

from .dataset_models import RawCountyRecord, PreparedRegionCache, LoadReport
from .county_loader import (
    CountyDatasetLoader,
    load_county_json,
    check_topology,
    save_regions,
    load_regions,
    process_json_data,
    build_index,
)

__all__ = [
    'RawCountyRecord',
    'PreparedRegionCache',
    'LoadReport',
    'CountyDatasetLoader',
    'load_county_json',
    'check_topology',
    'save_regions',
    'load_regions',
    'process_json_data',
    'build_index',
]
