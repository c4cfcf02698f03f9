"""County region records, their public metadata and the region store."""

from .region_models import Region, RegionMeta
from .region_store import RegionStore

__all__ = ['Region', 'RegionMeta', 'RegionStore']
