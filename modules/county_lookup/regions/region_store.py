"""Immutable id -> Region mapping built once from loaded data."""

import logging
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional

from counties.exceptions import DuplicateIDError
from .region_models import Region

logger = logging.getLogger(__name__)


class RegionStore:
    """Read-only collection of regions keyed by id.

    Use ``RegionStore.build``; a duplicate id fails the whole build so no
    partially populated store is ever returned.
    """

    __slots__ = ("_regions",)

    def __init__(self, regions: Mapping[int, Region]):
        object.__setattr__(self, "_regions", MappingProxyType(dict(regions)))

    def __setattr__(self, name, value):
        raise AttributeError("RegionStore is immutable")

    @classmethod
    def build(cls, records: Iterable[Region]) -> "RegionStore":
        """Build a store from region records.

        Raises:
            DuplicateIDError: If two records share an id
        """
        regions = {}
        for position, region in enumerate(records):
            if region.id in regions:
                raise DuplicateIDError(
                    f"Duplicate region id {region.id}",
                    {"id": region.id, "position": position,
                     "first": regions[region.id].full_name or regions[region.id].name,
                     "second": region.full_name or region.name}
                )
            regions[region.id] = region
        logger.debug(f"Built region store with {len(regions)} regions")
        return cls(regions)

    def get(self, region_id: int) -> Optional[Region]:
        return self._regions.get(region_id)

    def ids(self) -> List[int]:
        return list(self._regions.keys())

    def __contains__(self, region_id) -> bool:
        return region_id in self._regions

    def __iter__(self) -> Iterator[Region]:
        return iter(self._regions.values())

    def __len__(self) -> int:
        return len(self._regions)

    def __repr__(self) -> str:
        return f"RegionStore(regions={len(self._regions)})"

    def __reduce__(self):
        return (RegionStore, (dict(self._regions),))
