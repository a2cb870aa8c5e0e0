"""Region values and the per-contig region index."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from functools import total_ordering
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Tuple

from alignbucket.exceptions import ConfigurationError
from alignbucket.logging_utils import get_logger

logger = get_logger(__name__)


@total_ordering
@dataclass(frozen=True)
class Region:
    """A named interval on one contig.

    Coordinates are 1-based and inclusive on both ends. Regions sort by
    ``(start, end)``; the contig only breaks ties so that sorting a mixed
    collection is still deterministic.
    """

    contig: str
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ConfigurationError(
                f"Region start must not exceed end: {self.contig}:{self.start}-{self.end}"
            )

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        return (self.start, self.end, self.contig)

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def overlaps(self, contig: str, start: int, end: int) -> bool:
        """Inclusive overlap test; touching boundaries count as overlapping."""
        return self.contig == contig and self.end >= start and self.start <= end

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Region):
            return NotImplemented
        return self.sort_key < other.sort_key

    def __str__(self) -> str:
        return f"{self.contig}:{self.start}-{self.end}"


class ContigRegionsMap(Mapping):
    """Read-only mapping of contig name to its regions sorted by ``(start, end)``.

    Instances are produced by :class:`ContigRegionsMapBuilder` and never change
    afterwards, so they can be shared between threads without locking.
    """

    __slots__ = ("_regions",)

    def __init__(self, regions: Mapping[str, Tuple[Region, ...]] | None = None):
        frozen = {contig: tuple(values) for contig, values in (regions or {}).items()}
        self._regions = MappingProxyType(frozen)

    def __getitem__(self, contig: str) -> Tuple[Region, ...]:
        return self._regions[contig]

    def __iter__(self) -> Iterator[str]:
        return iter(self._regions)

    def __len__(self) -> int:
        return len(self._regions)

    def region_count(self) -> int:
        return sum(len(values) for values in self._regions.values())

    def __repr__(self) -> str:
        return f"<ContigRegionsMap contigs={len(self)} regions={self.region_count()}>"


class ContigRegionsMapBuilder:
    """Accumulates regions and freezes them into a :class:`ContigRegionsMap`.

    Not thread-safe; confine a builder to a single producer. State survives
    :meth:`build` so more regions can be added and built again, or dropped
    with :meth:`clear`.
    """

    def __init__(self) -> None:
        self._contig_regions: Dict[str, List[Region]] = defaultdict(list)

    def add(self, region: Region) -> "ContigRegionsMapBuilder":
        self._contig_regions[region.contig].append(region)
        return self

    def add_all(self, regions: Iterable[Region]) -> "ContigRegionsMapBuilder":
        for region in regions:
            self.add(region)
        return self

    def build(self) -> ContigRegionsMap:
        """Sort every contig bucket and return a new, independent map."""
        frozen = {
            contig: tuple(sorted(regions)) for contig, regions in self._contig_regions.items()
        }
        regions_map = ContigRegionsMap(frozen)
        logger.debug("Built %r", regions_map)
        return regions_map

    def add_and_build(self, regions: Iterable[Region]) -> ContigRegionsMap:
        """Add ``regions`` to any already stored ones and build a map from all of them."""
        self.add_all(regions)
        return self.build()

    def clear(self) -> None:
        self._contig_regions.clear()

    def __len__(self) -> int:
        return sum(len(values) for values in self._contig_regions.values())
