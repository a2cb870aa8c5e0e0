"""Find the regions an alignment record falls into."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Sequence, Union

from alignbucket.logging_utils import get_logger
from alignbucket.regions.region import ContigRegionsMap, Region

if TYPE_CHECKING:
    import pysam as pysam_types


@dataclass(frozen=True)
class AlignmentSpan:
    """Reference span of one alignment in 1-based inclusive coordinates.

    Unmapped records have ``is_mapped=False`` and usually no contig or positions.
    """

    contig: Optional[str] = None
    start: Optional[int] = None
    end: Optional[int] = None
    is_mapped: bool = False

    @property
    def is_placed(self) -> bool:
        return (
            self.is_mapped
            and self.contig is not None
            and self.start is not None
            and self.end is not None
        )

    @classmethod
    def from_segment(cls, segment: "pysam_types.AlignedSegment") -> "AlignmentSpan":
        """Build a span from a pysam ``AlignedSegment``.

        pysam reports 0-based half-open positions, so ``reference_start`` is shifted
        by one and ``reference_end`` is used unchanged as the inclusive end.
        """
        if segment.is_unmapped or segment.reference_name is None or segment.reference_start < 0:
            return cls()
        reference_end = segment.reference_end
        if reference_end is None:
            # No reference-consuming CIGAR operations; treat as a single base.
            reference_end = segment.reference_start + 1
        return cls(
            contig=segment.reference_name,
            start=segment.reference_start + 1,
            end=reference_end,
            is_mapped=True,
        )


RecordLike = Union[AlignmentSpan, Any]


def _as_span(record: RecordLike) -> AlignmentSpan:
    if isinstance(record, AlignmentSpan):
        return record
    return AlignmentSpan.from_segment(record)


def _overlaps(region: Region, start: int, end: int) -> bool:
    return region.end >= start and region.start <= end


class IntervalGroupRetriever:
    """Query engine over a :class:`ContigRegionsMap`.

    The map is held by reference and only read, so one retriever can serve many
    worker threads at once.

    Results are correct for per-contig regions that are sorted and do not overlap
    each other (abutting or gapped). All regions intersecting a record then form
    one contiguous run, which is found with a narrowing search followed by an
    expansion to both sides.
    """

    def __init__(self, regions_map: ContigRegionsMap, logger: Optional[logging.Logger] = None):
        self._regions_map = regions_map
        self._logger = logger if logger is not None else get_logger(__name__)

    @property
    def regions_map(self) -> ContigRegionsMap:
        return self._regions_map

    def retrieve_groups_within_range(self, record: RecordLike) -> List[Region]:
        """Return the regions the record's span intersects, in ascending order.

        ``record`` is an :class:`AlignmentSpan` or a pysam ``AlignedSegment``.
        Unmapped records, records on unknown contigs and records that hit no region
        all give an empty list. The returned list is a fresh copy.
        """
        span = _as_span(record)
        if not span.is_placed:
            return []

        regions = self._regions_map.get(span.contig)
        if not regions:
            return []

        idx = self._find_overlapping_index(regions, span.start, span.end)
        if idx is None:
            return []

        low_idx, high_idx = self._expand_run(regions, idx, span.start, span.end)
        return list(regions[low_idx : high_idx + 1])

    def _find_overlapping_index(
        self, regions: Sequence[Region], start: int, end: int
    ) -> Optional[int]:
        low = 0
        high = len(regions) - 1
        while low <= high:
            middle = (low + high) // 2
            self._logger.debug(
                "Narrowing search. low=%d, middle=%d, high=%d", low, middle, high
            )
            region = regions[middle]
            if _overlaps(region, start, end):
                return middle
            if region.end < start:
                low = middle + 1
            else:
                high = middle - 1
        return None

    @staticmethod
    def _expand_run(regions: Sequence[Region], idx: int, start: int, end: int) -> tuple[int, int]:
        low_idx = idx
        while low_idx > 0 and _overlaps(regions[low_idx - 1], start, end):
            low_idx -= 1
        high_idx = idx
        while high_idx < len(regions) - 1 and _overlaps(regions[high_idx + 1], start, end):
            high_idx += 1
        return low_idx, high_idx

    def __repr__(self) -> str:
        return f"<IntervalGroupRetriever {self._regions_map!r}>"
