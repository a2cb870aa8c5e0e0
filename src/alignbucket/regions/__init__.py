from .bed_reader import load_regions_map, read_bed_regions
from .region import ContigRegionsMap, ContigRegionsMapBuilder, Region
from .retriever import AlignmentSpan, IntervalGroupRetriever

__all__ = [
    "AlignmentSpan",
    "ContigRegionsMap",
    "ContigRegionsMapBuilder",
    "IntervalGroupRetriever",
    "Region",
    "load_regions_map",
    "read_bed_regions",
]
