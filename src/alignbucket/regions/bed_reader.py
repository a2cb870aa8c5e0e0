from __future__ import annotations

import io
from pathlib import Path
from typing import List, Union

import pandas as pd

from alignbucket.exceptions import ConfigurationError
from alignbucket.logging_utils import get_logger
from alignbucket.regions.region import ContigRegionsMap, ContigRegionsMapBuilder, Region

logger = get_logger(__name__)

_BED_COLUMNS = ["chrom", "start", "end"]
_SKIPPED_PREFIXES = ("#", "track", "browser")


def _bed_to_region(chrom: str, start: int, end: int) -> Region:
    """Convert 0-based half-open BED coords to a 1-based inclusive Region."""
    return Region(str(chrom), int(start) + 1, int(end))


def read_bed_regions(bed_file: Union[str, Path]) -> List[Region]:
    """
    Load the first three columns of a BED file as Regions.

    Params:
        bed_file (str | Path): tab-separated BED file. Header, track and browser lines are skipped.
        Zero-length intervals (start == end) are skipped with a warning.
    Returns:
        regions (list[Region]): in file order, 1-based inclusive coordinates.
    """
    bed_file = Path(bed_file)
    logger.debug(f"Loading regions from BED: {bed_file}")

    with bed_file.open() as f:
        body = "".join(
            line for line in f if line.strip() and not line.startswith(_SKIPPED_PREFIXES)
        )
    if not body:
        logger.warning(f"No regions found in BED file: {bed_file}")
        return []

    try:
        df = pd.read_csv(
            io.StringIO(body),
            sep="\t",
            header=None,
            usecols=[0, 1, 2],
            names=_BED_COLUMNS,
            dtype={"chrom": str},
        )
    except ValueError as e:
        raise ConfigurationError(f"BED file needs at least 3 columns: {bed_file}") from e
    if df[["start", "end"]].isna().any().any():
        raise ConfigurationError(f"BED file has rows without start/end: {bed_file}")

    regions: List[Region] = []
    for row in df.itertuples(index=False):
        try:
            start, end = int(row.start), int(row.end)
        except ValueError as e:
            raise ConfigurationError(f"BED file has non-integer coordinates: {bed_file}") from e
        if start == end:
            # Zero-length insertion point; covers no reference base.
            logger.warning(f"Skipping zero-length BED interval {row.chrom}:{start}-{end} in {bed_file}")
            continue
        regions.append(_bed_to_region(row.chrom, start, end))

    logger.info(f"Read {len(regions)} regions on {df['chrom'].nunique()} contigs from {bed_file}")
    return regions


def load_regions_map(bed_file: Union[str, Path]) -> ContigRegionsMap:
    """Read a BED file straight into a frozen ContigRegionsMap."""
    return ContigRegionsMapBuilder().add_and_build(read_bed_regions(bed_file))
