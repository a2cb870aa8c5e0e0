from __future__ import annotations

from types import MappingProxyType
from typing import Any, Final, Mapping, Tuple


## Helpers ##
def _deep_freeze(obj: Any) -> Any:
    """Recursively freeze common containers. Use for constant exports."""
    if isinstance(obj, dict):
        return MappingProxyType({k: _deep_freeze(v) for k, v in obj.items()})
    if isinstance(obj, (list, tuple)):
        return tuple(_deep_freeze(v) for v in obj)
    if isinstance(obj, set):
        return frozenset(_deep_freeze(v) for v in obj)
    return obj


## Input units ##
INPUT_UNIT_PREFIX: Final[str] = "halvade_"
INPUT_UNIT_SUFFIX: Final[str] = ".fq.gz"

## Aligner ##
BWA_EXECUTABLE: Final[str] = "bwa"
# Interleaved paired-end input, shorter split hits marked secondary.
BWA_MEM_ARGS: Final[Tuple[str, ...]] = _deep_freeze(["mem", "-p", "-M"])

## Read groups ##
READ_GROUP_PLATFORM: Final[str] = "illumina"

## Samplesheet ##
_private_samplesheet_columns = {
    "externalsampleid": "external_sample_id",
    "sequencer": "sequencer",
    "sequencingstartdate": "sequencing_start_date",
    "run": "run",
    "flowcell": "flowcell",
    "lane": "lane",
}
SAMPLESHEET_COLUMNS: Final[Mapping[str, str]] = _deep_freeze(_private_samplesheet_columns)

## Output ##
REGION_COUNTS_FILENAME: Final[str] = "region_counts.tsv"
INVALID_PAIR_POLICIES: Final[frozenset] = frozenset({"raise", "skip"})
