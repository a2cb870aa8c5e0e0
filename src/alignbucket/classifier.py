"""Align input units with bwa and bucket the resulting mate pairs into regions."""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import pandas as pd

from alignbucket.constants import BWA_MEM_ARGS, INPUT_UNIT_PREFIX, INPUT_UNIT_SUFFIX
from alignbucket.exceptions import InvalidInputUnit
from alignbucket.logging_utils import get_logger
from alignbucket.optional_imports import require
from alignbucket.processes.pipeline import ProcessPipeline, StageSpec
from alignbucket.processes.sinks import SamRecordPairSink
from alignbucket.regions.region import Region
from alignbucket.regions.retriever import IntervalGroupRetriever
from alignbucket.samples.samplesheet import Sample, find_sample

if TYPE_CHECKING:
    import pysam as pysam_types

logger = get_logger(__name__)

PathLike = Union[str, Path]


class ClassifiedRecord(NamedTuple):
    """An alignment assigned to one region. A record can appear under several regions."""

    region: Region
    record: Any

    @property
    def sort_key(self) -> Tuple[Region, int]:
        return (self.region, self.record.reference_start + 1)


def validate_input_unit(
    path: PathLike, prefix: str = INPUT_UNIT_PREFIX, suffix: str = INPUT_UNIT_SUFFIX
) -> bool:
    """
    Decide whether an input file should be aligned.

    Returns False for files without ``suffix`` (those are skipped). Raises
    InvalidInputUnit for ``suffix`` files whose name does not start with ``prefix``,
    since those were most likely staged by mistake.
    """
    file_name = Path(path).name
    if not file_name.endswith(suffix):
        return False
    if not file_name.startswith(prefix):
        raise InvalidInputUnit(str(path), f"Invalid {suffix} file found")
    return True


def resolve_sample(path: PathLike, samples: Sequence[Sample]) -> Sample:
    """Match the parent directory name of ``path`` to a sample's comparison name."""
    sample_dir_name = Path(path).parent.name
    sample = find_sample(samples, sample_dir_name)
    if sample is None:
        raise InvalidInputUnit(
            str(path), "Incorrectly named path or samplesheet missing information about"
        )
    return sample


def build_bwa_stage(
    bwa_executable: PathLike,
    reference_fasta: PathLike,
    sample: Sample,
    threads: Optional[int] = None,
    bwa_args: Sequence[str] = BWA_MEM_ARGS,
) -> StageSpec:
    """bwa invocation reading interleaved FASTQ from stdin and tagging reads with the sample's read group."""
    args = list(bwa_args)
    if threads:
        args += ["-t", str(threads)]
    args += ["-R", sample.safe_read_group_line, str(reference_fasta), "-"]
    return StageSpec(bwa_executable, tuple(args))


def iter_input_units(input_paths: Iterable[PathLike]) -> Iterator[Path]:
    """Yield files from ``input_paths``, descending into directories recursively."""
    for p in input_paths:
        p = Path(p)
        if p.is_dir():
            yield from sorted(f for f in p.rglob("*") if f.is_file())
        else:
            yield p


def classify_records(
    retriever: IntervalGroupRetriever, records: Iterable[Any]
) -> Iterator[ClassifiedRecord]:
    """Classify already aligned records one by one, without pairing."""
    for record in records:
        for region in retriever.retrieve_groups_within_range(record):
            yield ClassifiedRecord(region, record)


class RegionClassifier:
    """
    Caller side of the process pipeline: turns input units into region-tagged records.

    For each validated mate pair the regions of both mates are merged (ordered,
    de-duplicated) and each mate is emitted once per region, so a pair always
    ends up in the same buckets.
    """

    def __init__(
        self,
        retriever: IntervalGroupRetriever,
        samples: Sequence[Sample],
        bwa_executable: PathLike,
        reference_fasta: PathLike,
        *,
        bwa_args: Sequence[str] = BWA_MEM_ARGS,
        threads: Optional[int] = None,
        input_prefix: str = INPUT_UNIT_PREFIX,
        input_suffix: str = INPUT_UNIT_SUFFIX,
        on_invalid_pair: str = "raise",
        logger: Optional[logging.Logger] = None,
    ):
        self.retriever = retriever
        self.samples = list(samples)
        self.bwa_executable = str(bwa_executable)
        self.reference_fasta = str(reference_fasta)
        self.bwa_args = list(bwa_args)
        self.threads = threads
        self.input_prefix = input_prefix
        self.input_suffix = input_suffix
        self.on_invalid_pair = on_invalid_pair
        self.logger = logger if logger is not None else get_logger(__name__)

    def regions_for_pair(self, first, second) -> List[Region]:
        merged = self.retriever.retrieve_groups_within_range(first)
        merged += self.retriever.retrieve_groups_within_range(second)
        return sorted(set(merged))

    def pair_sink(self, emit: Callable[[ClassifiedRecord], Any]) -> SamRecordPairSink:
        def on_pair(first, second) -> None:
            for region in self.regions_for_pair(first, second):
                emit(ClassifiedRecord(region, first))
                emit(ClassifiedRecord(region, second))

        return SamRecordPairSink(
            on_pair=on_pair, on_invalid_pair=self.on_invalid_pair, log=self.logger
        )

    def classify_input_unit(
        self, path: PathLike, data: bytes, emit: Callable[[ClassifiedRecord], Any]
    ) -> Optional[SamRecordPairSink]:
        """
        Align one input unit and emit a ClassifiedRecord per (region, record).

        Returns the finished sink, or None when the file is not an input unit.
        Raises InvalidInputUnit for misnamed units or units without a sample.
        """
        if not validate_input_unit(path, self.input_prefix, self.input_suffix):
            self.logger.debug(f"Skipping non-input file: {path}")
            return None
        sample = resolve_sample(path, self.samples)
        stage = build_bwa_stage(
            self.bwa_executable, self.reference_fasta, sample, self.threads, self.bwa_args
        )
        self.logger.debug(
            f'Executing pipeline with input unit "{path}" and read group line "{sample.read_group_line}".'
        )
        sink = self.pair_sink(emit)
        ProcessPipeline([stage], logger=self.logger).run(data, sink)
        self.logger.info(
            f"{Path(path).name}: {sink.pairs_digested} pairs classified, {sink.pairs_skipped} skipped"
        )
        return sink


def _require_pysam() -> "pysam_types":
    return require("pysam", extra="pysam", purpose="writing region SAM files")


def merge_headers(headers: Iterable["pysam_types.AlignmentHeader"]) -> Dict[str, Any]:
    """Combine headers from several input units: first SQ/PG, read groups de-duplicated by ID."""
    merged: Dict[str, Any] = {}
    seen_rg = set()
    for header in headers:
        if header is None:
            continue
        data = header.to_dict()
        for key in ("HD", "SQ", "PG"):
            if key in data and key not in merged:
                merged[key] = data[key]
        for rg in data.get("RG", []):
            if rg.get("ID") not in seen_rg:
                seen_rg.add(rg.get("ID"))
                merged.setdefault("RG", []).append(rg)
    return merged


def region_file_name(region: Region) -> str:
    return f"{region.contig}_{region.start}_{region.end}.sam"


def write_region_sam_files(
    classified: Iterable[ClassifiedRecord],
    header: Dict[str, Any],
    output_directory: PathLike,
) -> Dict[Region, int]:
    """Write one SAM file per region, records ordered by alignment start. Returns counts per region."""
    pysam_mod = _require_pysam()
    output_directory = Path(output_directory)
    output_directory.mkdir(parents=True, exist_ok=True)
    out_header = pysam_mod.AlignmentHeader.from_dict(header)

    by_region: Dict[Region, List[ClassifiedRecord]] = defaultdict(list)
    for item in classified:
        by_region[item.region].append(item)

    counts: Dict[Region, int] = {}
    for region in sorted(by_region):
        items = sorted(by_region[region], key=lambda c: c.sort_key)
        path = output_directory / region_file_name(region)
        with pysam_mod.AlignmentFile(str(path), "w", header=out_header) as out:
            for item in items:
                out.write(pysam_mod.AlignedSegment.fromstring(item.record.to_string(), out_header))
        counts[region] = len(items)
        logger.debug(f"Wrote {len(items)} records to {path}")
    return counts


def write_region_counts(counts: Dict[Region, int], path: PathLike) -> Path:
    """Write a region/count table as TSV."""
    path = Path(path)
    df = pd.DataFrame(
        [
            {"contig": r.contig, "start": r.start, "end": r.end, "records": n}
            for r, n in sorted(counts.items())
        ],
        columns=["contig", "start", "end", "records"],
    )
    df.to_csv(path, sep="\t", index=False)
    return path
