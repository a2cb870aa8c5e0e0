from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import IO, List, Optional, Sequence, Union

import pandas as pd

from alignbucket.constants import READ_GROUP_PLATFORM, SAMPLESHEET_COLUMNS
from alignbucket.exceptions import ConfigurationError
from alignbucket.logging_utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Sample:
    """One sequenced sample (lane) as described by a samplesheet row."""

    external_sample_id: str
    sequencer: str
    sequencing_start_date: int
    run: int
    flowcell: str
    lane: int

    @property
    def comparison_name(self) -> str:
        """Name of the directory holding this sample's input units, e.g. ``150616_SN163_0648_AHKYLMADXX_L1``."""
        return (
            f"{self.sequencing_start_date}_{self.sequencer}_{self.run:04d}"
            f"_{self.flowcell}_L{self.lane}"
        )

    @property
    def read_group_id(self) -> str:
        return f"{self.flowcell}_{self.lane}"

    @property
    def read_group_line(self) -> str:
        return "\t".join(
            [
                "@RG",
                f"ID:{self.read_group_id}",
                f"PL:{READ_GROUP_PLATFORM}",
                f"LB:{self.read_group_id}",
                f"SM:{self.external_sample_id}",
            ]
        )

    @property
    def safe_read_group_line(self) -> str:
        """Read group line with tabs written as ``\\t`` so it survives as one bwa ``-R`` argument."""
        return self.read_group_line.replace("\t", "\\t")


def _parse_int(value: str, column: str, row_number: int) -> int:
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise ConfigurationError(
            f"Samplesheet row {row_number}: column '{column}' is not an integer: {value!r}"
        ) from e


def read_samplesheet(samplesheet: Union[str, Path, IO]) -> List[Sample]:
    """
    Load samples from a comma-separated samplesheet.

    The header must contain externalSampleID, sequencer, sequencingStartDate, run,
    flowcell and lane (any order, case-insensitive). Other columns are ignored.

    Params:
        samplesheet (str | Path | IO): CSV path or open file.
    Returns:
        samples (list[Sample]): in file order.
    Raises:
        ConfigurationError: if the header or any required field is missing.
    """
    try:
        df = pd.read_csv(samplesheet, dtype=str, keep_default_na=False, na_values=[""])
    except pd.errors.EmptyDataError as e:
        raise ConfigurationError(f"Samplesheet has no header line: {samplesheet}") from e

    rename = {}
    for col in df.columns:
        key = str(col).strip().lower()
        if key in SAMPLESHEET_COLUMNS:
            rename[col] = SAMPLESHEET_COLUMNS[key]
    df = df.rename(columns=rename)

    missing = [name for name in SAMPLESHEET_COLUMNS.values() if name not in df.columns]
    if missing:
        raise ConfigurationError(f"Samplesheet header is missing columns {missing}: {samplesheet}")

    samples: List[Sample] = []
    for row_number, row in enumerate(df.to_dict(orient="records"), start=2):
        empty = [name for name in SAMPLESHEET_COLUMNS.values() if pd.isna(row[name])]
        if empty:
            raise ConfigurationError(
                f"Samplesheet row {row_number} is missing values for {empty}: {samplesheet}"
            )
        samples.append(
            Sample(
                external_sample_id=row["external_sample_id"].strip(),
                sequencer=row["sequencer"].strip(),
                sequencing_start_date=_parse_int(
                    row["sequencing_start_date"], "sequencingStartDate", row_number
                ),
                run=_parse_int(row["run"], "run", row_number),
                flowcell=row["flowcell"].strip(),
                lane=_parse_int(row["lane"], "lane", row_number),
            )
        )

    logger.info(f"Loaded {len(samples)} samples from {samplesheet}")
    return samples


def find_sample(samples: Sequence[Sample], comparison_name: str) -> Optional[Sample]:
    """Return the first sample whose comparison name matches, or None."""
    for sample in samples:
        if sample.comparison_name == comparison_name:
            return sample
    return None
