import logging
from pathlib import Path
from typing import List

import click
from tqdm import tqdm

from .classifier import (
    ClassifiedRecord,
    RegionClassifier,
    classify_records,
    iter_input_units,
    merge_headers,
    write_region_counts,
    write_region_sam_files,
)
from .config import PipelineConfig
from .constants import REGION_COUNTS_FILENAME
from .exceptions import AlignBucketError
from .logging_utils import get_logger, setup_logging
from .optional_imports import require, require_executable
from .regions import IntervalGroupRetriever, load_regions_map
from .samples import read_samplesheet

logger = get_logger(__name__)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the log level from the config.",
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also log to this file.")
@click.pass_context
def cli(ctx, log_level, log_file):
    """Command-line interface for alignbucket."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level
    ctx.obj["log_file"] = log_file


####### Align input units and bucket them into regions ###########
@cli.command()
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def classify(ctx, config_path):
    """Align input units listed in CONFIG_PATH and write one SAM file per region."""
    try:
        cfg = PipelineConfig.load(config_path)
    except AlignBucketError as e:
        raise click.ClickException(str(e)) from e
    _configure_logging(ctx, cfg.log_level_value, cfg.log_file)
    try:
        cfg.validate(require_paths=True)
        bwa = require_executable(cfg.bwa_executable, purpose="aligning input units")

        retriever = IntervalGroupRetriever(load_regions_map(cfg.bed_file))
        classifier = RegionClassifier(
            retriever,
            read_samplesheet(cfg.samplesheet),
            bwa,
            cfg.reference_fasta,
            bwa_args=cfg.bwa_args,
            threads=cfg.threads,
            input_prefix=cfg.input_prefix,
            input_suffix=cfg.input_suffix,
            on_invalid_pair=cfg.on_invalid_pair,
        )

        classified: List[ClassifiedRecord] = []
        headers = []
        units = list(iter_input_units(cfg.input_paths))
        for unit in tqdm(units, desc="Input units"):
            sink = classifier.classify_input_unit(unit, unit.read_bytes(), classified.append)
            if sink is not None:
                headers.append(sink.header)

        counts = write_region_sam_files(classified, merge_headers(headers), cfg.output_directory)
        counts_path = write_region_counts(counts, Path(cfg.output_directory) / REGION_COUNTS_FILENAME)
    except AlignBucketError as e:
        raise click.ClickException(str(e)) from e

    logger.info(f"Wrote {len(counts)} region files; counts in {counts_path}")
##########################################


####### Classify already aligned records ###########
@cli.command()
@click.argument("bed_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("alignment_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def regions(ctx, bed_path, alignment_path):
    """Print region<TAB>read name for every record in ALIGNMENT_PATH (SAM/BAM) hitting a BED_PATH region."""
    _configure_logging(ctx, None, None)
    pysam = require("pysam", extra="pysam", purpose="reading alignments")
    try:
        retriever = IntervalGroupRetriever(load_regions_map(bed_path))
    except AlignBucketError as e:
        raise click.ClickException(str(e)) from e

    with pysam.AlignmentFile(alignment_path, "r", check_sq=False) as alignments:
        for region, record in classify_records(retriever, alignments):
            click.echo(f"{region}\t{record.query_name}")
##########################################


def _configure_logging(ctx, config_level, config_log_file) -> None:
    level_name = (ctx.obj or {}).get("log_level")
    level = getattr(logging, level_name.upper()) if level_name else (config_level or logging.INFO)
    setup_logging(level=level, log_file=(ctx.obj or {}).get("log_file") or config_log_file)


def main():
    cli(obj={})
