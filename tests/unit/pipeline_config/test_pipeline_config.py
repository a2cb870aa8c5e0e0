import logging

import pandas as pd
import pytest

from alignbucket.config import LoadPipelineConfig, PipelineConfig
from alignbucket.constants import BWA_MEM_ARGS
from alignbucket.exceptions import ConfigurationError


def test_defaults():
    cfg = PipelineConfig()
    assert cfg.bwa_executable == "bwa"
    assert cfg.bwa_args == list(BWA_MEM_ARGS)
    assert cfg.input_prefix == "halvade_"
    assert cfg.input_suffix == ".fq.gz"
    assert cfg.on_invalid_pair == "raise"
    assert cfg.log_level_value == logging.INFO


def test_from_var_dict_coerces_values():
    with pytest.warns(UserWarning, match="bogus"):
        cfg = PipelineConfig.from_var_dict(
            {"threads": "4", "bwa_args": "mem,-p", "log_level": "debug", "bogus": 1}
        )
    assert cfg.threads == 4
    assert cfg.bwa_args == ["mem", "-p"]
    assert cfg.log_level == "DEBUG"
    assert cfg.log_level_value == logging.DEBUG


def test_loader_applies_type_hints():
    df = pd.DataFrame(
        {
            "variable": ["threads", "input_paths", "reference_fasta", "log_file"],
            "value": ["8", "['a', 'b']", "/ref/hg19.fa", ""],
            "type": ["int", "list", "", ""],
        }
    )
    loader = LoadPipelineConfig(df)
    assert loader.var_dict == {
        "threads": 8,
        "input_paths": ["a", "b"],
        "reference_fasta": "/ref/hg19.fa",
        "log_file": None,
    }


def test_loader_requires_variable_column():
    with pytest.raises(ConfigurationError, match="variable"):
        LoadPipelineConfig(pd.DataFrame({"name": ["threads"], "value": ["1"]}))


def test_loader_warns_on_bad_value():
    df = pd.DataFrame({"variable": ["threads"], "value": ["many"], "type": ["int"]})
    with pytest.warns(UserWarning, match="Failed to parse config variable 'threads'"):
        loader = LoadPipelineConfig(df)
    assert loader.var_dict["threads"] == "many"


def test_from_csv(tmp_path):
    path = tmp_path / "config.csv"
    path.write_text(
        "variable,value,type\n"
        "reference_fasta,/ref/hg19.fa,\n"
        "threads,2,int\n"
        "on_invalid_pair,skip,\n"
    )
    cfg = PipelineConfig.load(path)
    assert cfg.reference_fasta == "/ref/hg19.fa"
    assert cfg.threads == 2
    assert cfg.on_invalid_pair == "skip"
    assert cfg.config_source == str(path)


def test_yaml_round_trip(tmp_path):
    cfg = PipelineConfig(reference_fasta="/ref/hg19.fa", input_paths=["in"], threads=3)
    path = tmp_path / "config.yaml"
    cfg.save(path)

    loaded = PipelineConfig.load(path)
    assert loaded.reference_fasta == "/ref/hg19.fa"
    assert loaded.input_paths == ["in"]
    assert loaded.threads == 3
    assert loaded.config_source == str(path)


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError, match="mapping"):
        PipelineConfig.load(path)


def test_validate_collects_errors():
    cfg = PipelineConfig(on_invalid_pair="ignore", threads=0, log_level="LOUD")
    errors = cfg.validate(require_paths=False, raise_on_error=False)

    assert "reference_fasta is required but missing." in errors
    assert any("input_paths" in e for e in errors)
    assert any("on_invalid_pair" in e for e in errors)
    assert "threads must be a positive integer." in errors
    assert any("log_level" in e for e in errors)

    with pytest.raises(ConfigurationError, match="validation failed"):
        cfg.validate(require_paths=False)


def test_validate_checks_paths_and_creates_output(tmp_path):
    bed = tmp_path / "regions.bed"
    bed.write_text("1\t0\t10\n")
    reference = tmp_path / "hg19.fa"
    reference.write_text(">1\nACGT\n")
    cfg = PipelineConfig(
        reference_fasta=str(reference),
        bed_file=str(bed),
        samplesheet=str(tmp_path / "missing.csv"),
        input_paths=[str(tmp_path)],
        output_directory=str(tmp_path / "out" / "nested"),
    )
    errors = cfg.validate(raise_on_error=False)

    assert errors == [f"samplesheet does not exist: {tmp_path / 'missing.csv'}"]
    assert (tmp_path / "out" / "nested").is_dir()


def test_validate_reports_missing_reference(tmp_path):
    bed = tmp_path / "regions.bed"
    bed.write_text("1\t0\t10\n")
    sheet = tmp_path / "samplesheet.csv"
    sheet.write_text("externalSampleID\n")
    cfg = PipelineConfig(
        reference_fasta=str(tmp_path / "missing.fa"),
        bed_file=str(bed),
        samplesheet=str(sheet),
        input_paths=[str(tmp_path)],
        output_directory=str(tmp_path / "out"),
    )

    assert cfg.validate(raise_on_error=False) == [
        f"reference_fasta does not exist: {tmp_path / 'missing.fa'}"
    ]
    with pytest.raises(ConfigurationError, match="reference_fasta does not exist"):
        cfg.validate()
