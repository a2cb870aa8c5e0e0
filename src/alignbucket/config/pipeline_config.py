# pipeline_config.py
from __future__ import annotations

import ast
import json
import logging
import warnings
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Union

import pandas as pd
import yaml

from alignbucket.constants import (
    BWA_EXECUTABLE,
    BWA_MEM_ARGS,
    INPUT_UNIT_PREFIX,
    INPUT_UNIT_SUFFIX,
    INVALID_PAIR_POLICIES,
)
from alignbucket.exceptions import ConfigurationError


# -------------------------
# Utility parsing functions
# -------------------------
def _parse_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    s = str(v).strip().lower()
    if s in ("1", "true", "t", "yes", "y", "on"):
        return True
    if s in ("0", "false", "f", "no", "n", "off", ""):
        return False
    raise ValueError(f"Cannot parse boolean from '{v}'")


def _parse_list(v: Any) -> List:
    if v is None:
        return []
    if isinstance(v, (list, tuple)):
        return list(v)
    s = str(v).strip()
    if s == "" or s.lower() == "none":
        return []
    # try JSON
    try:
        parsed = json.loads(s)
        if isinstance(parsed, list):
            return parsed
    except ValueError:
        pass
    # try python literal
    try:
        lit = ast.literal_eval(s)
        if isinstance(lit, (list, tuple)):
            return list(lit)
    except (ValueError, SyntaxError):
        pass
    # fallback comma separated
    s2 = s.strip("[]() ")
    return [p.strip() for p in s2.split(",") if p.strip() != ""]


def _parse_numeric(v: Any, fallback: Any = None) -> Any:
    if v is None:
        return fallback
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return v
    s = str(v).strip()
    if s == "" or s.lower() == "none":
        return fallback
    try:
        return int(s)
    except ValueError:
        try:
            return float(s)
        except ValueError:
            return fallback


class LoadPipelineConfig:
    """
    Load a pipeline config CSV (or DataFrame / file-like) into a typed var_dict.

    CSV expected columns: 'variable', 'value', optional 'type'.
    If 'type' is missing the value is kept as a string and coerced later by
    PipelineConfig.from_var_dict.

    Example
    -------
    loader = LoadPipelineConfig("pipeline_config.csv")
    var_dict = loader.var_dict
    """

    def __init__(self, pipeline_config: Union[str, Path, IO, pd.DataFrame]):
        self.source = pipeline_config
        self.df = self._load_df(pipeline_config)
        self.var_dict = self._parse_df(self.df)

    @staticmethod
    def _load_df(source: Union[str, Path, IO, pd.DataFrame]) -> pd.DataFrame:
        if isinstance(source, pd.DataFrame):
            df = source.copy()
        else:
            if isinstance(source, (str, Path)) and not Path(source).exists():
                raise FileNotFoundError(f"Config file not found: {source}")
            df = pd.read_csv(source, dtype=str, keep_default_na=False, na_values=[""])
        df.columns = [str(c).strip() for c in df.columns]
        if "variable" not in df.columns:
            raise ConfigurationError("Config CSV must contain a 'variable' column.")
        if "value" not in df.columns:
            df["value"] = ""
        if "type" not in df.columns:
            df["type"] = ""
        return df

    @staticmethod
    def _parse_value_as_type(value_str: Optional[str], dtype_hint: Optional[str]) -> Any:
        """Parse one value guided by dtype_hint (int, float, bool, list, str)."""
        if value_str is None:
            return None
        v = str(value_str).strip()
        if v == "" or v.lower() == "none":
            return None

        hint = "" if dtype_hint is None or pd.isna(dtype_hint) else str(dtype_hint).strip().lower()
        if hint in ("int", "integer"):
            return int(v)
        if hint in ("float", "double"):
            return float(v)
        if hint in ("bool", "boolean"):
            return _parse_bool(v)
        if hint in ("list", "array"):
            return _parse_list(v)
        return v

    def _parse_df(self, df: pd.DataFrame) -> Dict[str, Any]:
        parsed: Dict[str, Any] = {}
        for idx, row in df.iterrows():
            name = str(row["variable"]).strip()
            if name == "":
                continue
            raw_val = row.get("value", "")
            if pd.isna(raw_val) or str(raw_val).strip() == "":
                raw_val = None
            try:
                parsed_val = self._parse_value_as_type(raw_val, row.get("type", ""))
            except ValueError as e:
                warnings.warn(
                    f"Failed to parse config variable '{name}' (row {idx}): {e}. Storing raw value."
                )
                parsed_val = raw_val
            if name in parsed:
                warnings.warn(
                    f"Duplicate config variable '{name}' encountered (row {idx}). Overwriting previous value."
                )
            parsed[name] = parsed_val
        return parsed


_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


@dataclass
class PipelineConfig:
    # Tools & reference
    bwa_executable: str = BWA_EXECUTABLE
    bwa_args: List[str] = field(default_factory=lambda: list(BWA_MEM_ARGS))
    reference_fasta: Optional[str] = None
    threads: Optional[int] = None

    # Region grouping and samples
    bed_file: Optional[str] = None
    samplesheet: Optional[str] = None

    # Input units
    input_paths: List[str] = field(default_factory=list)
    input_prefix: str = INPUT_UNIT_PREFIX
    input_suffix: str = INPUT_UNIT_SUFFIX

    # Output
    output_directory: Optional[str] = None

    # Behaviour
    on_invalid_pair: str = "raise"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    config_source: Optional[str] = None

    @classmethod
    def from_var_dict(cls, var_dict: Optional[Dict[str, Any]], config_source: Optional[str] = None) -> "PipelineConfig":
        """Build a config from loose key/value pairs, coercing types and ignoring unknown keys."""
        var_dict = dict(var_dict or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(k for k in var_dict if k not in known)
        if unknown:
            warnings.warn(f"Ignoring unknown config variables: {unknown}")

        kwargs: Dict[str, Any] = {}
        for name in known & set(var_dict):
            value = var_dict[name]
            if value is None:
                continue
            if name in ("bwa_args", "input_paths"):
                value = [str(v) for v in _parse_list(value)]
            elif name == "threads":
                value = _parse_numeric(value)
                if value is not None:
                    value = int(value)
            elif name == "log_level":
                value = str(value).strip().upper()
            else:
                value = str(value).strip()
            kwargs[name] = value

        kwargs["config_source"] = config_source or var_dict.get("config_source")
        return cls(**kwargs)

    @classmethod
    def from_csv(cls, csv_input: Union[str, Path, IO, pd.DataFrame]) -> "PipelineConfig":
        loader = LoadPipelineConfig(csv_input)
        source = str(csv_input) if isinstance(csv_input, (str, Path)) else None
        return cls.from_var_dict(loader.var_dict, config_source=source)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "PipelineConfig":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = yaml.safe_load(p.read_text(encoding="utf8")) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"YAML config must be a mapping: {path}")
        return cls.from_var_dict(data, config_source=str(p))

    @classmethod
    def load(cls, path: Union[str, Path]) -> "PipelineConfig":
        """Load from YAML (.yaml/.yml) or a variable/value CSV (anything else)."""
        if Path(path).suffix.lower() in {".yaml", ".yml"}:
            return cls.from_yaml(path)
        return cls.from_csv(path)

    @property
    def log_level_value(self) -> int:
        return _LOG_LEVELS.get(self.log_level.upper(), logging.INFO)

    # -------------------------
    # validation & serialization
    # -------------------------
    def validate(self, require_paths: bool = True, raise_on_error: bool = True) -> List[str]:
        """
        Validate the config. If require_paths is True, check that input files exist
        and create output_directory if missing.
        Returns a list of error messages (empty if none). Raises ConfigurationError if raise_on_error is True.
        """
        errors: List[str] = []
        for name in ("reference_fasta", "bed_file", "samplesheet", "output_directory"):
            if not getattr(self, name):
                errors.append(f"{name} is required but missing.")
        if not self.input_paths:
            errors.append("input_paths must list at least one input file or directory.")
        if self.on_invalid_pair not in INVALID_PAIR_POLICIES:
            errors.append(
                f"on_invalid_pair must be one of {sorted(INVALID_PAIR_POLICIES)}; got {self.on_invalid_pair!r}."
            )
        if self.threads is not None and self.threads < 1:
            errors.append("threads must be a positive integer.")
        if self.log_level.upper() not in _LOG_LEVELS:
            errors.append(f"log_level must be one of {sorted(_LOG_LEVELS)}; got {self.log_level!r}.")

        if require_paths:
            for name in ("reference_fasta", "bed_file", "samplesheet"):
                value = getattr(self, name)
                if value and not Path(value).exists():
                    errors.append(f"{name} does not exist: {value}")
            for p in self.input_paths:
                if not Path(p).exists():
                    errors.append(f"input path does not exist: {p}")
            outp = Path(self.output_directory) if self.output_directory else None
            if outp and not outp.exists():
                try:
                    outp.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    errors.append(f"Could not create output_directory {self.output_directory}: {e}")

        if raise_on_error and errors:
            raise ConfigurationError("PipelineConfig validation failed:\n  " + "\n  ".join(errors))
        return errors

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_yaml(self, path: Optional[Union[str, Path]] = None) -> str:
        """Dump config to YAML (string if path is None) or save to file at path."""
        text = yaml.safe_dump(self.to_dict(), sort_keys=False)
        if path is None:
            return text
        p = Path(path)
        p.write_text(text, encoding="utf8")
        return str(p)

    def save(self, path: Union[str, Path]) -> str:
        return self.to_yaml(path)

    def __repr__(self) -> str:
        return f"<PipelineConfig reference={self.reference_fasta} bed={self.bed_file} source={self.config_source}>"
