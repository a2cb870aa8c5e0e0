from .pipeline import PipelineReport, ProcessPipeline, StageSpec, run_pipeline
from .sinks import (
    GroupedSink,
    LinesSink,
    SamRecordPairSink,
    SamRecordSink,
    Sink,
    validate_mates,
)
from .stream_relay import LinesContainer, drain_lines, write_input_bytes

__all__ = [
    "GroupedSink",
    "LinesContainer",
    "LinesSink",
    "PipelineReport",
    "ProcessPipeline",
    "SamRecordPairSink",
    "SamRecordSink",
    "Sink",
    "StageSpec",
    "drain_lines",
    "run_pipeline",
    "validate_mates",
    "write_input_bytes",
]
