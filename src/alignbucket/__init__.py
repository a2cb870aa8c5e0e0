"""alignbucket"""

from importlib.metadata import PackageNotFoundError, version

from . import config, processes, regions, samples
from .classifier import ClassifiedRecord, RegionClassifier
from .exceptions import (
    AlignBucketError,
    ConfigurationError,
    InvalidInputUnit,
    MatePairValidationFailure,
    ProcessPipelineError,
    ProcessSpawnFailure,
    StreamIOFailure,
)
from .processes import ProcessPipeline, StageSpec, run_pipeline
from .regions import ContigRegionsMap, ContigRegionsMapBuilder, IntervalGroupRetriever, Region

package_name = "alignbucket"
try:
    __version__ = version(package_name)
except PackageNotFoundError:  # pragma: no cover - source checkout without install
    __version__ = "0.0.0"

__all__ = [
    "AlignBucketError",
    "ClassifiedRecord",
    "ConfigurationError",
    "ContigRegionsMap",
    "ContigRegionsMapBuilder",
    "IntervalGroupRetriever",
    "InvalidInputUnit",
    "MatePairValidationFailure",
    "ProcessPipeline",
    "ProcessPipelineError",
    "ProcessSpawnFailure",
    "Region",
    "RegionClassifier",
    "StageSpec",
    "StreamIOFailure",
    "run_pipeline",
]
