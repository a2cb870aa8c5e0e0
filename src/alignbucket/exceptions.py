"""Exception types raised by alignbucket.

Pipeline-level problems surface as ``ProcessPipelineError`` so callers have a
single type to catch around ``ProcessPipeline.run``. Validation failures raised
by sinks and by the classifier stay distinct from it.
"""

from __future__ import annotations

from typing import Optional, Sequence


class AlignBucketError(Exception):
    """Base class for all alignbucket errors."""


class ConfigurationError(AlignBucketError, ValueError):
    """Malformed configuration or domain values, such as a region with start > end."""


class ProcessPipelineError(AlignBucketError, RuntimeError):
    """Something went wrong while running a chain of external processes."""


class ProcessSpawnFailure(ProcessPipelineError):
    """An external command could not be started."""

    def __init__(self, command: Sequence[str], cause: Optional[BaseException] = None):
        self.command = list(command)
        self.cause = cause
        super().__init__(f"Could not start process {' '.join(self.command)!r}: {cause}")


class StreamIOFailure(ProcessPipelineError):
    """A relay task hit an I/O error while copying a stream."""

    def __init__(self, role: str, cause: Optional[BaseException] = None):
        self.role = role
        self.cause = cause
        super().__init__(f"I/O failure while relaying {role}: {cause}")


class MatePairValidationFailure(AlignBucketError, ValueError):
    """Two consecutive records are not each other's mates."""

    def __init__(self, message: str, first=None, second=None):
        self.first = first
        self.second = second
        super().__init__(message)


class InvalidInputUnit(AlignBucketError, ValueError):
    """An input unit does not satisfy the naming or sample preconditions."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")
