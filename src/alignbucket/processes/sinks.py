"""Sinks decode the output stream of a process pipeline into domain items.

Caller behaviour is injected as plain callables (``on_item``, ``on_pair``,
``on_finish``). Without an ``on_item`` callback a sink collects decoded items in
``results``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import (
    IO,
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    Iterator,
    List,
    Optional,
    TypeVar,
)

from alignbucket.constants import INVALID_PAIR_POLICIES
from alignbucket.exceptions import ConfigurationError, MatePairValidationFailure
from alignbucket.logging_utils import get_logger
from alignbucket.optional_imports import require

if TYPE_CHECKING:
    import pysam as pysam_types

try:
    import pysam
except Exception:
    pysam = None  # type: ignore

logger = get_logger(__name__)

T = TypeVar("T")

_UNPAIRED = object()


def _require_pysam() -> "pysam_types":
    """Return the pysam module or raise if unavailable."""
    if pysam is not None:
        return pysam
    return require("pysam", extra="pysam", purpose="SAM record decoding")


class Sink(ABC, Generic[T]):
    """Consumer for the byte stream written by the last pipeline stage."""

    def __init__(
        self,
        on_item: Optional[Callable[[T], Any]] = None,
        on_finish: Optional[Callable[[], Any]] = None,
    ):
        self._on_item = on_item
        self._on_finish = on_finish
        self.results: List[T] = []
        self.items_digested = 0
        # Filled in by ProcessPipeline.run once all stages have exited.
        self.pipeline_report = None

    @abstractmethod
    def decode(self, stream: IO[bytes]) -> Iterator[T]:
        """Lazily turn ``stream`` into items."""

    def handle_input_stream(self, stream: IO[bytes]) -> None:
        for item in self.decode(stream):
            self.digest_stream_item(item)
        self.finish_stream_processing()

    def digest_stream_item(self, item: T) -> None:
        self.items_digested += 1
        if self._on_item is None:
            self.results.append(item)
        else:
            self._on_item(item)

    def finish_stream_processing(self) -> None:
        if self._on_finish is not None:
            self._on_finish()


class GroupedSink(Sink[T]):
    """Sink that hands out decoded items two at a time.

    ``validate_pair`` runs before each pair is digested. When it raises
    :class:`MatePairValidationFailure` the pair is never forwarded; with
    ``on_invalid_pair="raise"`` the failure propagates and stops the stream,
    with ``"skip"`` it is logged and counted in ``pairs_skipped``.
    """

    def __init__(
        self,
        on_item: Optional[Callable[[T], Any]] = None,
        on_finish: Optional[Callable[[], Any]] = None,
        *,
        on_pair: Optional[Callable[[T, T], Any]] = None,
        on_invalid_pair: str = "raise",
        log: Optional[logging.Logger] = None,
    ):
        super().__init__(on_item=on_item, on_finish=on_finish)
        if on_invalid_pair not in INVALID_PAIR_POLICIES:
            raise ConfigurationError(
                f"on_invalid_pair must be one of {sorted(INVALID_PAIR_POLICIES)}, got {on_invalid_pair!r}"
            )
        self._on_pair = on_pair
        self.on_invalid_pair = on_invalid_pair
        self.pairs_digested = 0
        self.pairs_skipped = 0
        self._log = log or logger

    def handle_input_stream(self, stream: IO[bytes]) -> None:
        items = iter(self.decode(stream))
        for first in items:
            second = next(items, _UNPAIRED)
            if second is _UNPAIRED:
                self._reject(
                    MatePairValidationFailure(
                        f"Stream ended with an unpaired item: {self.describe(first)}", first, None
                    )
                )
                break
            try:
                self.validate_pair(first, second)
            except MatePairValidationFailure as exc:
                self._reject(exc)
                continue
            self.digest_stream_items(first, second)
            self.pairs_digested += 1
        self.finish_stream_processing()

    def _reject(self, failure: MatePairValidationFailure) -> None:
        if self.on_invalid_pair == "raise":
            raise failure
        self.pairs_skipped += 1
        self._log.warning("Skipping invalid pair: %s", failure)

    def validate_pair(self, first: T, second: T) -> None:
        """Cross-item check run before a pair is digested. Defaults to accepting everything."""

    def digest_stream_items(self, first: T, second: T) -> None:
        if self._on_pair is not None:
            self._on_pair(first, second)
            return
        self.digest_stream_item(first)
        self.digest_stream_item(second)

    def describe(self, item: T) -> str:
        return repr(item)


class LinesSink(Sink[str]):
    """Decodes text lines, stripping the line terminator."""

    def __init__(
        self,
        on_item: Optional[Callable[[str], Any]] = None,
        on_finish: Optional[Callable[[], Any]] = None,
        encoding: str = "utf-8",
    ):
        super().__init__(on_item=on_item, on_finish=on_finish)
        self.encoding = encoding

    def decode(self, stream: IO[bytes]) -> Iterator[str]:
        for raw in stream:
            yield raw.decode(self.encoding, errors="replace").rstrip("\r\n")


class SamRecordSink(Sink["pysam_types.AlignedSegment"]):
    """Decodes SAM text into pysam ``AlignedSegment`` records.

    Leading ``@`` lines form the header, exposed as ``header`` once the first
    record (or the end of the stream) is reached. Blank lines are ignored.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.header: Optional["pysam_types.AlignmentHeader"] = None

    def decode(self, stream: IO[bytes]) -> Iterator["pysam_types.AlignedSegment"]:
        pysam_mod = _require_pysam()
        header_lines: List[str] = []
        for raw in stream:
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if not line:
                continue
            if self.header is None:
                if line.startswith("@"):
                    header_lines.append(line)
                    continue
                self.header = self._build_header(pysam_mod, header_lines)
            yield pysam_mod.AlignedSegment.fromstring(line, self.header)
        if self.header is None:
            self.header = self._build_header(pysam_mod, header_lines)

    @staticmethod
    def _build_header(pysam_mod, header_lines: List[str]) -> "pysam_types.AlignmentHeader":
        if not header_lines:
            return pysam_mod.AlignmentHeader()
        text = "".join(f"{line}\n" for line in header_lines)
        return pysam_mod.AlignmentHeader.from_text(text)

    def describe(self, item: "pysam_types.AlignedSegment") -> str:
        return item.to_string()


def validate_mates(
    first: "pysam_types.AlignedSegment", second: "pysam_types.AlignedSegment"
) -> None:
    """Raise MatePairValidationFailure unless each record's mate fields mirror the other record.

    Compared per direction: mate reference name vs reference name, mate start vs
    alignment start and mate strand vs strand.
    """
    for record, mate in ((first, second), (second, first)):
        if (
            record.next_reference_name != mate.reference_name
            or record.next_reference_start != mate.reference_start
            or record.mate_is_reverse != mate.is_reverse
        ):
            raise MatePairValidationFailure(
                f"No valid read pair: {first.to_string()} - {second.to_string()}", first, second
            )


class SamRecordPairSink(GroupedSink, SamRecordSink):
    """SAM sink that digests mate pairs, checking them with :func:`validate_mates`."""

    describe = SamRecordSink.describe

    def validate_pair(self, first, second) -> None:
        validate_mates(first, second)
