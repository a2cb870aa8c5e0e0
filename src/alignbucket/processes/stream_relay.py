"""Relay tasks that move bytes between the caller and external process streams.

Each task owns exactly one stream and always closes it before returning. I/O
errors are logged and handed back as a :class:`StreamIOFailure` result instead
of being raised, so one broken stream never takes the whole pipeline down.
"""

from __future__ import annotations

import logging
from typing import IO, Iterator, List, Optional

from alignbucket.exceptions import StreamIOFailure
from alignbucket.logging_utils import get_logger

logger = get_logger(__name__)


class LinesContainer:
    """Collects text lines from a drained stream."""

    def __init__(self) -> None:
        self._lines: List[str] = []

    def add(self, line: str) -> None:
        self._lines.append(line)

    @property
    def lines(self) -> List[str]:
        return list(self._lines)

    def as_string(self, newline_separator: bool = True) -> str:
        if newline_separator:
            return "".join(f"{line}\n" for line in self._lines)
        return "".join(self._lines)

    def clear(self) -> None:
        self._lines.clear()

    def __iter__(self) -> Iterator[str]:
        return iter(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    def __str__(self) -> str:
        return self.as_string(True)


def _close_quietly(stream: Optional[IO], log: logging.Logger, role: str) -> None:
    if stream is None:
        return
    try:
        stream.close()
    except OSError as exc:
        log.debug("Ignoring error while closing %s: %s", role, exc)


def write_input_bytes(
    stream: IO[bytes],
    data: bytes,
    log: Optional[logging.Logger] = None,
    role: str = "process stdin",
) -> Optional[StreamIOFailure]:
    """Write ``data`` into ``stream`` and close it, even when writing fails."""
    log = log or logger
    try:
        stream.write(data)
        stream.flush()
        log.debug("Wrote %d bytes to %s", len(data), role)
        return None
    except (OSError, ValueError) as exc:
        failure = StreamIOFailure(role, exc)
        log.error("Error occurred when writing to %s: %s", role, exc)
        log.debug("Write failure details for %s", role, exc_info=True)
        return failure
    finally:
        _close_quietly(stream, log, role)


def drain_lines(
    stream: IO[bytes],
    container: LinesContainer,
    log: Optional[logging.Logger] = None,
    role: str = "process stderr",
    encoding: str = "utf-8",
) -> Optional[StreamIOFailure]:
    """Read ``stream`` to the end, storing each decoded line without its terminator."""
    log = log or logger
    try:
        for raw in iter(stream.readline, b""):
            container.add(raw.decode(encoding, errors="replace").rstrip("\r\n"))
        return None
    except (OSError, ValueError) as exc:
        failure = StreamIOFailure(role, exc)
        log.error("Error occurred when reading from %s: %s", role, exc)
        log.debug("Read failure details for %s", role, exc_info=True)
        return failure
    finally:
        _close_quietly(stream, log, role)
