"""Logging utilities for alignbucket."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Optional, Union

DEFAULT_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_EMPTY_RE = re.compile(r"^\s*$")


def setup_logging(
    level: int = logging.INFO,
    fmt: str = DEFAULT_LOG_FORMAT,
    datefmt: str = DEFAULT_DATE_FORMAT,
    log_file: Optional[Union[str, Path]] = None,
    reconfigure: bool = False,
) -> None:
    """
    Configure logging for alignbucket.

    Should be called once by the CLI entrypoint.
    Safe to call multiple times, with optional reconfiguration.
    """
    logger = logging.getLogger("alignbucket")
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    if logger.handlers and not reconfigure:
        if log_file is not None and not _has_file_handler(logger, Path(log_file)):
            logger.addHandler(_file_handler(Path(log_file), formatter))
        logger.setLevel(level)
        return

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler (stderr)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is not None:
        logger.addHandler(_file_handler(Path(log_file), formatter))

    logger.setLevel(level)
    logger.propagate = False


def _has_file_handler(logger: logging.Logger, log_path: Path) -> bool:
    return any(
        isinstance(handler, logging.FileHandler)
        and Path(getattr(handler, "baseFilename", "")) == log_path.absolute()
        for handler in logger.handlers
    )


def _file_handler(log_path: Path, formatter: logging.Formatter) -> logging.FileHandler:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path)
    file_handler.setFormatter(formatter)
    return file_handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_tool_lines(
    logger: logging.Logger, tool: str, lines: Iterable[str], level: int = logging.INFO
) -> int:
    """Emit captured tool output one line at a time, prefixed with the tool name.

    Blank lines are dropped. Returns the number of lines logged.
    """
    logged = 0
    for raw in lines:
        line = raw.rstrip("\n")
        if _EMPTY_RE.match(line):
            continue
        logger.log(level, "[%s] %s", tool, line)
        logged += 1
    return logged
