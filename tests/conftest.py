from __future__ import annotations

import logging
from pathlib import Path

import pytest

TEST_INPUTS = Path(__file__).parent / "_test_inputs"


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Mark all tests under tests/unit as unit tests."""
    for item in items:
        path = Path(str(item.fspath)).as_posix()
        if "/tests/unit/" in f"/{path}":
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def _reset_alignbucket_logger():
    """setup_logging() detaches the package logger from root; undo that between tests."""
    yield
    logger = logging.getLogger("alignbucket")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def test_inputs() -> Path:
    return TEST_INPUTS
