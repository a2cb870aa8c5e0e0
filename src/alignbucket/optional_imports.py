"""Lookups for third-party modules and external executables alignbucket depends on."""

from __future__ import annotations

import shutil
from importlib import import_module
from pathlib import Path
from typing import Any, Union

from alignbucket.exceptions import ConfigurationError


def require(package: str, *, extra: str, purpose: str | None = None) -> Any:
    """Import ``package`` or fail with install instructions.

    ``extra`` is the distribution name to suggest, which can differ from the
    import name (``pyyaml`` for ``yaml``).
    """
    try:
        return import_module(package)
    except ModuleNotFoundError as exc:  # pragma: no cover - depends on env
        reason = f" for {purpose}" if purpose else ""
        raise ModuleNotFoundError(
            f"Python package '{package}' is required{reason}. Install it with: pip install '{extra}'"
        ) from exc


def require_executable(executable: Union[str, Path], *, purpose: str | None = None) -> str:
    """Resolve ``executable`` on PATH (or as a path) and return its full location.

    Raises:
        ConfigurationError: if nothing executable is found.
    """
    found = shutil.which(str(executable))
    if found is None:
        reason = f" for {purpose}" if purpose else ""
        raise ConfigurationError(f"{executable} is required{reason} but not available in PATH.")
    return found
