"""
Filesystem path policy.

This module is the single choke point for deciding where omegaopts reads and
writes data:

- Runtime data lives under a "data root" (default: ``~/.config/omegaopts``).
- The options file, the settings file and logs are resolved beneath it.

Nothing in the engine should pick file locations without going through here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import SafetyViolationError


@dataclass(frozen=True, slots=True)
class StorePaths:
    """
    Concrete resolved paths for an options store.

    Attributes
    ----------
    data_root:
        Root directory for all omegaopts runtime data.
    options_path:
        The persisted options document (storage area file).
    settings_path:
        Store settings (area kind, compression).
    logs_root:
        Rotating log files.
    """

    data_root: Path
    options_path: Path
    settings_path: Path
    logs_root: Path


def default_data_root() -> Path:
    """
    Resolve the default data root.

    Preference order:
    1) $OMEGAOPTS_HOME if set
    2) $XDG_CONFIG_HOME/omegaopts
    3) ~/.config/omegaopts
    """
    explicit = os.environ.get("OMEGAOPTS_HOME")
    if explicit:
        return Path(explicit).expanduser()

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg).expanduser() / "omegaopts"

    try:
        home = Path.home()
    except RuntimeError as exc:
        raise SafetyViolationError("Cannot resolve a home directory for the data root.") from exc
    return home / ".config" / "omegaopts"


def resolve_store_paths(data_root: Path | None = None) -> StorePaths:
    """
    Resolve all filesystem paths under a data root.

    Parameters
    ----------
    data_root:
        Optional override for the data root.

    Returns
    -------
    StorePaths
        Resolved paths. Nothing is created on disk.

    Raises
    ------
    SafetyViolationError
        If the data root is an existing non-directory.
    """
    root = (data_root or default_data_root()).expanduser().resolve()
    if root.exists() and not root.is_dir():
        raise SafetyViolationError(f"Data root is not a directory: {root}")
    return StorePaths(
        data_root=root,
        options_path=root / "options.json",
        settings_path=root / "settings.json",
        logs_root=root / "logs",
    )
