"""Store initialization operations.

Builds the file-backed options store for a data root and writes the default
document when none is persisted yet. Existing documents are never overwritten.
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import Any

from .options_store import OptionsStore
from .paths_and_safety import StorePaths, resolve_store_paths
from .settings import load_store_settings
from .storage.file_area import FileStorageArea


def open_options_store(data_root: Path | None = None) -> OptionsStore:
    """Open the options store configured under `data_root`.

    Parameters
    ----------
    data_root:
        Optional override for the data root.

    Returns
    -------
    OptionsStore
        Store over a FileStorageArea using the persisted store settings.
    """
    paths = resolve_store_paths(data_root)
    settings = load_store_settings(paths.settings_path)
    area = FileStorageArea(
        paths.options_path,
        compression=settings.compression_format,
        limits=settings.limits,
    )
    return OptionsStore(area)


async def init_store(data_root: Path | None = None) -> tuple[StorePaths, dict[str, Any]]:
    """Ensure an options document exists under `data_root`.

    Returns
    -------
    tuple[StorePaths, dict[str, Any]]
        The resolved paths and the (possibly freshly written) document.
    """
    paths = resolve_store_paths(data_root)
    document = await open_options_store(paths.data_root).load_or_initialize()
    return paths, document


def store_paths_as_text(paths: StorePaths) -> str:
    """Render StorePaths as a readable multi-line string."""
    items = asdict(paths)
    lines: list[str] = []
    for key in ("data_root", "options_path", "settings_path", "logs_root"):
        lines.append(f"{key}: {items[key]}")
    return "\n".join(lines)
