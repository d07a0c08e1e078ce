"""
Store settings persistence.

Settings live in ``settings.json`` next to the options file and choose the
storage limits (``local`` or ``sync``) and the file encoding. A missing or
damaged settings file falls back to defaults instead of failing.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from .compression import CompressionFormat
from .storage.limits import LOCAL_LIMITS, SYNC_LIMITS, StorageLimits

AREA_KINDS = frozenset({"local", "sync"})


@dataclass(frozen=True, slots=True)
class StoreSettings:
    """
    Persisted store settings.

    Notes
    -----
    These settings choose how the options document is stored. They are never
    part of the options document itself.
    """

    area_kind: str  # "local" | "sync"
    compression: str  # "zstd" | "none"

    @staticmethod
    def defaults() -> "StoreSettings":
        return StoreSettings(area_kind="local", compression=CompressionFormat.NONE.value)

    @property
    def limits(self) -> StorageLimits:
        """Return the storage limits matching `area_kind`."""
        return SYNC_LIMITS if self.area_kind == "sync" else LOCAL_LIMITS

    @property
    def compression_format(self) -> CompressionFormat:
        return CompressionFormat(self.compression)


def load_store_settings(settings_path: Path) -> StoreSettings:
    """
    Load store settings from disk.

    Parameters
    ----------
    settings_path:
        Path to ``settings.json``.

    Returns
    -------
    StoreSettings
        Loaded settings, or defaults if missing/unreadable. Unknown values fall
        back to their defaults individually.
    """
    defaults = StoreSettings.defaults()
    try:
        payload = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return defaults
    if not isinstance(payload, dict):
        return defaults

    area_kind = payload.get("area_kind", defaults.area_kind)
    if area_kind not in AREA_KINDS:
        area_kind = defaults.area_kind

    compression = payload.get("compression", defaults.compression)
    if compression not in {f.value for f in CompressionFormat}:
        compression = defaults.compression

    return StoreSettings(area_kind=str(area_kind), compression=str(compression))


def save_store_settings(settings_path: Path, settings: StoreSettings) -> None:
    """
    Save store settings to disk.

    Parameters
    ----------
    settings_path:
        Path to ``settings.json``.
    settings:
        Settings to persist.
    """
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"area_kind": settings.area_kind, "compression": settings.compression}
    settings_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
