"""
File-backed storage area.

All items live in one JSON document on disk.

Design constraints
------------------
- Writes are atomic (temp file + replace): a reader never observes a half
  written file. This makes each individual set/remove/clear atomic; it does not
  make a clear-then-set sequence atomic.
- A missing file is an empty area, not an error.
- Blocking I/O runs in a worker thread so the event loop stays responsive.
- Change events are only delivered to listeners registered on this instance;
  writes by other processes are not observed.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from ..clock import Clock
from ..compression import CompressionFormat, decode_payload, encode_payload
from ..errors import StorageUnavailableError
from .base import BaseStorageArea
from .limits import UNLIMITED, StorageLimits


def write_bytes_atomic(path: Path, data: bytes) -> None:
    """
    Write bytes atomically to disk.

    Raises
    ------
    StorageUnavailableError
        If the file cannot be written. A leftover temp file is removed.
    """
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(path.suffix + ".tmp")

    try:
        with temp_path.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except OSError as exc:
        try:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise StorageUnavailableError(f"Failed to write storage file: {path} ({exc!s})") from exc


class FileStorageArea(BaseStorageArea):
    """
    Storage area persisted as a single JSON file.

    Parameters
    ----------
    path:
        File holding the items. Created on first write.
    compression:
        Encoding used when writing. Reads accept either encoding.
    limits:
        Quota and write-rate limits to enforce.
    clock:
        Time source for the write-rate windows.
    """

    def __init__(
        self,
        path: Path,
        *,
        compression: CompressionFormat = CompressionFormat.NONE,
        limits: StorageLimits = UNLIMITED,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(limits=limits, clock=clock)
        self._path = Path(path)
        self._compression = compression

    @property
    def path(self) -> Path:
        """Return the on-disk path of the storage file."""
        return self._path

    async def _load(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read_sync)

    async def _store(self, items: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write_sync, items)

    def _read_sync(self) -> dict[str, Any]:
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageUnavailableError(f"Failed to read storage file: {self._path}") from exc

        try:
            payload = json.loads(decode_payload(raw).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as exc:
            raise StorageUnavailableError(f"Storage file is corrupt: {self._path}") from exc
        if not isinstance(payload, dict):
            raise StorageUnavailableError(f"Storage file does not hold an object: {self._path}")
        return payload

    def _write_sync(self, items: dict[str, Any]) -> None:
        if self._compression is CompressionFormat.NONE:
            text = json.dumps(items, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
        else:
            text = json.dumps(items, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
        write_bytes_atomic(self._path, encode_payload(text.encode("utf-8"), self._compression))
