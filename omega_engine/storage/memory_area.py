"""In-process storage area.

Several OptionsStore instances sharing one MemoryStorageArea behave like several
windows of the same extension sharing ``storage.local``: a write through any of
them is reported to the listeners of all of them.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping

from ..clock import Clock
from ..errors import StorageUnavailableError
from .base import BaseStorageArea
from .limits import UNLIMITED, StorageLimits


class MemoryStorageArea(BaseStorageArea):
    """
    Storage area holding its items in a dict.

    Parameters
    ----------
    initial:
        Optional items to start with. Copied; not subject to limits.
    limits:
        Quota and write-rate limits to enforce.
    clock:
        Time source for the write-rate windows.
    """

    def __init__(
        self,
        initial: Mapping[str, Any] | None = None,
        *,
        limits: StorageLimits = UNLIMITED,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(limits=limits, clock=clock)
        self._items: dict[str, Any] = copy.deepcopy(dict(initial or {}))
        self._closed = False

    def close(self) -> None:
        """Make the area unreachable; every later operation fails."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageUnavailableError("Storage area is closed.")

    async def _load(self) -> dict[str, Any]:
        self._ensure_open()
        return dict(self._items)

    async def _store(self, items: dict[str, Any]) -> None:
        self._ensure_open()
        self._items = items
