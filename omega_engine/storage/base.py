"""
Shared behavior for storage areas.

Concrete areas only provide `_load` and `_store`. Key selection, quota and
rate-limit enforcement, change computation and listener dispatch live here so
that every area reports the same errors and events.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from types import MappingProxyType
from typing import Any, Mapping, Sequence

from ..clock import Clock, SystemClock
from .api import ABSENT, ChangeListener, Keys, StorageChange
from .limits import UNLIMITED, StorageLimits, WriteRateLimiter, check_quota

logger = logging.getLogger(__name__)


def _normalize_keys(keys: str | Sequence[str]) -> list[str]:
    if isinstance(keys, str):
        return [keys]
    return [str(k) for k in keys]


def diff_items(before: Mapping[str, Any], after: Mapping[str, Any]) -> dict[str, StorageChange]:
    """
    Compute per-key changes between two snapshots.

    Keys whose value is unchanged are not reported.
    """
    changes: dict[str, StorageChange] = {}
    for key in sorted(set(before) | set(after)):
        old = before.get(key, ABSENT)
        new = after.get(key, ABSENT)
        if old is not ABSENT and new is not ABSENT and old == new:
            continue
        changes[key] = StorageChange(old_value=copy.deepcopy(old), new_value=copy.deepcopy(new))
    return changes


class BaseStorageArea:
    """
    Base class implementing the StorageArea protocol over a whole-snapshot backend.

    Parameters
    ----------
    limits:
        Quota and write-rate limits to enforce.
    clock:
        Time source for the write-rate windows.
    """

    def __init__(self, *, limits: StorageLimits = UNLIMITED, clock: Clock | None = None) -> None:
        self._limits = limits
        self._rate = WriteRateLimiter(limits, clock=clock or SystemClock())
        self._listeners: list[ChangeListener] = []

    @property
    def limits(self) -> StorageLimits:
        return self._limits

    async def _load(self) -> dict[str, Any]:
        """Return the full current contents. Subclasses must not hand out shared state."""
        raise NotImplementedError

    async def _store(self, items: dict[str, Any]) -> None:
        """Persist `items` as the full new contents."""
        raise NotImplementedError

    async def get(self, keys: Keys = None) -> dict[str, Any]:
        """See StorageArea.get."""
        items = await self._load()
        if keys is None:
            return copy.deepcopy(items)
        selected = {k: items[k] for k in _normalize_keys(keys) if k in items}
        return copy.deepcopy(selected)

    async def set(self, items: Mapping[str, Any]) -> None:
        """See StorageArea.set."""
        if not isinstance(items, Mapping):
            raise TypeError("items must be a mapping")
        staged: dict[str, Any] = {}
        for key, value in items.items():
            if not isinstance(key, str):
                raise TypeError(f"Storage keys must be strings, got {key!r}")
            staged[key] = copy.deepcopy(value)

        current = await self._load()
        merged = dict(current)
        merged.update(staged)
        check_quota(self._limits, merged)
        self._rate.admit()
        await self._store(merged)
        self._notify(diff_items(current, merged))

    async def remove(self, keys: str | Sequence[str]) -> None:
        """See StorageArea.remove."""
        doomed = set(_normalize_keys(keys))
        current = await self._load()
        self._rate.admit()
        remaining = {k: v for k, v in current.items() if k not in doomed}
        await self._store(remaining)
        self._notify(diff_items(current, remaining))

    async def clear(self) -> None:
        """See StorageArea.clear."""
        current = await self._load()
        self._rate.admit()
        await self._store({})
        self._notify(diff_items(current, {}))

    def add_listener(self, listener: ChangeListener) -> None:
        """See StorageArea.add_listener."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChangeListener) -> None:
        """See StorageArea.remove_listener."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, changes: dict[str, StorageChange]) -> None:
        if not changes or not self._listeners:
            return
        # Delivered on a later loop iteration, never inside the write call.
        asyncio.get_running_loop().call_soon(self._dispatch, MappingProxyType(changes))

    def _dispatch(self, changes: Mapping[str, StorageChange]) -> None:
        for listener in list(self._listeners):
            try:
                listener(changes)
            except Exception:
                logger.exception("Storage change listener %r failed", listener)
