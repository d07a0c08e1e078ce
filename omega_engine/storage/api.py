"""
Key/value storage primitive API.

This module defines the asynchronous surface the options store is built on. It
mirrors a browser extension storage area: independent get/set/remove/clear
operations plus a change-event subscription. Nothing here offers a
multi-key transaction; atomic document replacement is layered on top by
`omega_engine.options_store`.

Notes
-----
- Values must be JSON-serializable.
- Change listeners are called from the event loop after a write commits, never
  synchronously inside the write call.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Final, Mapping, Protocol, Sequence


class _Absent:
    """Marker for the missing side of a change (added or removed keys)."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT: Final[Any] = _Absent()


@dataclass(frozen=True, slots=True)
class StorageChange:
    """
    One key's change as reported to listeners.

    Attributes
    ----------
    old_value:
        Value before the write, or ABSENT if the key was added.
    new_value:
        Value after the write, or ABSENT if the key was removed.
    """

    old_value: Any = ABSENT
    new_value: Any = ABSENT

    @property
    def added(self) -> bool:
        return self.old_value is ABSENT and self.new_value is not ABSENT

    @property
    def removed(self) -> bool:
        return self.new_value is ABSENT and self.old_value is not ABSENT


ChangeListener = Callable[[Mapping[str, StorageChange]], object]
Keys = str | Sequence[str] | None


class StorageArea(Protocol):
    """
    Asynchronous key/value storage area.

    Implementations enforce their own quota and write-rate limits and report
    violations as QuotaExceededError / RateLimitExceededError. Any other failure
    surfaces as StorageUnavailableError.
    """

    async def get(self, keys: Keys = None) -> dict[str, Any]:
        """
        Read items.

        Parameters
        ----------
        keys:
            A single key, a sequence of keys, or None for every item. Missing
            keys are omitted from the result.

        Returns
        -------
        dict[str, Any]
            Deep copies of the stored values.
        """
        ...

    async def set(self, items: Mapping[str, Any]) -> None:
        """Upsert the given items. Other keys are left untouched."""
        ...

    async def remove(self, keys: str | Sequence[str]) -> None:
        """Remove the given keys. Unknown keys are ignored."""
        ...

    async def clear(self) -> None:
        """Remove every item."""
        ...

    def add_listener(self, listener: ChangeListener) -> None:
        """Subscribe `listener` to change events."""
        ...

    def remove_listener(self, listener: ChangeListener) -> None:
        """Unsubscribe `listener`. Unknown listeners are ignored."""
        ...
