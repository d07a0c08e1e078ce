"""
Quota and write-rate limits for storage areas.

Sizes are measured the way browser storage measures them: the key length plus
the length of the value's JSON serialization.
"""

from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Final, Mapping

from ..clock import Clock
from ..errors import QuotaExceededError, RateLimitExceededError


@dataclass(frozen=True, slots=True)
class StorageLimits:
    """
    Limits enforced by a storage area.

    Attributes
    ----------
    quota_bytes:
        Maximum total size of all items, or None for unlimited.
    quota_bytes_per_item:
        Maximum size of a single item, or None for unlimited.
    max_write_operations_per_minute:
        Maximum set/remove/clear calls in any rolling minute, or None.
    max_write_operations_per_hour:
        Maximum set/remove/clear calls in any rolling hour, or None.
    """

    quota_bytes: int | None = None
    quota_bytes_per_item: int | None = None
    max_write_operations_per_minute: int | None = None
    max_write_operations_per_hour: int | None = None


LOCAL_LIMITS: Final[StorageLimits] = StorageLimits(quota_bytes=10_485_760)
SYNC_LIMITS: Final[StorageLimits] = StorageLimits(
    quota_bytes=102_400,
    quota_bytes_per_item=8_192,
    max_write_operations_per_minute=120,
    max_write_operations_per_hour=1_800,
)
UNLIMITED: Final[StorageLimits] = StorageLimits()


def item_size(key: str, value: Any) -> int:
    """Return the accounted size of one item in bytes."""
    encoded = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return len(key.encode("utf-8")) + len(encoded.encode("utf-8"))


def payload_size(items: Mapping[str, Any]) -> int:
    """Return the accounted size of a mapping of items in bytes."""
    return sum(item_size(key, value) for key, value in items.items())


def check_quota(limits: StorageLimits, items: Mapping[str, Any]) -> None:
    """
    Raise if `items` (the complete prospective contents) would not fit.

    Raises
    ------
    QuotaExceededError
        If any item or the total exceeds the configured quota.
    """
    if limits.quota_bytes_per_item is not None:
        for key, value in items.items():
            size = item_size(key, value)
            if size > limits.quota_bytes_per_item:
                raise QuotaExceededError(
                    f"Item {key!r} is {size} bytes; the per-item quota is "
                    f"{limits.quota_bytes_per_item} bytes."
                )
    if limits.quota_bytes is not None:
        total = payload_size(items)
        if total > limits.quota_bytes:
            raise QuotaExceededError(
                f"Storage would hold {total} bytes; the quota is {limits.quota_bytes} bytes."
            )


class WriteRateLimiter:
    """
    Rolling-window counter of write operations.

    A write is recorded only when it is admitted, so a rejected write does not
    extend the throttling period.
    """

    def __init__(self, limits: StorageLimits, *, clock: Clock) -> None:
        self._windows: list[tuple[timedelta, int]] = []
        if limits.max_write_operations_per_minute is not None:
            self._windows.append((timedelta(minutes=1), limits.max_write_operations_per_minute))
        if limits.max_write_operations_per_hour is not None:
            self._windows.append((timedelta(hours=1), limits.max_write_operations_per_hour))
        self._clock = clock
        self._history: deque[datetime] = deque()

    def admit(self) -> None:
        """
        Record one write operation.

        Raises
        ------
        RateLimitExceededError
            If the write would exceed any window's limit.
        """
        if not self._windows:
            return
        now = self._clock.now()
        longest = max(window for window, _ in self._windows)
        while self._history and now - self._history[0] >= longest:
            self._history.popleft()
        for window, limit in self._windows:
            recent = sum(1 for ts in self._history if now - ts < window)
            if recent >= limit:
                raise RateLimitExceededError(
                    f"More than {limit} write operations within {window}."
                )
        self._history.append(now)
