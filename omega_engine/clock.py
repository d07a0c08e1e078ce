"""
Clock abstractions for deterministic behavior.

Notes
-----
Engine code must not access wall-clock time directly. Storage areas take a
Clock so that write-rate windows can be tested deterministically.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """A source of time for deterministic behavior."""

    def now(self) -> datetime:
        """
        Return the current time.

        Returns
        -------
        datetime
            A timezone-aware datetime.
        """
        ...


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Clock that returns the current system time in UTC."""

    def now(self) -> datetime:
        """Return the current system time as a timezone-aware UTC datetime."""
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to (useful for tests).

    Parameters
    ----------
    start:
        Initial time. Naive datetimes are interpreted as UTC.
    """

    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move the clock forward by `seconds`."""
        self._now = self._now + timedelta(seconds=seconds)
