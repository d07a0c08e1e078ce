from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Mapping

import pytest

from omega_engine.clock import ManualClock
from omega_engine.errors import (
    QuotaExceededError,
    RateLimitExceededError,
    StorageUnavailableError,
)
from omega_engine.storage.api import ABSENT, StorageChange
from omega_engine.storage.limits import StorageLimits, item_size
from omega_engine.storage.memory_area import MemoryStorageArea


@pytest.mark.asyncio
async def test_get_accepts_none_single_key_and_sequence() -> None:
    area = MemoryStorageArea({"+a": 1, "+b": 2, "-c": 3})

    assert await area.get(None) == {"+a": 1, "+b": 2, "-c": 3}
    assert await area.get("+a") == {"+a": 1}
    assert await area.get(["+b", "+missing"]) == {"+b": 2}
    assert await area.get([]) == {}


@pytest.mark.asyncio
async def test_set_upserts_without_removing_other_keys() -> None:
    area = MemoryStorageArea({"+profile1": {"name": "profile1"}, "+profile2": {"name": "profile2"}})

    await area.set({"+profile1": {"name": "profile1", "color": "#fff"}})

    stored = await area.get(None)
    assert stored["+profile1"]["color"] == "#fff"
    assert "+profile2" in stored


@pytest.mark.asyncio
async def test_returned_values_are_copies() -> None:
    area = MemoryStorageArea({"+a": {"rules": []}})

    got = await area.get("+a")
    got["+a"]["rules"].append("mutated")

    assert await area.get("+a") == {"+a": {"rules": []}}


@pytest.mark.asyncio
async def test_remove_and_clear() -> None:
    area = MemoryStorageArea({"+a": 1, "+b": 2, "+c": 3})

    await area.remove(["+a", "+unknown"])
    assert await area.get(None) == {"+b": 2, "+c": 3}

    await area.remove("+b")
    assert await area.get(None) == {"+c": 3}

    await area.clear()
    assert await area.get(None) == {}


@pytest.mark.asyncio
async def test_listeners_receive_changes_after_the_write_returns() -> None:
    area = MemoryStorageArea({"+a": 1, "+b": 2})
    events: list[Mapping[str, StorageChange]] = []
    area.add_listener(events.append)

    await area.set({"+a": 10, "+b": 2, "+c": 3})
    assert events == []

    await asyncio.sleep(0)

    assert len(events) == 1
    changes = events[0]
    assert set(changes) == {"+a", "+c"}
    assert changes["+a"] == StorageChange(old_value=1, new_value=10)
    assert changes["+c"].added
    assert changes["+c"].old_value is ABSENT


@pytest.mark.asyncio
async def test_clear_reports_removed_keys() -> None:
    area = MemoryStorageArea({"+a": 1})
    events: list[Mapping[str, StorageChange]] = []
    area.add_listener(events.append)

    await area.clear()
    await asyncio.sleep(0)

    assert events[0]["+a"].removed


@pytest.mark.asyncio
async def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    area = MemoryStorageArea()
    seen: list[str] = []

    def _boom(_changes: Mapping[str, StorageChange]) -> None:
        raise RuntimeError("listener bug")

    area.add_listener(_boom)
    area.add_listener(lambda changes: seen.extend(changes))

    await area.set({"+a": 1})
    await asyncio.sleep(0)

    assert seen == ["+a"]
    assert "listener" in caplog.text


@pytest.mark.asyncio
async def test_removed_listener_is_not_called() -> None:
    area = MemoryStorageArea()
    events: list[object] = []
    area.add_listener(events.append)
    area.remove_listener(events.append)
    area.remove_listener(events.append)

    await area.set({"+a": 1})
    await asyncio.sleep(0)

    assert events == []


@pytest.mark.asyncio
async def test_quota_exceeded_leaves_contents_untouched() -> None:
    limits = StorageLimits(quota_bytes=item_size("+a", "x" * 10) + 1)
    area = MemoryStorageArea({"+a": "x" * 10}, limits=limits)

    with pytest.raises(QuotaExceededError):
        await area.set({"+b": "y"})

    assert await area.get(None) == {"+a": "x" * 10}


@pytest.mark.asyncio
async def test_per_item_quota() -> None:
    area = MemoryStorageArea(limits=StorageLimits(quota_bytes_per_item=16))

    await area.set({"+a": "short"})
    with pytest.raises(QuotaExceededError, match="per-item"):
        await area.set({"+b": "much too long for one item"})


@pytest.mark.asyncio
async def test_write_rate_limit_uses_rolling_window() -> None:
    clock = ManualClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
    area = MemoryStorageArea(
        limits=StorageLimits(max_write_operations_per_minute=2),
        clock=clock,
    )

    await area.set({"+a": 1})
    await area.clear()
    with pytest.raises(RateLimitExceededError):
        await area.set({"+a": 2})

    clock.advance(61)
    await area.set({"+a": 3})
    assert await area.get("+a") == {"+a": 3}


@pytest.mark.asyncio
async def test_closed_area_is_unavailable() -> None:
    area = MemoryStorageArea({"+a": 1})
    area.close()

    with pytest.raises(StorageUnavailableError):
        await area.get(None)
    with pytest.raises(StorageUnavailableError):
        await area.set({"+a": 2})


@pytest.mark.asyncio
async def test_non_string_keys_are_rejected() -> None:
    area = MemoryStorageArea()

    with pytest.raises(TypeError):
        await area.set({1: "x"})  # type: ignore[dict-item]
