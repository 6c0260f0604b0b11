from __future__ import annotations

import asyncio

import pytest

from services.locks import LockRegistry
from services.scheduler import DeletionScheduler


@pytest.mark.asyncio
async def test_scheduled_callback_runs_once() -> None:
    scheduler = DeletionScheduler()
    calls: list[str] = []

    async def _callback() -> None:
        calls.append("ran")

    assert scheduler.schedule("t1", 0.01, _callback) is True
    assert scheduler.schedule("t1", 0.01, _callback) is False
    assert scheduler.is_scheduled("t1")

    await asyncio.sleep(0.05)

    assert calls == ["ran"]
    assert not scheduler.is_scheduled("t1")


@pytest.mark.asyncio
async def test_cancel_before_delay_prevents_callback() -> None:
    scheduler = DeletionScheduler()
    calls: list[str] = []

    async def _callback() -> None:
        calls.append("ran")

    scheduler.schedule("t1", 0.05, _callback)
    assert scheduler.cancel("t1") is True
    assert scheduler.cancel("t1") is False

    await asyncio.sleep(0.1)
    assert calls == []


@pytest.mark.asyncio
async def test_cancel_after_delay_does_not_interrupt_deletion() -> None:
    scheduler = DeletionScheduler()
    started = asyncio.Event()
    release = asyncio.Event()
    finished: list[bool] = []

    async def _callback() -> None:
        started.set()
        await release.wait()
        finished.append(True)

    scheduler.schedule("t1", 0, _callback)
    await asyncio.wait_for(started.wait(), timeout=1)

    assert scheduler.cancel("t1") is False
    release.set()
    await asyncio.sleep(0.01)
    assert finished == [True]


@pytest.mark.asyncio
async def test_running_deletion_still_counts_as_scheduled() -> None:
    scheduler = DeletionScheduler()
    started = asyncio.Event()
    release = asyncio.Event()

    async def _callback() -> None:
        started.set()
        await release.wait()

    async def _other() -> None:
        raise AssertionError("second deletion must not be scheduled")

    scheduler.schedule("t1", 0, _callback)
    await asyncio.wait_for(started.wait(), timeout=1)

    assert scheduler.is_scheduled("t1")
    assert scheduler.schedule("t1", 0, _other) is False
    assert scheduler.cancel("t1") is False

    release.set()
    await asyncio.sleep(0.01)
    assert not scheduler.is_scheduled("t1")
    assert scheduler.schedule("t1", 10, _other) is True
    scheduler.cancel_all()


@pytest.mark.asyncio
async def test_failing_callback_is_logged(caplog) -> None:
    scheduler = DeletionScheduler()

    async def _callback() -> None:
        raise RuntimeError("boom")

    scheduler.schedule("t1", 0, _callback)
    await asyncio.sleep(0.02)

    assert "Scheduled deletion of ticket t1 failed" in caplog.text


@pytest.mark.asyncio
async def test_lock_registry_serializes_per_key() -> None:
    locks = LockRegistry()
    order: list[str] = []

    async def _worker(name: str, delay: float) -> None:
        async with locks.hold("ticket"):
            order.append(f"{name}-in")
            await asyncio.sleep(delay)
            order.append(f"{name}-out")

    await asyncio.gather(_worker("a", 0.02), _worker("b", 0))

    assert order == ["a-in", "a-out", "b-in", "b-out"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_registry_releases_on_error() -> None:
    locks = LockRegistry()

    with pytest.raises(ValueError):
        async with locks.hold("ticket"):
            assert len(locks) == 1
            raise ValueError("nope")

    assert len(locks) == 0
