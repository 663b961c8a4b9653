"""Record Locks — bounded waits, ordered acquisition, release on failure and eviction."""

import asyncio

import pytest

from tierledger.core.errors import LockTimeoutError
from tierledger.infrastructure.record_locks import RecordLockRegistry


async def test_second_holder_times_out():
    registry = RecordLockRegistry(timeout=0.05)
    async with registry.hold("auth", ["task-1"]):
        with pytest.raises(LockTimeoutError) as exc_info:
            async with registry.hold("auth", ["task-1"]):
                pass
    assert exc_info.value.record_ids == ["task-1"]
    assert not registry.is_locked("auth", "task-1")


async def test_features_do_not_share_locks():
    registry = RecordLockRegistry(timeout=0.05)
    async with registry.hold("auth", ["task-1"]):
        async with registry.hold("billing", ["task-1"]):
            assert registry.is_locked("billing", "task-1")


async def test_partial_acquisition_is_released():
    registry = RecordLockRegistry(timeout=0.05)
    async with registry.hold("auth", ["task-2"]):
        with pytest.raises(LockTimeoutError):
            async with registry.hold("auth", ["task-2", "task-1"]):
                pass
        assert not registry.is_locked("auth", "task-1")


async def test_locks_released_on_error():
    registry = RecordLockRegistry(timeout=0.05)
    with pytest.raises(RuntimeError):
        async with registry.hold("auth", ["task-1", "task-2"]):
            raise RuntimeError("boom")
    assert not registry.is_locked("auth", "task-1")
    assert not registry.is_locked("auth", "task-2")


async def test_waiter_proceeds_after_release():
    registry = RecordLockRegistry(timeout=1.0)
    order = []

    async def worker(name: str, ids: list[str]):
        async with registry.hold("auth", ids):
            order.append(name)
            await asyncio.sleep(0.01)

    await asyncio.gather(worker("a", ["task-1", "task-2"]), worker("b", ["task-2", "task-1"]))
    assert sorted(order) == ["a", "b"]


async def test_empty_ids_are_ignored():
    registry = RecordLockRegistry(timeout=0.05)
    async with registry.hold("auth", ["", "task-1"]):
        assert registry.is_locked("auth", "task-1")


async def test_released_locks_are_forgotten():
    registry = RecordLockRegistry(timeout=0.05)
    async with registry.hold("auth", ["task-1", "task-2"]):
        assert registry.tracked == 2
    assert registry.tracked == 0


async def test_lock_kept_while_a_waiter_is_queued():
    registry = RecordLockRegistry(timeout=1.0)
    entered = asyncio.Event()
    release = asyncio.Event()

    async def first():
        async with registry.hold("auth", ["task-1"]):
            entered.set()
            await release.wait()

    async def second():
        await entered.wait()
        async with registry.hold("auth", ["task-1"]):
            assert registry.is_locked("auth", "task-1")

    holder = asyncio.create_task(first())
    waiter = asyncio.create_task(second())
    await entered.wait()
    await asyncio.sleep(0.01)
    assert registry.tracked == 1
    release.set()
    await asyncio.gather(holder, waiter)
    assert registry.tracked == 0


async def test_timed_out_waiter_leaves_no_entry_behind():
    registry = RecordLockRegistry(timeout=0.05)
    async with registry.hold("auth", ["task-1"]):
        with pytest.raises(LockTimeoutError):
            async with registry.hold("auth", ["task-1", "task-3"]):
                pass
    assert registry.tracked == 0
