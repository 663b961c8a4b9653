"""Record Locks — per-record mutual exclusion with ordered acquisition and bounded wait.

Invariants:
    - One asyncio.Lock per (feature, record_id) while anyone holds or waits for it
    - The entry is dropped once its last holder or waiter leaves
    - Multi-record holds acquire in ascending record id order (no lock-order deadlock)
    - A wait longer than the timeout raises LockTimeoutError with nothing held
    - Locks are released in reverse acquisition order, on success or failure

Design Decisions:
    - In-process locks: one writer process per planning artifact, so no
      advisory DB locks are needed
    - Registry instance is injected into the engines, never imported as a global
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable

from tierledger.core.errors import ErrorContext, LockTimeoutError

logger = logging.getLogger(__name__)

LockKey = tuple[str, str]


class RecordLockRegistry:
    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: dict[LockKey, asyncio.Lock] = {}
        self._users: dict[LockKey, int] = {}

    @property
    def tracked(self) -> int:
        """Number of records currently held or waited on."""
        return len(self._locks)

    def _checkout(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: LockKey) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]

    def is_locked(self, feature: str, record_id: str) -> bool:
        lock = self._locks.get((feature, record_id))
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(
        self,
        feature: str,
        record_ids: Iterable[str],
        timeout: float | None = None,
    ) -> AsyncGenerator[None, None]:
        """Hold the locks of every listed record for the duration of the block."""
        ordered = sorted({r for r in record_ids if r})
        wait = self.timeout if timeout is None else timeout
        held: list[LockKey] = []
        try:
            for record_id in ordered:
                key = (feature, record_id)
                lock = self._checkout(key)
                acquired = False
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=wait)
                    acquired = True
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Lock wait exceeded {wait:g}s for {record_id}",
                        extra={"feature": feature, "record_id": record_id},
                    )
                    raise LockTimeoutError(
                        ordered, wait,
                        ErrorContext(feature=feature, record_id=record_id),
                    )
                finally:
                    if not acquired:
                        self._checkin(key)
                held.append(key)
            yield
        finally:
            for key in reversed(held):
                self._locks[key].release()
                self._checkin(key)
