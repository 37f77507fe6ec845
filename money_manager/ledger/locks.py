"""
Per-Account Locks

Balance updates are read-check-write sequences (load the account,
check ownership or funds, apply the delta). Two coroutines running
that sequence on the same account must not interleave, so every
balance-affecting operation runs while holding the lock of each
account it touches.
"""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID


class AccountLockRegistry:
    """
    Hands out one asyncio.Lock per key.

    Locks for several keys are always taken in sorted order, so two
    transfers between the same pair of accounts in opposite directions
    cannot deadlock.

    A key's lock lives only while some coroutine holds or waits on it,
    so the registry stays empty between operations.
    """

    def __init__(self):
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._users: dict[UUID, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _hold_one(self, key: UUID) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        # Counted before acquiring, so waiters keep the lock alive too
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: Optional[UUID]) -> AsyncIterator[None]:
        """
        Hold the locks for every non-None key until the block exits.

        Usage:
            async with locks.hold(source_id, destination_id):
                ...
        """
        ordered = sorted({k for k in keys if k is not None}, key=str)
        async with AsyncExitStack() as stack:
            for key in ordered:
                await stack.enter_async_context(self._hold_one(key))
            yield

    def is_locked(self, key: UUID) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()
