"""Entry Lock Registry — in-process exclusive locks keyed by resource id.

Invariants:
    - hold() acquires locks in ascending id order regardless of caller order,
      so two holders of overlapping sets can never deadlock each other
    - Duplicate ids are collapsed: a set of ids is locked, not a list
    - Every acquired lock is released on every exit path (normal, error, cancellation)
    - A lock object exists only while someone holds or awaits it (no unbounded growth)
    - Waiting is bounded by timeout_ms -> LockTimeoutError

Design Decisions:
    - asyncio.Lock per id: serializes overlapping operations inside one process
      before they reach the store; SELECT ... FOR UPDATE covers other processes
    - Reference counting instead of a WeakValueDictionary: removal is explicit and
      happens on the event loop thread, never in a GC callback
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Hashable, Iterable

from kinstone.core.errors import ErrorContext, LockTimeoutError

logger = logging.getLogger(__name__)


class EntryLockRegistry:
    """Process-wide map of resource id -> asyncio.Lock with ordered acquisition."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._refs: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def is_held(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def _checkout(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._refs[key] = self._refs.get(key, 0) + 1
        return lock

    def _checkin(self, key: Hashable) -> None:
        self._refs[key] -= 1
        if self._refs[key] == 0:
            del self._refs[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(
        self, keys: Iterable[Hashable], timeout_ms: int | None = None,
    ) -> AsyncGenerator[list[Hashable], None]:
        """Hold exclusive locks on all keys for the body of the context."""
        ordered = sorted(set(keys))
        timeout = timeout_ms / 1000 if timeout_ms is not None else None
        acquired: list[Hashable] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout)
                except asyncio.TimeoutError:
                    self._checkin(key)
                    raise LockTimeoutError(
                        f"Timed out after {timeout_ms}ms waiting for lock on {key}",
                        timeout_ms=timeout_ms,
                        context=ErrorContext(entry_ids=[str(k) for k in ordered]),
                    )
                except BaseException:
                    self._checkin(key)
                    raise
                acquired.append(key)
            yield ordered
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._checkin(key)


# Singleton shared by every request handled by this process
entry_locks = EntryLockRegistry()
