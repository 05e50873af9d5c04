"""Per-key asyncio locks that disappear once nobody holds them."""

import asyncio
import weakref


class KeyedLocks:
    """Hands out one ``asyncio.Lock`` per key while any caller references it."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
