"""In-process cache backend with per-entry expiry."""
import time
from collections.abc import Callable

from tokenforge.cache.backend import CacheBackend

_Entry = tuple[bytes, float]


class MemoryBackend(CacheBackend):
    """Dictionary-backed store for tests and single-process deployments.

    Hash fields expire individually, like Redis ``HEXPIRE``. ``clock``
    returns seconds and can be replaced to simulate the passage of time.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._values: dict[str, _Entry] = {}
        self._hashes: dict[str, dict[str, _Entry]] = {}

    def _live(self, entry: _Entry | None) -> bytes | None:
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return value

    async def exists(self, key: str) -> int:
        return 1 if self._live(self._values.get(key)) is not None else 0

    async def hexists(self, key: str, field: str) -> bool:
        return await self.hget(key, field) is not None

    async def get(self, key: str) -> bytes | None:
        value = self._live(self._values.get(key))
        if value is None:
            self._values.pop(key, None)
        return value

    async def hget(self, key: str, field: str) -> bytes | None:
        fields = self._hashes.get(key)
        if fields is None:
            return None
        value = self._live(fields.get(field))
        if value is None:
            fields.pop(field, None)
            if not fields:
                del self._hashes[key]
        return value

    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self.purge_expired()
        self._values[key] = (value, self._clock() + ttl_seconds)

    async def hset_with_expiry(
        self, key: str, field: str, value: bytes, ttl_seconds: int
    ) -> None:
        self.purge_expired()
        self._hashes.setdefault(key, {})[field] = (value, self._clock() + ttl_seconds)

    def purge_expired(self) -> int:
        """Drop expired values and hash fields, and hashes left empty.

        Runs before every write. Returns the number of entries removed.
        """
        now = self._clock()
        removed = 0
        for key in [k for k, (_, exp) in self._values.items() if now >= exp]:
            del self._values[key]
            removed += 1
        for key, fields in list(self._hashes.items()):
            for field in [f for f, (_, exp) in fields.items() if now >= exp]:
                del fields[field]
                removed += 1
            if not fields:
                del self._hashes[key]
        return removed

    def clear(self) -> None:
        """Drop every entry."""
        self._values.clear()
        self._hashes.clear()
