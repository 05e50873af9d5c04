"""Base interface for hash-field TTL store backends."""
from abc import ABC, abstractmethod


class CacheBackend(ABC):
    """Abstract hash-field and whole-value store with per-entry expiry."""

    @abstractmethod
    async def exists(self, key: str) -> int:
        """Return how many whole-value entries exist at ``key`` (0 or 1)."""

    @abstractmethod
    async def hexists(self, key: str, field: str) -> bool:
        """Return True if ``field`` is present in the hash at ``key``."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the whole value at ``key``, or None."""

    @abstractmethod
    async def hget(self, key: str, field: str) -> bytes | None:
        """Return one hash field, or None."""

    @abstractmethod
    async def set_with_expiry(self, key: str, value: bytes, ttl_seconds: int) -> None:
        """Write a whole value that expires after ``ttl_seconds``."""

    @abstractmethod
    async def hset_with_expiry(
        self, key: str, field: str, value: bytes, ttl_seconds: int
    ) -> None:
        """Write one hash field that expires after ``ttl_seconds``.

        The write and its expiry must be applied together or not at all.
        """

    async def close(self) -> None:
        """Release backend resources."""
