"""Typed facade over the hash-field TTL store, namespaced per prefix and tier."""

from datetime import timedelta

from tokenforge.cache.backend import CacheBackend
from tokenforge.core.errors import NotFoundError

CERTIFICATE_FIELD = "certificate_metadata"
SIGNATURE_FIELD = "signature_metadata"


def credential_key(prefix: str) -> str:
    """Hash key holding the secret and signature tiers for ``prefix``."""
    return f"{prefix}:credential"


def token_key(prefix: str) -> str:
    """Whole-value key holding the issued token for ``prefix``."""
    return f"{prefix}:token"


def _seconds(ttl: timedelta) -> int:
    seconds = int(ttl.total_seconds())
    if seconds < 1:
        raise ValueError("Cache TTL must be at least one second")
    return seconds


class CredentialCache:
    """Existence checks, reads, and expiring writes for credential tiers.

    Backend failures surface as ``CacheUnavailableError``; reads of a
    missing entry raise ``NotFoundError``.
    """

    def __init__(self, backend: CacheBackend) -> None:
        self._backend = backend

    async def exists(self, namespace: str) -> int:
        return await self._backend.exists(namespace)

    async def field_exists(self, namespace: str, field: str) -> bool:
        return await self._backend.hexists(namespace, field)

    async def get(self, namespace: str) -> bytes:
        value = await self._backend.get(namespace)
        if value is None:
            raise NotFoundError(f"No cached value at {namespace}")
        return value

    async def get_field(self, namespace: str, field: str) -> bytes:
        value = await self._backend.hget(namespace, field)
        if value is None:
            raise NotFoundError(f"No cached field {field} at {namespace}")
        return value

    async def set_with_expiry(
        self, namespace: str, ttl: timedelta, value: bytes
    ) -> None:
        await self._backend.set_with_expiry(namespace, value, _seconds(ttl))

    async def set_field_with_expiry(
        self, namespace: str, ttl: timedelta, field: str, value: bytes
    ) -> None:
        await self._backend.hset_with_expiry(namespace, field, value, _seconds(ttl))

    async def close(self) -> None:
        await self._backend.close()
