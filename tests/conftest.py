"""Shared test fixtures for tokenforge."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from cryptography.fernet import Fernet

from tokenforge.cache.backend_memory import MemoryBackend
from tokenforge.cache.credential_cache import CredentialCache
from tokenforge.crypto.primitives import CryptoPrimitives
from tokenforge.crypto.types import SigningKeyData
from tokenforge.issuer.credential_issuer import CredentialIssuer

MASTER_KEY = Fernet.generate_key().decode()


class FakeClock:
    """Shared clock for the memory backend (seconds) and the issuer (datetimes)."""

    def __init__(self) -> None:
        self._start = datetime.now(UTC)
        self.elapsed = 0.0

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds

    def monotonic(self) -> float:
        return self.elapsed

    def utcnow(self) -> datetime:
        return self._start + timedelta(seconds=self.elapsed)


class CountingPrimitives(CryptoPrimitives):
    """CryptoPrimitives that counts key pair generations."""

    def __init__(self, master_key: str) -> None:
        super().__init__(master_key)
        self.keypairs_generated = 0

    def generate_keypair(self, cipher_key: str) -> SigningKeyData:
        self.keypairs_generated += 1
        return super().generate_keypair(cipher_key)


@pytest.fixture(autouse=True)
def _set_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set environment variables for test settings."""
    monkeypatch.setenv("TOKENFORGE_MASTER_KEY", MASTER_KEY)
    monkeypatch.setenv("TOKENFORGE_LOG_JSON", "false")


@pytest.fixture
def master_key() -> str:
    return MASTER_KEY


@pytest.fixture
def ttl_minutes() -> int:
    return 5


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> MemoryBackend:
    return MemoryBackend(clock=clock.monotonic)


@pytest.fixture
def cache(backend: MemoryBackend) -> CredentialCache:
    return CredentialCache(backend)


@pytest.fixture
def crypto() -> CountingPrimitives:
    return CountingPrimitives(MASTER_KEY)


@pytest.fixture
def issuer(
    cache: CredentialCache,
    crypto: CountingPrimitives,
    clock: FakeClock,
    ttl_minutes: int,
) -> CredentialIssuer:
    return CredentialIssuer(
        cache=cache,
        crypto=crypto,
        ttl_minutes=ttl_minutes,
        clock=clock.utcnow,
    )


@pytest.fixture
def make_issuer(
    crypto: CountingPrimitives, clock: FakeClock, ttl_minutes: int
) -> Callable[..., CredentialIssuer]:
    """Build an issuer over a custom backend or primitives."""

    def _make(
        backend: MemoryBackend, primitives: CryptoPrimitives | None = None
    ) -> CredentialIssuer:
        return CredentialIssuer(
            cache=CredentialCache(backend),
            crypto=primitives or crypto,
            ttl_minutes=ttl_minutes,
            clock=clock.utcnow,
        )

    return _make
