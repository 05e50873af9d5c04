"""Bootstrap wiring for a credential issuer."""

from tokenforge.cache.backend import CacheBackend
from tokenforge.cache.backend_redis import RedisBackend
from tokenforge.cache.credential_cache import CredentialCache
from tokenforge.cache.engine import get_redis_client
from tokenforge.core.logging import setup_logging
from tokenforge.core.settings import CacheSettings, IssuerSettings
from tokenforge.crypto.exchange import KeyExchangeProvider
from tokenforge.crypto.primitives import CryptoPrimitives
from tokenforge.crypto.token_codec import TokenCodec
from tokenforge.issuer.credential_issuer import CredentialIssuer


def create_issuer(
    issuer_settings: IssuerSettings | None = None,
    cache_settings: CacheSettings | None = None,
    backend: CacheBackend | None = None,
) -> CredentialIssuer:
    """Build a configured CredentialIssuer.

    Without an explicit ``backend`` the issuer talks to Redis at
    ``cache_settings.url``.
    """
    settings = issuer_settings or IssuerSettings()
    if not settings.master_key:
        raise ValueError("TOKENFORGE_MASTER_KEY must be set to a Fernet key")

    setup_logging(json_output=settings.log_json, level=settings.log_level)

    if backend is None:
        backend = RedisBackend(get_redis_client(cache_settings or CacheSettings()))

    return CredentialIssuer(
        cache=CredentialCache(backend),
        crypto=CryptoPrimitives(settings.master_key, key_size=settings.rsa_key_size),
        ttl_minutes=settings.token_ttl_minutes,
        exchange=KeyExchangeProvider(),
        codec=TokenCodec(),
    )
