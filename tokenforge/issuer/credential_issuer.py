"""Three-tier lazy credential issuance: secret, then signature, then token.

Each tier follows check, reuse-or-create, persist. A tier is written to
the cache exactly once, after it has been fully built in memory, so a
failure or cancellation while deriving leaves nothing behind for that
tier. Check-then-create is serialized per prefix and tier with an
in-process lock; processes sharing one store resolve the race by
last-writer-wins.
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from tokenforge.cache.credential_cache import (
    CERTIFICATE_FIELD,
    SIGNATURE_FIELD,
    CredentialCache,
    credential_key,
    token_key,
)
from tokenforge.core.errors import NotFoundError
from tokenforge.core.logging import get_logger
from tokenforge.crypto.exchange import KeyExchangeProvider
from tokenforge.crypto.keys import pem_to_jwk_entry, public_key_to_pem
from tokenforge.crypto.primitives import CryptoPrimitives
from tokenforge.crypto.token_codec import TokenCodec
from tokenforge.crypto.types import DecodedToken, JWKEntry, TokenClaims
from tokenforge.issuer.locks import KeyedLocks
from tokenforge.issuer.types import SecretRecord, SignatureRecord, correlation_ids

log = get_logger(__name__)

CLAIM_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CredentialIssuer:
    """Issues and caches bearer tokens scoped to a prefix."""

    def __init__(
        self,
        cache: CredentialCache,
        crypto: CryptoPrimitives,
        ttl_minutes: int,
        exchange: KeyExchangeProvider | None = None,
        codec: TokenCodec | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if ttl_minutes < 1:
            raise ValueError("ttl_minutes must be at least 1")
        self._cache = cache
        self._crypto = crypto
        self._exchange = exchange or KeyExchangeProvider()
        self._codec = codec or TokenCodec()
        self._ttl_minutes = ttl_minutes
        self._ttl = timedelta(minutes=ttl_minutes)
        self._clock = clock
        self._locks = KeyedLocks()

    @staticmethod
    def _check_prefix(prefix: str) -> None:
        if not prefix:
            raise ValueError("prefix must be a non-empty string")

    async def ensure_secret(self, prefix: str) -> SecretRecord:
        """Return the prefix's key material, generating and caching it if absent."""
        self._check_prefix(prefix)
        namespace = credential_key(prefix)
        async with self._locks.get(f"{namespace}:{CERTIFICATE_FIELD}"):
            if await self._cache.field_exists(namespace, CERTIFICATE_FIELD):
                raw = await self._cache.get_field(namespace, CERTIFICATE_FIELD)
                record = SecretRecord.from_bytes(raw)
                log.debug("credential.secret_reused", prefix=prefix, key_id=record.key_id)
                return record

            record = await asyncio.to_thread(self._derive_secret)
            await self._cache.set_field_with_expiry(
                namespace, self._ttl, CERTIFICATE_FIELD, record.to_bytes()
            )
            log.info("credential.secret_created", prefix=prefix, key_id=record.key_id)
            return record

    def _derive_secret(self) -> SecretRecord:
        cipher_key = self._crypto.derive_cipher_key(self._clock())
        keypair = self._crypto.generate_keypair(cipher_key)
        return SecretRecord(
            key_id=keypair.key_id,
            private_key=keypair.private_key_pem,
            public_key=keypair.public_key_pem,
            cipher_key=cipher_key,
        )

    async def ensure_signature(self, prefix: str, body: object) -> SignatureRecord:
        """Return the prefix's signature record, signing ``body`` if absent.

        An already cached record is returned as is, whatever ``body`` is.
        """
        self._check_prefix(prefix)
        namespace = credential_key(prefix)
        async with self._locks.get(f"{namespace}:{SIGNATURE_FIELD}"):
            if await self._cache.field_exists(namespace, SIGNATURE_FIELD):
                raw = await self._cache.get_field(namespace, SIGNATURE_FIELD)
                record = SignatureRecord.from_bytes(raw)
                log.debug(
                    "credential.signature_reused", prefix=prefix, key_id=record.key_id
                )
                return record

            secret = await self.ensure_secret(prefix)
            record = await asyncio.to_thread(self._derive_signature, secret, body)
            await self._cache.set_field_with_expiry(
                namespace, self._ttl, SIGNATURE_FIELD, record.to_bytes()
            )
            log.info("credential.signature_created", prefix=prefix, key_id=record.key_id)
            return record

    def _derive_signature(self, secret: SecretRecord, body: object) -> SignatureRecord:
        private_key = self._crypto.load_private_key(secret.private_key, secret.cipher_key)
        public_key = self._crypto.load_public_key(secret.public_key)

        digest = self._crypto.hash_body(body)
        signature = self._crypto.sign_digest(private_key, digest)
        # raises SignatureVerificationError; never retried
        self._crypto.verify_digest(public_key, digest, signature)
        signature_hex = signature.hex()

        key_object = self._exchange.export_key_object(private_key, secret.key_id)
        _, envelope = self._exchange.wrap_key(public_key, signature_hex, kid=secret.key_id)

        return SignatureRecord(
            key_id=secret.key_id,
            private_key=secret.private_key,
            cipher_key=secret.cipher_key,
            signature=signature_hex,
            key_object=key_object,
            wrapped_exchange=envelope,
        )

    async def issue_token(self, prefix: str, body: object) -> bytes:
        """Return the prefix's bearer token, deriving any missing tier first.

        A cached token is returned verbatim; its remaining TTL is not refreshed.
        """
        self._check_prefix(prefix)
        namespace = token_key(prefix)
        async with self._locks.get(namespace):
            if await self._cache.exists(namespace) > 0:
                token = await self._cache.get(namespace)
                log.debug("credential.token_reused", prefix=prefix)
                return token

            signature = await self.ensure_signature(prefix, body)
            token = await asyncio.to_thread(self._derive_token, prefix, signature)
            await self._cache.set_with_expiry(namespace, self._ttl, token)
            log.info(
                "credential.token_issued",
                prefix=prefix,
                key_id=signature.key_id,
                ttl_minutes=self._ttl_minutes,
            )
            return token

    def _derive_token(self, prefix: str, signature: SignatureRecord) -> bytes:
        ids = correlation_ids(signature.signature)
        composite = f"{ids.audience}:{ids.issuer}:{ids.subject}:{self._ttl_minutes}"
        token_id = self._crypto.encrypt_token_id(
            signature.cipher_key, composite.encode().hex(), prefix
        )
        private_key = self._crypto.load_private_key(
            signature.private_key, signature.cipher_key
        )

        now = self._clock()
        claims = TokenClaims(
            key_id=signature.wrapped_exchange.ciphertext,
            audience=ids.audience,
            issuer=ids.issuer,
            subject=ids.subject,
            token_id=token_id,
            # backdated by one TTL window
            issued_at=now - self._ttl,
            expires_at=now + self._ttl,
            claim=now.strftime(CLAIM_TIMESTAMP_FORMAT),
        )
        return self._codec.sign(claims, private_key)

    async def _cached_signature(self, prefix: str) -> SignatureRecord:
        self._check_prefix(prefix)
        namespace = credential_key(prefix)
        if not await self._cache.field_exists(namespace, SIGNATURE_FIELD):
            raise NotFoundError(f"No signature record cached for prefix {prefix}")
        return SignatureRecord.from_bytes(
            await self._cache.get_field(namespace, SIGNATURE_FIELD)
        )

    def _signing_public_pem(self, record: SignatureRecord) -> str:
        private_key = self._crypto.load_private_key(record.private_key, record.cipher_key)
        return public_key_to_pem(private_key.public_key())

    async def verify_token(self, prefix: str, token: bytes | str) -> DecodedToken:
        """Verify ``token`` against the key pair that signs the prefix's tokens.

        The key and the expected audience and issuer come from the cached
        signature record, the same record ``issue_token`` signs with.
        Raises ``NotFoundError`` when no signature record is cached and
        ``TokenVerificationError`` when the token does not verify.
        """
        record = await self._cached_signature(prefix)
        public_pem = await asyncio.to_thread(self._signing_public_pem, record)
        ids = correlation_ids(record.signature)
        return self._codec.verify(
            token, public_pem, audience=ids.audience, issuer=ids.issuer
        )

    async def public_jwk(self, prefix: str) -> JWKEntry:
        """Public JWK of the key pair that signs the prefix's tokens."""
        record = await self._cached_signature(prefix)
        public_pem = await asyncio.to_thread(self._signing_public_pem, record)
        return pem_to_jwk_entry(public_pem, record.key_id)
