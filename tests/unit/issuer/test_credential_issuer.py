"""Tests for three-tier credential issuance."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import jwt
import pytest

from tokenforge.cache.backend_memory import MemoryBackend
from tokenforge.cache.credential_cache import (
    CERTIFICATE_FIELD,
    SIGNATURE_FIELD,
    credential_key,
    token_key,
)
from tokenforge.core.errors import (
    CacheUnavailableError,
    NotFoundError,
    SignatureVerificationError,
    TokenVerificationError,
)
from tokenforge.crypto.cipher import decrypt_token_id
from tokenforge.crypto.exchange import KeyExchangeProvider
from tokenforge.crypto.keys import hash_body, load_private_key, load_public_key, verify_digest
from tokenforge.crypto.primitives import CryptoPrimitives
from tokenforge.crypto.token_codec import TokenCodec
from tokenforge.crypto.types import TokenClaims
from tokenforge.issuer.credential_issuer import CredentialIssuer
from tokenforge.issuer.types import SignatureRecord, correlation_ids

BODY = {"user": "alice", "action": "read"}

MakeIssuer = Callable[..., CredentialIssuer]


class _TamperingPrimitives(CryptoPrimitives):
    """Flips one bit of every signature it produces."""

    def sign_digest(self, private_key, digest):
        signature = bytearray(super().sign_digest(private_key, digest))
        signature[0] ^= 0x01
        return bytes(signature)


class _FailingSignatureWrites(MemoryBackend):
    async def hset_with_expiry(self, key, field, value, ttl_seconds):
        if field == SIGNATURE_FIELD:
            raise CacheUnavailableError("store went away")
        await super().hset_with_expiry(key, field, value, ttl_seconds)


class _StalledWrites(MemoryBackend):
    async def hset_with_expiry(self, key, field, value, ttl_seconds):
        await asyncio.sleep(3600)
        await super().hset_with_expiry(key, field, value, ttl_seconds)


class TestEnsureSecret:
    """Tests for the secret tier."""

    async def test_creates_then_reuses(self, issuer: CredentialIssuer, crypto) -> None:
        first = await issuer.ensure_secret("tenant-a")
        second = await issuer.ensure_secret("tenant-a")
        assert crypto.keypairs_generated == 1
        assert second.public_key == first.public_key
        assert second.cipher_key == first.cipher_key
        key_one = load_private_key(first.private_key, first.cipher_key)
        key_two = load_private_key(second.private_key, second.cipher_key)
        assert key_one.private_numbers() == key_two.private_numbers()

    async def test_private_key_stored_encrypted(
        self, issuer: CredentialIssuer, backend: MemoryBackend
    ) -> None:
        await issuer.ensure_secret("tenant-a")
        raw = await backend.hget(credential_key("tenant-a"), CERTIFICATE_FIELD)
        assert raw is not None
        assert b"BEGIN ENCRYPTED PRIVATE KEY" in raw
        assert b"BEGIN PRIVATE KEY" not in raw

    async def test_empty_prefix_rejected(self, issuer: CredentialIssuer) -> None:
        with pytest.raises(ValueError):
            await issuer.ensure_secret("")


class TestEnsureSignature:
    """Tests for the signature tier."""

    async def test_signature_verifies_against_secret(
        self, issuer: CredentialIssuer
    ) -> None:
        record = await issuer.ensure_signature("tenant-a", BODY)
        secret = await issuer.ensure_secret("tenant-a")
        verify_digest(
            load_public_key(secret.public_key),
            hash_body(BODY),
            bytes.fromhex(record.signature),
        )
        assert record.private_key == secret.private_key
        assert record.cipher_key == secret.cipher_key
        assert record.key_object.kid == secret.key_id

    async def test_envelope_unwraps_to_signature(self, issuer: CredentialIssuer) -> None:
        record = await issuer.ensure_signature("tenant-a", BODY)
        private_key = load_private_key(record.private_key, record.cipher_key)
        unwrapped = KeyExchangeProvider().unwrap_key(private_key, record.wrapped_exchange)
        assert unwrapped == record.signature

    async def test_cached_record_wins_over_new_body(
        self, issuer: CredentialIssuer
    ) -> None:
        first = await issuer.ensure_signature("tenant-a", BODY)
        second = await issuer.ensure_signature("tenant-a", {"other": "body"})
        assert second == first

    async def test_verification_failure_is_fatal_and_not_cached(
        self, backend: MemoryBackend, make_issuer: MakeIssuer, master_key: str
    ) -> None:
        issuer = make_issuer(backend, _TamperingPrimitives(master_key))
        with pytest.raises(SignatureVerificationError):
            await issuer.ensure_signature("tenant-a", BODY)
        assert await backend.hexists(credential_key("tenant-a"), SIGNATURE_FIELD) is False
        assert await backend.exists(token_key("tenant-a")) == 0


class TestIssueToken:
    """Tests for the token tier."""

    async def test_second_call_is_byte_identical(
        self, issuer: CredentialIssuer, crypto
    ) -> None:
        first = await issuer.issue_token("tenant-a", BODY)
        second = await issuer.issue_token("tenant-a", BODY)
        assert first == second
        assert crypto.keypairs_generated == 1

    async def test_claims_derive_from_signature(
        self, issuer: CredentialIssuer, backend: MemoryBackend, ttl_minutes: int
    ) -> None:
        token = await issuer.issue_token("tenant-a", BODY)
        raw = await backend.hget(credential_key("tenant-a"), SIGNATURE_FIELD)
        signature = SignatureRecord.from_bytes(raw)

        decoded = await issuer.verify_token("tenant-a", token)
        assert decoded.aud == [signature.signature[10:20]]
        assert decoded.iss == signature.signature[30:40]
        assert decoded.sub == signature.signature[50:60]
        assert decoded.exp - decoded.iat == 2 * ttl_minutes * 60
        header = jwt.get_unverified_header(token)
        assert header["kid"] == signature.wrapped_exchange.ciphertext

        composite = f"{decoded.aud[0]}:{decoded.iss}:{decoded.sub}:{ttl_minutes}"
        plaintext = decrypt_token_id(signature.cipher_key, decoded.jti, "tenant-a")
        assert plaintext == composite.encode().hex()

    async def test_token_id_unique_across_prefixes(
        self, issuer: CredentialIssuer
    ) -> None:
        token_a = await issuer.issue_token("tenant-a", BODY)
        token_b = await issuer.issue_token("tenant-b", BODY)
        jti_a = (await issuer.verify_token("tenant-a", token_a)).jti
        jti_b = (await issuer.verify_token("tenant-b", token_b)).jti
        assert jti_a != jti_b
        again = await issuer.issue_token("tenant-a", BODY)
        assert (await issuer.verify_token("tenant-a", again)).jti == jti_a

    async def test_expiry_regenerates_whole_chain(
        self, issuer: CredentialIssuer, crypto, clock, ttl_minutes: int
    ) -> None:
        old_token = await issuer.issue_token("tenant-a", BODY)
        old_secret = await issuer.ensure_secret("tenant-a")
        old_signature = await issuer.ensure_signature("tenant-a", BODY)

        clock.advance(ttl_minutes * 60 + 1)
        new_token = await issuer.issue_token("tenant-a", BODY)
        new_secret = await issuer.ensure_secret("tenant-a")
        new_signature = await issuer.ensure_signature("tenant-a", BODY)

        assert crypto.keypairs_generated == 2
        assert new_token != old_token
        assert new_secret.public_key != old_secret.public_key
        assert new_secret.cipher_key != old_secret.cipher_key
        assert new_signature.signature != old_signature.signature
        with pytest.raises(TokenVerificationError):
            await issuer.verify_token("tenant-a", old_token)

    async def test_concurrent_callers_share_one_chain(
        self, issuer: CredentialIssuer, crypto, backend: MemoryBackend
    ) -> None:
        tokens = await asyncio.gather(
            *(issuer.issue_token("tenant-a", BODY) for _ in range(8))
        )
        assert len(set(tokens)) == 1
        assert crypto.keypairs_generated == 1

        secret = await issuer.ensure_secret("tenant-a")
        signature = SignatureRecord.from_bytes(
            await backend.hget(credential_key("tenant-a"), SIGNATURE_FIELD)
        )
        verify_digest(
            load_public_key(secret.public_key),
            hash_body(BODY),
            bytes.fromhex(signature.signature),
        )
        assert await backend.get(token_key("tenant-a")) == tokens[0]

    async def test_cache_failure_propagates_without_partial_tiers(
        self, clock, make_issuer: MakeIssuer
    ) -> None:
        backend = _FailingSignatureWrites(clock=clock.monotonic)
        issuer = make_issuer(backend)
        with pytest.raises(CacheUnavailableError):
            await issuer.issue_token("tenant-a", BODY)
        assert await backend.hexists(credential_key("tenant-a"), CERTIFICATE_FIELD) is True
        assert await backend.hexists(credential_key("tenant-a"), SIGNATURE_FIELD) is False
        assert await backend.exists(token_key("tenant-a")) == 0

    async def test_cancellation_persists_nothing(
        self, clock, make_issuer: MakeIssuer
    ) -> None:
        backend = _StalledWrites(clock=clock.monotonic)
        issuer = make_issuer(backend)
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(issuer.issue_token("tenant-a", BODY), timeout=0.5)
        assert await backend.hexists(credential_key("tenant-a"), CERTIFICATE_FIELD) is False
        assert await backend.exists(token_key("tenant-a")) == 0


class TestVerificationHelpers:
    """Tests for verify_token and public_jwk."""

    async def test_unknown_prefix(self, issuer: CredentialIssuer) -> None:
        with pytest.raises(NotFoundError):
            await issuer.verify_token("nobody", b"x.y.z")
        with pytest.raises(NotFoundError):
            await issuer.public_jwk("nobody")

    async def test_public_jwk_matches_signing_key(
        self, issuer: CredentialIssuer
    ) -> None:
        record = await issuer.ensure_signature("tenant-a", BODY)
        jwk = await issuer.public_jwk("tenant-a")
        assert jwk.kid == record.key_id
        assert jwk.kty == "RSA"
        assert jwk.n == record.key_object.n
        assert jwk.e == record.key_object.e

    async def test_secret_alone_is_not_enough(self, issuer: CredentialIssuer) -> None:
        await issuer.ensure_secret("tenant-a")
        with pytest.raises(NotFoundError):
            await issuer.public_jwk("tenant-a")

    async def test_served_token_verifies_after_secret_rotates(
        self, issuer: CredentialIssuer, clock, ttl_minutes: int
    ) -> None:
        await issuer.ensure_secret("tenant-a")
        clock.advance(ttl_minutes * 60 - 10)
        token = await issuer.issue_token("tenant-a", BODY)

        clock.advance(20)
        assert await issuer.issue_token("tenant-a", BODY) == token
        await issuer.verify_token("tenant-a", token)

        await issuer.ensure_secret("tenant-a")
        assert await issuer.issue_token("tenant-a", BODY) == token
        decoded = await issuer.verify_token("tenant-a", token)
        jwk = await issuer.public_jwk("tenant-a")
        record = await issuer.ensure_signature("tenant-a", BODY)
        assert decoded.aud == [correlation_ids(record.signature).audience]
        assert jwk.n == record.key_object.n

    async def test_foreign_audience_rejected(self, issuer: CredentialIssuer) -> None:
        record = await issuer.ensure_signature("tenant-a", BODY)
        ids = correlation_ids(record.signature)
        now = datetime.now(UTC)
        forged = TokenCodec().sign(
            TokenClaims(
                key_id=record.wrapped_exchange.ciphertext,
                audience="someone-else",
                issuer=ids.issuer,
                subject=ids.subject,
                token_id="00",
                issued_at=now - timedelta(minutes=1),
                expires_at=now + timedelta(minutes=1),
                claim=now.strftime("%Y/%m/%d %H:%M:%S"),
            ),
            load_private_key(record.private_key, record.cipher_key),
        )
        with pytest.raises(TokenVerificationError) as excinfo:
            await issuer.verify_token("tenant-a", forged)
        assert isinstance(excinfo.value.__cause__, jwt.InvalidAudienceError)
