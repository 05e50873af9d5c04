"""RSA key generation, passphrase encryption, body signing, and JWK conversion."""

import base64
import hashlib

import orjson
import uuid_utils
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa, utils
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from pydantic import BaseModel

from tokenforge.core.errors import (
    CryptoError,
    EncodingError,
    SignatureVerificationError,
)
from tokenforge.crypto.types import JWKEntry, SigningKeyData

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537


def generate_rsa_keypair(
    passphrase: str, key_size: int = RSA_KEY_SIZE
) -> SigningKeyData:
    """Generate an RSA keypair with the private PEM encrypted under ``passphrase``."""
    try:
        private_key = rsa.generate_private_key(
            public_exponent=RSA_PUBLIC_EXPONENT,
            key_size=key_size,
        )
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.BestAvailableEncryption(
                passphrase.encode()
            ),
        ).decode()
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"RSA key generation failed: {exc}") from exc
    public_pem = public_key_to_pem(private_key.public_key())
    return SigningKeyData(
        key_id=str(uuid_utils.uuid7()),
        private_key_pem=private_pem,
        public_key_pem=public_pem,
    )


def public_key_to_pem(public_key: RSAPublicKey) -> str:
    """Encode a public key as SubjectPublicKeyInfo PEM."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


def load_private_key(private_pem: str, passphrase: str) -> RSAPrivateKey:
    """Decrypt and load a passphrase-protected PEM private key."""
    try:
        loaded = serialization.load_pem_private_key(
            private_pem.encode(), password=passphrase.encode()
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CryptoError(f"Cannot decrypt private key: {exc}") from exc
    if not isinstance(loaded, RSAPrivateKey):
        raise CryptoError("Private key is not an RSA key")
    return loaded


def load_public_key(public_pem: str) -> RSAPublicKey:
    """Load a PEM public key."""
    try:
        loaded = serialization.load_pem_public_key(public_pem.encode())
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise EncodingError(f"Malformed public key: {exc}") from exc
    if not isinstance(loaded, RSAPublicKey):
        raise EncodingError("Public key is not an RSA key")
    return loaded


def _default(value: object) -> object:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


def serialize_body(body: object) -> bytes:
    """Serialize a request body into canonical JSON bytes.

    Keys are sorted and non-string keys are rendered as strings, so
    ``{1: "a"}`` and ``{"1": "a"}`` hash the same.
    """
    try:
        return orjson.dumps(
            body,
            default=_default,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
        )
    except orjson.JSONEncodeError as exc:
        raise EncodingError(f"Request body is not serializable: {exc}") from exc


def hash_body(body: object) -> bytes:
    """SHA-512 digest of the serialized body."""
    return hashlib.sha512(serialize_body(body)).digest()


def sign_digest(private_key: RSAPrivateKey, digest: bytes) -> bytes:
    """RSASSA-PKCS1-v1_5 signature over a precomputed SHA-512 digest."""
    try:
        return private_key.sign(
            digest, padding.PKCS1v15(), utils.Prehashed(hashes.SHA512())
        )
    except ValueError as exc:
        raise CryptoError(f"Signing failed: {exc}") from exc


def verify_digest(public_key: RSAPublicKey, digest: bytes, signature: bytes) -> None:
    """Raise SignatureVerificationError unless ``signature`` matches ``digest``."""
    try:
        public_key.verify(
            signature, digest, padding.PKCS1v15(), utils.Prehashed(hashes.SHA512())
        )
    except InvalidSignature as exc:
        raise SignatureVerificationError(
            "Signature does not verify against the public key"
        ) from exc


def int_to_base64url(value: int) -> str:
    """Encode an integer as base64url without padding."""
    byte_length = max(1, (value.bit_length() + 7) // 8)
    raw = value.to_bytes(byte_length, byteorder="big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def pem_to_jwk_entry(public_key_pem: str, kid: str) -> JWKEntry:
    """Convert a PEM public key to JWK format."""
    numbers = load_public_key(public_key_pem).public_numbers()
    return JWKEntry(
        kid=kid,
        n=int_to_base64url(numbers.n),
        e=int_to_base64url(numbers.e),
    )
