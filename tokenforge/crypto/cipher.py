"""Symmetric cipher-key derivation and token-id encryption."""

import hashlib
import os
from datetime import datetime

from cryptography.exceptions import InvalidTag
from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from tokenforge.core.errors import CryptoError

TOKEN_ID_KEY_INFO = b"tokenforge token id"
GCM_NONCE_LENGTH = 12


def cipher_seed(now: datetime) -> str:
    """Hex-encoded Unix ``date`` rendering of ``now``."""
    rendered = f"{now:%a %b} {now.day:2d} {now:%H:%M:%S} UTC {now.year}"
    return rendered.encode().hex()


def derive_cipher_key(master_key: str, now: datetime) -> str:
    """
    Derive a per-prefix cipher key.

    The time seed is hashed with SHA-512 and the hex digest is then
    Fernet-encrypted under the master key. Fernet's random IV makes the
    result unique even for two identical seeds.
    """
    digest = hashlib.sha512(cipher_seed(now).encode()).hexdigest()
    try:
        fernet = Fernet(master_key.encode())
    except ValueError as exc:
        raise CryptoError(f"Invalid master key: {exc}") from exc
    return fernet.encrypt(digest.encode()).decode()


def _token_id_key(cipher_key: str) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=TOKEN_ID_KEY_INFO,
    ).derive(cipher_key.encode())


def encrypt_token_id(cipher_key: str, plaintext: str, context: str) -> str:
    """AES-256-GCM encrypt ``plaintext`` bound to ``context``; returns hex(nonce || ct)."""
    nonce = os.urandom(GCM_NONCE_LENGTH)
    sealed = AESGCM(_token_id_key(cipher_key)).encrypt(
        nonce, plaintext.encode(), context.encode()
    )
    return (nonce + sealed).hex()


def decrypt_token_id(cipher_key: str, token_id: str, context: str) -> str:
    """Reverse of :func:`encrypt_token_id`."""
    try:
        raw = bytes.fromhex(token_id)
        nonce, sealed = raw[:GCM_NONCE_LENGTH], raw[GCM_NONCE_LENGTH:]
        plaintext = AESGCM(_token_id_key(cipher_key)).decrypt(
            nonce, sealed, context.encode()
        )
    except (ValueError, InvalidTag) as exc:
        raise CryptoError("Token id cannot be decrypted in this context") from exc
    return plaintext.decode()
