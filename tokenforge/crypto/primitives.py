"""Injectable facade over the single-primitive crypto functions."""

from datetime import datetime

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

from tokenforge.crypto import cipher, keys
from tokenforge.crypto.types import SigningKeyData


class CryptoPrimitives:
    """Groups key, cipher, and signature primitives behind one substitutable object."""

    def __init__(self, master_key: str, key_size: int = keys.RSA_KEY_SIZE) -> None:
        self._master_key = master_key
        self._key_size = key_size

    def derive_cipher_key(self, now: datetime) -> str:
        return cipher.derive_cipher_key(self._master_key, now)

    def generate_keypair(self, cipher_key: str) -> SigningKeyData:
        return keys.generate_rsa_keypair(cipher_key, self._key_size)

    def load_private_key(self, private_pem: str, cipher_key: str) -> RSAPrivateKey:
        return keys.load_private_key(private_pem, cipher_key)

    def load_public_key(self, public_pem: str) -> RSAPublicKey:
        return keys.load_public_key(public_pem)

    def hash_body(self, body: object) -> bytes:
        return keys.hash_body(body)

    def sign_digest(self, private_key: RSAPrivateKey, digest: bytes) -> bytes:
        return keys.sign_digest(private_key, digest)

    def verify_digest(
        self, public_key: RSAPublicKey, digest: bytes, signature: bytes
    ) -> None:
        keys.verify_digest(public_key, digest, signature)

    def encrypt_token_id(self, cipher_key: str, plaintext: str, context: str) -> str:
        return cipher.encrypt_token_id(cipher_key, plaintext, context)
