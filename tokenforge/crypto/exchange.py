"""Private key export and JWE-style key wrapping (RSA-OAEP-256 + A256GCM)."""

import base64
import os

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from tokenforge.core.errors import CryptoError, EncodingError
from tokenforge.crypto.keys import int_to_base64url
from tokenforge.crypto.types import Envelope, KeyObject

WRAP_ALGORITHM = "RSA-OAEP-256"
CONTENT_ENCRYPTION = "A256GCM"
CEK_LENGTH = 32
IV_LENGTH = 12
TAG_LENGTH = 16


def _b64e(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64d(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


class KeyExchangeProvider:
    """Stateless key export and wrapping over caller-supplied RSA keys."""

    def export_key_object(self, private_key: RSAPrivateKey, kid: str) -> KeyObject:
        """Export ``private_key`` as a private RSA JWK tagged with ``kid``."""
        if not isinstance(private_key, RSAPrivateKey):
            raise EncodingError("Key object export requires an RSA private key")
        try:
            numbers = private_key.private_numbers()
        except ValueError as exc:
            raise EncodingError(f"Malformed private key: {exc}") from exc
        public = numbers.public_numbers
        return KeyObject(
            kid=kid,
            n=int_to_base64url(public.n),
            e=int_to_base64url(public.e),
            d=int_to_base64url(numbers.d),
            p=int_to_base64url(numbers.p),
            q=int_to_base64url(numbers.q),
            dp=int_to_base64url(numbers.dmp1),
            dq=int_to_base64url(numbers.dmq1),
            qi=int_to_base64url(numbers.iqmp),
        )

    def wrap_key(
        self, public_key: RSAPublicKey, plaintext: str, kid: str = ""
    ) -> tuple[bytes, Envelope]:
        """
        Encrypt ``plaintext`` so only the matching private key holder can read it.

        A fresh content-encryption key (CEK) is wrapped with RSA-OAEP-256 and
        the payload is sealed with AES-256-GCM, the encoded protected header
        serving as associated data.

        Returns:
            The plaintext CEK and the envelope.

        Raises:
            CryptoError: If the public key cannot wrap the CEK.
        """
        if not isinstance(public_key, RSAPublicKey):
            raise CryptoError("Key wrapping requires an RSA public key")
        header = {"alg": WRAP_ALGORITHM, "enc": CONTENT_ENCRYPTION}
        if kid:
            header["kid"] = kid
        protected = _b64e(orjson.dumps(header, option=orjson.OPT_SORT_KEYS))

        cek = os.urandom(CEK_LENGTH)
        iv = os.urandom(IV_LENGTH)
        try:
            encrypted_key = public_key.encrypt(cek, _oaep())
        except ValueError as exc:
            raise CryptoError(f"Key wrapping failed: {exc}") from exc
        sealed = AESGCM(cek).encrypt(iv, plaintext.encode(), protected.encode())

        return cek, Envelope(
            protected=protected,
            encrypted_key=_b64e(encrypted_key),
            iv=_b64e(iv),
            ciphertext=_b64e(sealed[:-TAG_LENGTH]),
            tag=_b64e(sealed[-TAG_LENGTH:]),
        )

    def unwrap_key(self, private_key: RSAPrivateKey, envelope: Envelope) -> str:
        """Recover the plaintext sealed by :meth:`wrap_key`."""
        try:
            cek = private_key.decrypt(_b64d(envelope.encrypted_key), _oaep())
            plaintext = AESGCM(cek).decrypt(
                _b64d(envelope.iv),
                _b64d(envelope.ciphertext) + _b64d(envelope.tag),
                envelope.protected.encode(),
            )
        except (ValueError, InvalidTag) as exc:
            raise CryptoError("Envelope cannot be unwrapped with this key") from exc
        return plaintext.decode()
