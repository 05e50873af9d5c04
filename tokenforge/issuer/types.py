"""Cached tier records and their byte encoding."""

from typing import Self

import orjson
from pydantic import BaseModel, ConfigDict, ValidationError

from tokenforge.core.errors import EncodingError
from tokenforge.crypto.types import Envelope, KeyObject

SIGNATURE_HEX_MIN_LENGTH = 60
AUDIENCE_SLICE = slice(10, 20)
ISSUER_SLICE = slice(30, 40)
SUBJECT_SLICE = slice(50, 60)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    def to_bytes(self) -> bytes:
        """Encode as JSON bytes for the cache."""
        try:
            return orjson.dumps(self.model_dump(mode="json"))
        except orjson.JSONEncodeError as exc:
            raise EncodingError(f"Cannot encode {type(self).__name__}: {exc}") from exc

    @classmethod
    def from_bytes(cls, raw: bytes) -> Self:
        """Decode a record previously written by :meth:`to_bytes`."""
        try:
            return cls.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as exc:
            raise EncodingError(f"Cannot decode {cls.__name__}: {exc}") from exc


class SecretRecord(_Record):
    """Base key material for a prefix; ``private_key`` is always encrypted PEM."""

    key_id: str
    private_key: str
    public_key: str
    cipher_key: str


class SignatureRecord(_Record):
    """Binds a request body to a prefix's key pair."""

    key_id: str
    private_key: str
    cipher_key: str
    signature: str
    key_object: KeyObject
    wrapped_exchange: Envelope


class CorrelationIds(BaseModel):
    """Non-secret identifiers sliced from a signature hex string."""

    model_config = ConfigDict(frozen=True)

    audience: str
    issuer: str
    subject: str


def correlation_ids(signature_hex: str) -> CorrelationIds:
    """Slice audience [10:20], issuer [30:40], and subject [50:60] from a signature."""
    if len(signature_hex) < SIGNATURE_HEX_MIN_LENGTH:
        raise EncodingError(
            f"Signature hex must be at least {SIGNATURE_HEX_MIN_LENGTH} characters, "
            f"got {len(signature_hex)}"
        )
    return CorrelationIds(
        audience=signature_hex[AUDIENCE_SLICE],
        issuer=signature_hex[ISSUER_SLICE],
        subject=signature_hex[SUBJECT_SLICE],
    )
