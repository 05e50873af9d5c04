"""Exception hierarchy for credential issuance."""


class CredentialError(Exception):
    """Base class for every failure raised by tokenforge."""


class CacheUnavailableError(CredentialError):
    """The cache store could not be reached or timed out."""


class NotFoundError(CredentialError):
    """An expected cache entry was missing."""


class CryptoError(CredentialError):
    """Key generation, encryption, decryption, or hashing failed."""


class SignatureVerificationError(CryptoError):
    """A freshly produced signature did not verify against its public key."""


class EncodingError(CredentialError):
    """Serialization, deserialization, or key encoding failed."""


class SigningError(CredentialError):
    """The token codec could not produce a signed token."""


class TokenVerificationError(CryptoError):
    """A bearer token failed signature, expiry, audience, or issuer checks."""
