"""Type definitions for key material, key exchange envelopes, and JWT claims."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SigningKeyData(BaseModel):
    """An RSA keypair whose private half is encrypted under a cipher key."""

    model_config = ConfigDict(frozen=True)

    key_id: str
    private_key_pem: str
    public_key_pem: str


class JWKEntry(BaseModel):
    """Public JWK for third-party verification."""

    kty: str = "RSA"
    use: str = "sig"
    alg: str = "RS256"
    kid: str
    n: str
    e: str


class KeyObject(JWKEntry):
    """Private JWK carrying the full RSA key for interoperable exchange."""

    model_config = ConfigDict(frozen=True)

    d: str
    p: str
    q: str
    dp: str
    dq: str
    qi: str


class Envelope(BaseModel):
    """JWE-style wrapped-key envelope (RSA-OAEP-256 + A256GCM)."""

    model_config = ConfigDict(frozen=True)

    protected: str
    encrypted_key: str
    iv: str
    ciphertext: str
    tag: str

    def compact(self) -> str:
        """Render as a JWE compact serialization."""
        return ".".join(
            [self.protected, self.encrypted_key, self.iv, self.ciphertext, self.tag]
        )


class TokenClaims(BaseModel):
    """Claims bundle for bearer token creation."""

    model_config = ConfigDict(frozen=True)

    key_id: str
    audience: str
    issuer: str
    subject: str
    token_id: str
    issued_at: datetime
    expires_at: datetime
    claim: str = ""


class DecodedToken(BaseModel):
    """Decoded and verified JWT token claims."""

    model_config = ConfigDict(extra="allow")

    sub: str = ""
    iss: str = ""
    aud: list[str] = []
    jti: str = ""
    iat: int = 0
    exp: int = 0
    claim: str = ""
