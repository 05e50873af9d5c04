"""Bearer token signing and verification using RS256."""

import jwt
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from jwt.types import Options

from tokenforge.core.errors import SigningError, TokenVerificationError
from tokenforge.crypto.types import DecodedToken, TokenClaims

TOKEN_ALGORITHM = "RS256"


class TokenCodec:
    """Creates and verifies RS256-signed bearer tokens."""

    def __init__(self, algorithm: str = TOKEN_ALGORITHM) -> None:
        self._algorithm = algorithm

    def sign(self, claims: TokenClaims, signing_key: RSAPrivateKey) -> bytes:
        """Serialize ``claims`` into a signed compact JWT."""
        payload = {
            "aud": [claims.audience],
            "iss": claims.issuer,
            "sub": claims.subject,
            "jti": claims.token_id,
            "iat": claims.issued_at,
            "exp": claims.expires_at,
            "claim": claims.claim,
        }
        try:
            token = jwt.encode(
                payload,
                signing_key,
                algorithm=self._algorithm,
                headers={"kid": claims.key_id},
            )
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            raise SigningError(f"Token signing failed: {exc}") from exc
        return token.encode()

    def verify(
        self,
        token: bytes | str,
        public_key_pem: str,
        audience: str | None = None,
        issuer: str | None = None,
    ) -> DecodedToken:
        """Verify and decode a token.

        Raises ``TokenVerificationError`` chained to the underlying
        ``jwt.PyJWTError``. ``audience`` is only checked when given.
        """
        opts: Options = {}
        if audience is None:
            opts["verify_aud"] = False
        try:
            raw = jwt.decode(
                token,
                public_key_pem,
                algorithms=[self._algorithm],
                audience=audience,
                issuer=issuer,
                options=opts,
            )
        except jwt.PyJWTError as exc:
            raise TokenVerificationError(f"Token verification failed: {exc}") from exc
        return DecodedToken.model_validate(raw)

    @staticmethod
    def key_id(token: bytes | str) -> str:
        """Read the ``kid`` header without verifying the token."""
        return jwt.get_unverified_header(token).get("kid", "")
