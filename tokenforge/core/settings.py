"""Application settings loaded from environment variables."""

from cryptography.fernet import Fernet
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

TOKEN_TTL_MINUTES_DEFAULT = 60
RSA_KEY_SIZE_DEFAULT = 2048
REDIS_TIMEOUT_DEFAULT = 5.0


class CacheSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="TOKENFORGE_REDIS_")

    url: str = "redis://localhost:6379/0"
    socket_timeout: float = REDIS_TIMEOUT_DEFAULT
    socket_connect_timeout: float = REDIS_TIMEOUT_DEFAULT


class IssuerSettings(BaseSettings):
    """Credential issuance settings."""

    model_config = SettingsConfigDict(env_prefix="TOKENFORGE_")

    master_key: str = ""
    token_ttl_minutes: int = Field(default=TOKEN_TTL_MINUTES_DEFAULT, ge=1)
    rsa_key_size: int = Field(default=RSA_KEY_SIZE_DEFAULT, ge=2048)
    log_json: bool = True
    log_level: str = "INFO"

    @field_validator("master_key")
    @classmethod
    def _check_master_key(cls, value: str) -> str:
        if value:
            try:
                Fernet(value.encode())
            except ValueError as exc:
                raise ValueError(
                    "master_key must be a url-safe base64 encoded 32-byte Fernet key"
                ) from exc
        return value

    @property
    def token_ttl_seconds(self) -> int:
        """TTL shared by all three credential tiers, in seconds."""
        return self.token_ttl_minutes * 60
