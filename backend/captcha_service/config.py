from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings

from captcha_service.services.crypto_utils import parse_algorithm

MIN_HMAC_KEY_LENGTH = 32
PLACEHOLDER_HMAC_KEYS = {"dev-secret"}


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Proof of Work
    altcha_hmac_key: str | None = None  # required, checked at startup
    altcha_max_number: int = 100_000
    altcha_salt_length: int = 12
    altcha_expires_minutes: int = 5  # 0 disables expiry
    altcha_algorithm: str = "SHA-256"

    # CORS
    cors_origin: list[str] | str = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" or "json"

    @field_validator("cors_origin", mode="before")
    @classmethod
    def parse_cors_origin(cls, v):
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("altcha_max_number", "altcha_salt_length")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("altcha_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        return parse_algorithm(v).value

    @field_validator("altcha_expires_minutes")
    @classmethod
    def validate_expires_minutes(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v


settings = Settings()
