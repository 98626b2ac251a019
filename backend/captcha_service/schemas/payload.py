import base64
import json
import re
from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

# SHA-512 hex digest length
MAX_DIGEST_HEX_LENGTH = 128
MAX_SALT_LENGTH = 1024
# Largest integer a JavaScript solver can represent exactly
MAX_NUMBER = 2**53 - 1
# Well-formed payloads stay far below this
MAX_PAYLOAD_BYTES = 8192


def strict_base64_decode(value: str) -> bytes:
    """
    Strictly validate and decode a base64 string.

    Rejects strings with invalid characters, incorrect padding, or whitespace.
    """
    if not re.match(r"^[A-Za-z0-9+/]*={0,2}$", value):
        raise ValueError("Invalid base64 characters")
    if len(value) % 4 != 0:
        raise ValueError("Invalid base64 length (must be multiple of 4)")
    try:
        return base64.b64decode(value, validate=True)
    except ValueError:
        raise ValueError("Invalid base64 encoding") from None


def decode_payload(value: str) -> object:
    """Decode a base64 JSON payload. Raises ValueError on any encoding problem."""
    raw = strict_base64_decode(value)
    if len(raw) > MAX_PAYLOAD_BYTES:
        raise ValueError(f"Payload exceeds {MAX_PAYLOAD_BYTES} bytes")
    try:
        return json.loads(raw.decode("utf-8"))
    except UnicodeDecodeError:
        raise ValueError("Payload is not UTF-8") from None
    except json.JSONDecodeError:
        raise ValueError("Payload is not valid JSON") from None
    except RecursionError:
        raise ValueError("Payload is too deeply nested") from None


class Payload(BaseModel):
    """Solution submitted by a client: the echoed challenge plus the found number."""

    algorithm: str
    challenge: str = Field(..., min_length=1, max_length=MAX_DIGEST_HEX_LENGTH)
    number: int = Field(..., ge=0, le=MAX_NUMBER, strict=True)
    salt: str = Field(..., min_length=1, max_length=MAX_SALT_LENGTH)
    signature: str = Field(..., min_length=1, max_length=MAX_DIGEST_HEX_LENGTH)
    expires: datetime | None = None

    @field_validator("expires")
    @classmethod
    def normalize_expires(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return None
        # Expiry is signed as whole seconds
        if v.microsecond:
            raise ValueError("expires must not have fractional seconds")
        try:
            # Naive timestamps are UTC
            v = v.replace(tzinfo=UTC) if v.tzinfo is None else v.astimezone(UTC)
            v.timestamp()
        except OverflowError:
            raise ValueError("expires out of range") from None
        return v

    def expires_timestamp(self) -> int | None:
        return None if self.expires is None else int(self.expires.timestamp())
