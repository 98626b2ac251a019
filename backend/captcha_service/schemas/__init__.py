from captcha_service.schemas.challenge import (
    Challenge,
    ErrorResponse,
    HealthResponse,
    VerifyRequest,
    VerifyResponse,
)
from captcha_service.schemas.payload import Payload

__all__ = [
    "Challenge",
    "ErrorResponse",
    "HealthResponse",
    "Payload",
    "VerifyRequest",
    "VerifyResponse",
]
