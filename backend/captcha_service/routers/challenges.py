from datetime import UTC, datetime, timedelta

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from captcha_service.config import settings
from captcha_service.schemas.challenge import (
    Challenge,
    ErrorResponse,
    VerifyRequest,
    VerifyResponse,
)
from captcha_service.services.pow_service import EntropyError, create_challenge, verify_solution

router = APIRouter()
logger = structlog.get_logger()

# Sent for every rejected payload so clients cannot tell failure causes apart
INVALID_SOLUTION_MESSAGE = "Invalid solution or expired challenge"


def challenge_expiry() -> datetime | None:
    if settings.altcha_expires_minutes == 0:
        return None
    return datetime.now(UTC) + timedelta(minutes=settings.altcha_expires_minutes)


@router.api_route(
    "/challenge",
    methods=["GET", "POST"],
    response_model=Challenge,
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
)
async def issue_challenge():
    """
    Create a new proof-of-work challenge.

    The client searches for the number whose salted hash equals `challenge`
    and submits it to /verify together with the other fields.
    """
    try:
        challenge = create_challenge(
            secret_key=settings.altcha_hmac_key,
            max_number=settings.altcha_max_number,
            salt_length=settings.altcha_salt_length,
            algorithm=settings.altcha_algorithm,
            expires=challenge_expiry(),
        )
    except EntropyError:
        logger.error("challenge_creation_failed", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Failed to create challenge"})

    logger.info(
        "challenge_created",
        algorithm=challenge.algorithm,
        max_number=challenge.max_number,
        expires=challenge.expires,
    )
    return challenge


@router.post(
    "/verify",
    response_model=VerifyResponse,
    response_model_exclude_none=True,
    responses={400: {"model": VerifyResponse}},
)
async def verify(body: VerifyRequest):
    """Verify a solved challenge payload."""
    result = verify_solution(body.payload, settings.altcha_hmac_key)

    if not result.valid:
        logger.info("solution_rejected", reason=str(result.reason))
        return JSONResponse(
            status_code=400,
            content={"verified": False, "error": INVALID_SOLUTION_MESSAGE},
        )

    logger.info("solution_verified")
    return VerifyResponse(verified=True)
